#!/usr/bin/env python3
"""
Run scripted players on a game until completion or a turn cap.

Usage:
    hexbound-sim [--players N] [--mode standard|expanding|shrinking]
                 [--difficulty easy|normal|hard] [--max-turns N] [--seed N]
"""
import argparse
import random
import sys
from typing import Dict, List, Optional, Tuple

from hexbound import (
    Difficulty,
    Game,
    GameConfig,
    GameMode,
    Phase,
    Player,
    victory_points,
)
from hexbound.logging_config import configure_logging, get_logger
from .scripted_agent import ScriptedAgent

logger = get_logger(__name__)


def make_players(count: int, humans: int = 0,
                 difficulty: Difficulty = Difficulty.NORMAL) -> List[Player]:
    """Players 0..humans-1 are human, the rest scripted."""
    players = []
    for pid in range(count):
        is_ai = pid >= humans
        name = f"Bot {pid}" if is_ai else f"Player {pid}"
        players.append(Player(id=pid, name=name, is_ai=is_ai, difficulty=difficulty))
    return players


class GameRunner:
    """
    Drives a game by running its scheduler until the game ends.

    Every player flagged is_ai gets a ScriptedAgent. Human players must act
    through game.step() between calls to run().
    """

    def __init__(self, game: Game, max_turns: int = 1000, max_callbacks: int = 100000):
        """
        Initialize the runner.

        Args:
            game: The game to drive
            max_turns: Maximum number of turn tokens before stopping
            max_callbacks: Safety cap on scheduled callbacks
        """
        self.game = game
        self.max_turns = max_turns
        self.max_callbacks = max_callbacks
        self.callbacks_run = 0
        self.agents: Dict[int, ScriptedAgent] = {}
        self.error: Optional[str] = None

        for player in game.state.players:
            if player.is_ai and player.id not in game.agents:
                agent = ScriptedAgent(
                    player.id,
                    difficulty=player.difficulty,
                    rng=random.Random(game.rng.random()),
                )
                self.agents[player.id] = agent
                game.add_agent(player.id, agent)

    def run(self) -> Tuple[Game, bool, Optional[str]]:
        """
        Run until the game ends, stalls on a human, or hits a cap.

        Returns:
            Tuple of (game, completed, error_message)
            - completed: True if the game finished normally
            - error_message: None unless a cap was hit
        """
        game = self.game
        while game.state.phase != Phase.GAME_OVER:
            if game.state.turn_token >= self.max_turns:
                self.error = f"Reached max turns ({self.max_turns})"
                break
            if self.callbacks_run >= self.max_callbacks:
                self.error = f"Reached max callbacks ({self.max_callbacks})"
                break
            if not game.scheduler.run_next():
                # Nothing scheduled: waiting on a human
                break
            self.callbacks_run += 1

        completed = game.state.phase == Phase.GAME_OVER
        if self.error:
            logger.warning("run_stopped", reason=self.error, turn_token=game.state.turn_token)
        logger.info(
            "run_finished",
            completed=completed,
            winners=game.state.winners,
            turn_token=game.state.turn_token,
            callbacks=self.callbacks_run,
        )
        return game, completed, self.error


def summarize(game: Game) -> str:
    state = game.state
    lines = [f"Phase: {state.phase.value}  Mode: {state.mode.value}  Radius: {game.board.radius}"]
    lines.append(f"Turn token: {state.turn_token}  Rotation: {state.rotation}")
    for player in state.players:
        status = " (eliminated)" if player.eliminated else ""
        lines.append(
            f"  {player.name}: {victory_points(state, player)} VP, "
            f"{len(player.settlements)} settlements, {len(player.cities)} cities, "
            f"{len(player.roads)} roads{status}"
        )
    lines.append(f"Winners: {state.winners}")
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run a HexBound game with scripted players")
    parser.add_argument("--players", type=int, default=4)
    parser.add_argument("--mode", choices=[m.value for m in GameMode], default=None)
    parser.add_argument("--difficulty", choices=[d.value for d in Difficulty], default=Difficulty.NORMAL.value)
    parser.add_argument("--max-turns", type=int, default=1000)
    parser.add_argument("--seed", type=int, default=None)
    args = parser.parse_args(argv)

    config = GameConfig.from_env()
    if args.mode is not None:
        config.mode = GameMode(args.mode)
    if args.seed is not None:
        config.seed = args.seed
    configure_logging(config.environment)

    players = make_players(args.players, difficulty=Difficulty(args.difficulty))
    game = Game(players, config)
    runner = GameRunner(game, max_turns=args.max_turns)
    _, completed, error = runner.run()

    print(summarize(game))
    if error:
        print(f"Stopped: {error}")
    return 0 if completed else 1


if __name__ == "__main__":
    sys.exit(main())
