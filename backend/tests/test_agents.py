"""
Tests for the scripted players and the game runner.
"""
import random

import pytest

from conftest import empty_hands, give, total_supply
from hexbound import (
    ENVIRONMENT_WINNER,
    Action,
    Difficulty,
    Game,
    GameConfig,
    GameMode,
    Phase,
    ProposeTradePayload,
    ResourceType,
    TradeOffer,
)
from hexbound_ai import DIFFICULTY_PROFILES, GameRunner, ScriptedAgent, make_players
from hexbound_ai.game_runner import main


def _scripted_game(count=3, humans=0, **overrides):
    overrides.setdefault("seed", 21)
    return Game(make_players(count, humans=humans), GameConfig(**overrides))


def test_make_players():
    players = make_players(4, humans=1, difficulty=Difficulty.HARD)
    assert [p.is_ai for p in players] == [False, True, True, True]
    assert all(p.difficulty == Difficulty.HARD for p in players)


def test_difficulty_profiles_are_ordered():
    easy = DIFFICULTY_PROFILES[Difficulty.EASY]
    hard = DIFFICULTY_PROFILES[Difficulty.HARD]
    assert easy.random_site_chance > hard.random_site_chance
    assert easy.trade_attempts < hard.trade_attempts


def test_scripted_initial_placement():
    game = _scripted_game(3)
    GameRunner(game)
    while game.state.phase == Phase.INITIAL_PLACEMENT:
        assert game.scheduler.run_next()

    assert game.state.phase == Phase.PLAY
    for player in game.state.players:
        assert len(player.settlements) == 2
        assert len(player.roads) == 2
        for vid in player.settlements:
            assert game.board.vertices[vid].owner == player.id


@pytest.mark.parametrize("mode", list(GameMode))
def test_scripted_game_runs_to_completion(mode):
    game = _scripted_game(4, mode=mode)
    supply = total_supply(game)
    runner = GameRunner(game, max_turns=600)

    _, completed, error = runner.run()

    assert completed or error.startswith("Reached max")
    # Resources are only ever moved, never created or destroyed
    assert total_supply(game) == supply
    if completed:
        assert game.state.winners
        for winner in game.state.winners:
            assert winner == ENVIRONMENT_WINNER or not game.state.player(winner).eliminated


def test_runner_waits_for_human():
    game = _scripted_game(2, humans=1)
    runner = GameRunner(game)
    _, completed, error = runner.run()
    assert not completed
    assert error is None
    assert game.state.current_player.id == 0
    assert game.scheduler.pending() == 0


def test_scripted_player_answers_human_offer_after_delay():
    game = _scripted_game(2, humans=1)
    GameRunner(game)
    state = game.state
    state.phase = Phase.PLAY
    state.has_rolled = True
    human, bot = state.players
    empty_hands(game)
    give(game, human, wood=3)
    give(game, bot, ore=1)

    offer = ProposeTradePayload(bot.id, {ResourceType.WOOD: 3}, {ResourceType.ORE: 1})
    assert game.step(Action.PROPOSE_TRADE, offer, player_id=human.id)
    assert state.pending_trade is not None

    game.scheduler.advance(game.config.ai_think_delay)

    assert state.pending_trade is None
    assert bot.resources[ResourceType.WOOD] == 3
    assert human.resources[ResourceType.ORE] == 1


def test_choose_discard_returns_exact_count():
    game = _scripted_game(2)
    agent = ScriptedAgent(0, rng=random.Random(0))
    player = game.state.players[0]
    empty_hands(game)
    give(game, player, wood=5, ore=3, sheep=1)

    cards = agent.choose_discard(game, player, 5)

    assert sum(cards.values()) == 5
    assert all(player.resources[r] >= n for r, n in cards.items())
    assert cards[ResourceType.WOOD] >= 2


def test_refuses_offer_it_cannot_pay():
    game = _scripted_game(2)
    agent = ScriptedAgent(1, rng=random.Random(0))
    offer = TradeOffer(
        offer_id=1, proposer_id=0, target_id=1,
        give={ResourceType.WOOD: 3}, receive={ResourceType.ORE: 1},
        turn_token=0, expires_at=30.0,
    )
    assert not agent.respond_to_trade(game, offer)


def test_choose_victim_prefers_richest():
    game = _scripted_game(3)
    agent = ScriptedAgent(0)
    empty_hands(game)
    give(game, game.state.players[1], wood=1)
    give(game, game.state.players[2], ore=4)
    assert agent.choose_victim(game, [1, 2]) == 2


def test_shrinking_score_prefers_centre():
    game = _scripted_game(2, mode=GameMode.SHRINKING, radius=3)
    agent = ScriptedAgent(0)
    board = game.board
    rim = [vid for vid in board.vertices if board.vertex_ring(vid) == board.radius]
    inner = [vid for vid in board.vertices if board.vertex_ring(vid) == 0]
    assert max(agent.vertex_score(game, v) for v in rim) < min(agent.vertex_score(game, v) for v in inner)


def test_command_line_run(capsys):
    code = main(["--players", "2", "--max-turns", "3", "--seed", "4"])
    out = capsys.readouterr().out
    assert code in (0, 1)
    assert "Winners:" in out
    # Every seat is scripted on the command line
    with pytest.raises(SystemExit):
        main(["--humans", "1"])


def test_no_robber_target_when_every_hex_is_taken():
    game = _scripted_game(2)
    game.state.robbers = sorted(game.board.hexes)
    agent = ScriptedAgent(0)
    assert agent.choose_robber_target(game) is None
    game.state.robbers.pop()
    hid, index = agent.choose_robber_target(game)
    assert hid not in game.state.robbers
    assert 0 <= index < len(game.state.robbers)
