"""
Base agent interface for HexBound scripted players.
"""
from abc import ABC, abstractmethod
from typing import Dict, List

from hexbound import Game, Player, ResourceType, TradeOffer


class BaseAgent(ABC):
    """
    Base class for all scripted players.

    The game calls take_turn, respond_to_trade and choose_discard; the agent
    calls choose_victim itself while resolving its own robber.
    """

    def __init__(self, player_id: int):
        """
        Initialize the agent.

        Args:
            player_id: The ID of the player this agent controls
        """
        self.player_id = player_id

    @abstractmethod
    def take_turn(self, game: Game) -> None:
        """
        Play (or continue) the agent's turn by calling game.step().

        May return early while waiting on another party; the game calls it
        again once that party has answered.
        """

    @abstractmethod
    def respond_to_trade(self, game: Game, offer: TradeOffer) -> bool:
        """Return True to accept a pending offer targeted at this player."""

    @abstractmethod
    def choose_discard(self, game: Game, player: Player, count: int) -> Dict[ResourceType, int]:
        """Pick exactly `count` cards to hand back after a 7."""

    @abstractmethod
    def choose_victim(self, game: Game, candidates: List[int]) -> int:
        """Pick which opponent to rob."""

    def get_player(self, game: Game) -> Player:
        return game.state.player(self.player_id)
