"""
Pytest fixtures for building seeded boards and games.
"""
import random

import pytest

from hexbound import (
    Action,
    BoardGraph,
    BuildRoadPayload,
    BuildSettlementPayload,
    Game,
    GameConfig,
    Phase,
    Player,
    ResourceType,
)
from hexbound import economy, rules


def make_players(count: int):
    return [Player(id=i, name=f"Player {i}") for i in range(count)]


def complete_setup(game: Game):
    """Play out initial placement, always choosing the busiest free vertex."""
    while game.state.phase == Phase.INITIAL_PLACEMENT:
        pid = game.state.current_player.id
        sites = rules.legal_settlement_vertices(game.board, pid, Phase.INITIAL_PLACEMENT, game.state.mode)
        site = max(sorted(sites), key=lambda vid: len(game.board.vertices[vid].hex_ids))
        assert game.step(Action.SETUP_PLACE_SETTLEMENT, BuildSettlementPayload(site))
        edges = sorted(
            e.id for e in game.board.edges_of_vertex(site)
            if rules.can_place_road(game.board, e.id, pid, Phase.INITIAL_PLACEMENT, game.state.mode)
        )
        assert game.step(Action.SETUP_PLACE_ROAD, BuildRoadPayload(edges[0]))
    return game


def empty_hands(game: Game):
    for player in game.state.players:
        economy.return_all_to_bank(game.state, player)


def give(game: Game, player: Player, **amounts):
    """Move resources from the bank to a player, e.g. give(game, p, wood=2)."""
    for name, amount in amounts.items():
        resource = ResourceType(name)
        game.state.bank[resource] -= amount
        player.resources[resource] += amount


def total_supply(game: Game):
    """Per-resource count across the bank and every hand."""
    return {
        r: game.state.bank[r] + sum(p.resources[r] for p in game.state.players)
        for r in ResourceType
    }


@pytest.fixture
def board():
    return BoardGraph(rng=random.Random(7)).generate(2)


@pytest.fixture
def new_game():
    """Factory for a fresh seeded game still in initial placement."""
    def _make(player_count: int = 2, **overrides) -> Game:
        overrides.setdefault("seed", 42)
        return Game(make_players(player_count), GameConfig(**overrides))
    return _make


@pytest.fixture
def playing_game(new_game):
    """Factory for a seeded game past initial placement with empty hands."""
    def _make(player_count: int = 2, **overrides) -> Game:
        game = complete_setup(new_game(player_count, **overrides))
        empty_hands(game)
        return game
    return _make
