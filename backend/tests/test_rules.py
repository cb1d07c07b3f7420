"""
Tests for placement legality.
"""
import random

from hexbound import BoardGraph, GameMode, Phase
from hexbound import rules


def _centre_vertex(board):
    return board.get_hex("0,0").vertex_ids[0]


def test_distance_rule(board):
    vid = _centre_vertex(board)
    assert rules.can_place_settlement(board, vid, 0, Phase.INITIAL_PLACEMENT)
    board.vertices[vid].owner = 0

    assert not rules.can_place_settlement(board, vid, 1, Phase.INITIAL_PLACEMENT)
    for neighbor in board.neighbors_of_vertex(vid):
        assert not rules.can_place_settlement(board, neighbor.id, 1, Phase.INITIAL_PLACEMENT)
        assert not rules.can_place_settlement(board, neighbor.id, 0, Phase.INITIAL_PLACEMENT)


def test_checks_do_not_mutate(board):
    vid = _centre_vertex(board)
    board.vertices[vid].owner = 0
    first = (
        rules.legal_settlement_vertices(board, 0, Phase.PLAY),
        rules.legal_road_edges(board, 0, Phase.PLAY),
        rules.legal_city_vertices(board, 0),
    )
    second = (
        rules.legal_settlement_vertices(board, 0, Phase.PLAY),
        rules.legal_road_edges(board, 0, Phase.PLAY),
        rules.legal_city_vertices(board, 0),
    )
    assert first == second
    assert board.vertices[vid].owner == 0
    assert not board.vertices[vid].is_city


def test_settlement_in_play_needs_own_road(board):
    home = _centre_vertex(board)
    board.vertices[home].owner = 0
    first_road = board.edges_of_vertex(home)[0]
    far_end = first_road.v2 if first_road.v1 == home else first_road.v1
    second_road = next(e for e in board.edges_of_vertex(far_end) if e.id != first_road.id)
    target = second_road.v2 if second_road.v1 == far_end else second_road.v1

    assert not rules.can_place_settlement(board, target, 0, Phase.PLAY)
    first_road.owner = 0
    second_road.owner = 0
    assert rules.can_place_settlement(board, target, 0, Phase.PLAY)
    # Another player's road does not count
    assert not rules.can_place_settlement(board, target, 1, Phase.PLAY)


def test_road_must_connect(board):
    home = _centre_vertex(board)
    board.vertices[home].owner = 0
    touching = {e.id for e in board.edges_of_vertex(home)}

    for eid in touching:
        assert rules.can_place_road(board, eid, 0, Phase.PLAY)
        assert not rules.can_place_road(board, eid, 1, Phase.PLAY)
    assert set(rules.legal_road_edges(board, 0, Phase.PLAY)) == touching

    taken = next(iter(touching))
    board.edges[taken].owner = 1
    assert not rules.can_place_road(board, taken, 0, Phase.PLAY)
    assert not rules.can_place_road(board, "missing|edge", 0, Phase.PLAY)


def test_city_only_on_own_settlement(board):
    vid = _centre_vertex(board)
    assert not rules.can_place_city(board, vid, 0)
    board.vertices[vid].owner = 0
    assert rules.can_place_city(board, vid, 0)
    assert not rules.can_place_city(board, vid, 1)
    board.vertices[vid].is_city = True
    assert not rules.can_place_city(board, vid, 0)
    assert rules.legal_city_vertices(board, 0) == []


def test_shrinking_start_zone():
    big = BoardGraph(rng=random.Random(5)).generate(5)
    centre = big.get_hex("0,0").vertex_ids[0]
    rim = big.boundary_edges()[0].v1

    assert rules.can_place_settlement(big, centre, 0, Phase.INITIAL_PLACEMENT, GameMode.STANDARD)
    assert not rules.can_place_settlement(big, centre, 0, Phase.INITIAL_PLACEMENT, GameMode.SHRINKING)
    assert rules.can_place_settlement(big, rim, 0, Phase.INITIAL_PLACEMENT, GameMode.SHRINKING)
