"""
Tests for snapshot replication and intent serialization.
"""
import json
import random

import pytest
from pydantic import ValidationError

from conftest import give
from hexbound import (
    Action,
    BuildRoadPayload,
    DevCard,
    DevCardType,
    DiscardResourcesPayload,
    MoveRobberPayload,
    Phase,
    PlayDevCardPayload,
    ProposeTradePayload,
    ResourceType,
    StealResourcePayload,
    TradeBankPayload,
    apply_snapshot,
    deserialize_action,
    deserialize_action_payload,
    deserialize_game,
    serialize_action,
    serialize_action_payload,
    serialize_game,
    snapshot_from_json,
    snapshot_to_json,
)
from hexbound_ai import ScriptedAgent


def test_snapshot_roundtrip(playing_game):
    """A snapshot applied to a second game reproduces board and state."""
    source = playing_game(3, seed=11)
    source.roll_values = lambda: (2, 3)
    alice = source.state.players[0]
    give(source, alice, wood=2, ore=1)
    alice.dev_cards.append(DevCard(DevCardType.KNIGHT, bought_turn=3))
    assert source.step(Action.ROLL_DICE)
    assert source.step(Action.PROPOSE_TRADE,
                       ProposeTradePayload(1, {ResourceType.WOOD: 1}, {ResourceType.SHEEP: 1}))

    data = serialize_game(source)
    json.dumps(data)

    replica = playing_game(3, seed=99)
    apply_snapshot(replica, data)

    assert serialize_game(replica) == data
    assert replica.board.radius == source.board.radius
    assert len(replica.board.vertices) == len(source.board.vertices)
    for hid, hx in source.board.hexes.items():
        assert replica.board.hexes[hid].terrain == hx.terrain
        assert replica.board.hexes[hid].number == hx.number
    for vid, vertex in source.board.vertices.items():
        assert replica.board.vertices[vid].owner == vertex.owner
        assert replica.board.vertices[vid].port == vertex.port

    copy = replica.state.players[0]
    assert copy.resources == alice.resources
    assert copy.dev_cards == alice.dev_cards
    assert copy.victory_points == alice.victory_points
    assert replica.state.pending_trade.give == {ResourceType.WOOD: 1}
    assert replica.state.turn_token == source.state.turn_token
    assert replica.state.deck == source.state.deck


def test_json_snapshot_roundtrip(playing_game):
    source = playing_game(2, seed=5)
    text = snapshot_to_json(source)
    replica = snapshot_from_json(playing_game(2, seed=6), text)
    assert snapshot_to_json(replica) == text
    assert replica.state.phase == Phase.PLAY


def test_snapshot_sparse_ownership(playing_game):
    game = playing_game(2)
    data = serialize_game(game)
    owned = sum(1 for v in game.board.vertices.values() if v.owner is not None)
    assert len(data["vertices"]) == owned == 4
    assert len(data["edges"]) == 4
    assert len(data["hexes"]) == 19


def test_applying_snapshot_cancels_local_deferred_work(playing_game):
    game = playing_game(2)
    game.scheduler.schedule(1.0, lambda: pytest.fail("local work survived the snapshot"))
    apply_snapshot(game, serialize_game(game))
    assert game.scheduler.pending() == 0


def _offer_wood_for_ore(game):
    alice, bob = game.state.players
    give(game, alice, wood=1)
    game.state.has_rolled = True
    assert game.step(Action.PROPOSE_TRADE,
                     ProposeTradePayload(bob.id, {ResourceType.WOOD: 1}, {ResourceType.ORE: 1}))


def test_pending_trade_countdown_resumes_after_snapshot(playing_game):
    source = playing_game(2)
    source.scheduler.advance(10.0)
    _offer_wood_for_ore(source)
    data = serialize_game(source)
    assert data["clock"] == 10.0
    assert data["pending_trade"]["expires_at"] == 10.0 + source.config.trade_timeout

    replica = apply_snapshot(playing_game(2, seed=6), data)
    assert replica.scheduler.now == 10.0
    assert replica.scheduler.pending() == 1

    replica.scheduler.advance(source.config.trade_timeout - 1)
    assert replica.state.pending_trade is not None
    replica.scheduler.advance(1)
    assert replica.state.pending_trade is None
    assert replica.state.history[0] == "The trade offer expired"


def test_scripted_target_answers_offer_from_snapshot(playing_game):
    source = playing_game(2)
    _offer_wood_for_ore(source)
    data = serialize_game(source)

    replica = playing_game(2, seed=6)
    replica.add_agent(1, ScriptedAgent(1, rng=random.Random(0)))
    apply_snapshot(replica, data)

    # Bob holds no ore, so the scripted answer is a refusal
    replica.scheduler.advance(replica.config.ai_think_delay)
    assert replica.state.pending_trade is None
    assert replica.state.history[0] == "Trade offer 1 was declined"
    assert replica.state.players[0].resources[ResourceType.WOOD] == 1


def test_malformed_snapshot_rejected(playing_game):
    game = playing_game(2)
    data = serialize_game(game)
    del data["bank"]
    with pytest.raises(ValidationError):
        deserialize_game(data)

    data = serialize_game(game)
    data["vertices"]["9999.00,9999.00"] = [0, False]
    with pytest.raises(ValueError):
        deserialize_game(data)


def test_serialize_deserialize_action_roundtrip():
    for action in Action:
        assert deserialize_action(serialize_action(action)) == action


def test_serialize_deserialize_action_payload_roundtrip():
    payloads = [
        BuildRoadPayload(edge_id="0.00,0.00|50.00,0.00"),
        PlayDevCardPayload(DevCardType.YEAR_OF_PLENTY,
                           year_of_plenty_resources=(ResourceType.ORE, ResourceType.WHEAT)),
        PlayDevCardPayload(DevCardType.MONOPOLY, monopoly_resource=ResourceType.SHEEP),
        TradeBankPayload(give=ResourceType.WOOD, receive=ResourceType.BRICK),
        ProposeTradePayload(1, {ResourceType.WOOD: 2}, {ResourceType.ORE: 1}),
        MoveRobberPayload(hex_id="1,-1", robber_index=1),
        StealResourcePayload(victim_id=2),
        DiscardResourcesPayload({ResourceType.WHEAT: 3}),
    ]
    for payload in payloads:
        data = serialize_action_payload(payload)
        assert deserialize_action_payload(json.loads(json.dumps(data))) == payload
    assert serialize_action_payload(None) is None
    with pytest.raises(ValueError):
        deserialize_action_payload({"type": "teleport"})
