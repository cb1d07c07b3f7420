"""
Tests for the turn and phase state machine.
"""
import pytest

from conftest import complete_setup, give
from hexbound import (
    ENVIRONMENT_WINNER,
    Action,
    BuildRoadPayload,
    BuildSettlementPayload,
    DevCard,
    DevCardType,
    DiscardResourcesPayload,
    GameMode,
    MoveRobberPayload,
    Phase,
    PlayDevCardPayload,
    ProposeTradePayload,
    ResourceType,
    StealResourcePayload,
)
from hexbound import rules
from hexbound.game import snake_order


def _no_sevens(game):
    game.roll_values = lambda: (2, 3)


def _pass_turn(game):
    if not game.state.has_rolled:
        assert game.step(Action.ROLL_DICE)
    assert game.step(Action.END_TURN)


def test_snake_order():
    assert snake_order(3) == [0, 1, 2, 2, 1, 0]


def test_initial_placement(new_game):
    game = new_game(2)
    assert game.state.phase == Phase.INITIAL_PLACEMENT
    assert not game.step(Action.SETUP_PLACE_ROAD, BuildRoadPayload(next(iter(game.board.edges))))
    assert not game.step(Action.ROLL_DICE)

    complete_setup(game)

    assert game.state.phase == Phase.PLAY
    assert game.state.current_player_index == 0
    for player in game.state.players:
        assert len(player.settlements) == 2
        assert len(player.roads) == 2
        # The second settlement pays out its neighbouring hexes
        assert player.total_resources() >= 1


def test_players_are_dealt_a_starting_hand(new_game):
    game = new_game(3)
    for player in game.state.players:
        assert player.resources[ResourceType.WOOD] == 2
        assert player.resources[ResourceType.WHEAT] == 2
        assert player.resources[ResourceType.ORE] == 0
        assert player.total_resources() == 8
    # Dealt from the bank, so nothing is created
    assert game.state.bank[ResourceType.BRICK] == 19 - 6
    assert game.state.bank[ResourceType.ORE] == 19

    assert new_game(2, starting_hand=0).state.players[0].total_resources() == 0


def test_setup_road_must_touch_new_settlement(new_game):
    game = new_game(2)
    centre = game.board.get_hex("0,0").vertex_ids[0]
    assert game.step(Action.SETUP_PLACE_SETTLEMENT, BuildSettlementPayload(centre))
    assert not game.step(Action.SETUP_PLACE_SETTLEMENT, BuildSettlementPayload(centre))
    far_edge = next(e for e in game.board.edges.values() if centre not in e.vertex_ids)
    assert not game.step(Action.SETUP_PLACE_ROAD, BuildRoadPayload(far_edge.id))
    near_edge = game.board.edges_of_vertex(centre)[0]
    assert game.step(Action.SETUP_PLACE_ROAD, BuildRoadPayload(near_edge.id))
    assert game.state.current_player_index == 1


def test_unknown_action_raises(playing_game):
    game = playing_game()
    with pytest.raises(ValueError):
        game.step("not_an_action")


def test_roll_and_end_turn_guards(playing_game):
    game = playing_game()
    _no_sevens(game)
    token = game.state.turn_token

    assert not game.step(Action.END_TURN)
    assert not game.step(Action.ROLL_DICE, player_id=1)
    assert game.step(Action.ROLL_DICE)
    assert not game.step(Action.ROLL_DICE)
    assert game.step(Action.END_TURN)

    assert game.state.turn_token == token + 1
    assert game.state.current_player_index == 1
    assert not game.state.has_rolled
    assert game.state.history


def test_rejected_action_is_logged(playing_game):
    game = playing_game()
    assert not game.step(Action.END_TURN)
    assert "rejected" in game.state.history[0]


def test_failed_build_leaves_resources(playing_game):
    game = playing_game()
    _no_sevens(game)
    player = game.state.players[0]
    give(game, player, wood=1, brick=1)
    assert game.step(Action.ROLL_DICE)
    before = dict(player.resources)
    target = next(iter(game.board.vertices))
    assert not game.step(Action.BUILD_SETTLEMENT, BuildSettlementPayload(target))
    assert player.resources == before


def test_seven_forces_discard_then_robber(playing_game):
    game = playing_game()
    alice, bob = game.state.players
    give(game, alice, wood=5, ore=4)
    give(game, bob, sheep=3)
    game.roll_values = lambda: (3, 4)

    assert game.step(Action.ROLL_DICE)
    assert game.state.pending_discards == {alice.id: 5}
    assert game.state.awaiting_robber

    target = next(
        hid for hid in game.board.vertices[bob.settlements[0]].hex_ids
        if hid not in game.state.robbers
    )
    assert not game.step(Action.MOVE_ROBBER, MoveRobberPayload(target))
    assert not game.step(Action.DISCARD_RESOURCES,
                         DiscardResourcesPayload({ResourceType.WOOD: 4}), player_id=alice.id)
    assert game.step(Action.DISCARD_RESOURCES,
                     DiscardResourcesPayload({ResourceType.WOOD: 3, ResourceType.ORE: 2}),
                     player_id=alice.id)
    assert alice.total_resources() == 4
    assert not game.step(Action.END_TURN)

    assert game.step(Action.MOVE_ROBBER, MoveRobberPayload(target))
    assert target in game.state.robbers
    # A single eligible victim is robbed immediately
    assert alice.total_resources() == 5
    assert bob.total_resources() == 2
    assert not game.state.robber_pending
    assert game.step(Action.END_TURN)


def _share_hex(game, *players):
    """Put a building of each player on one robber-free hex and return its id."""
    target = next(hid for hid in sorted(game.board.hexes) if hid not in game.state.robbers)
    corners = game.board.hexes[target].vertex_ids
    for player, corner in zip(players, (corners[0], corners[3])):
        game.board.vertices[corner].owner = player.id
    return target


def test_several_victims_let_the_thief_choose(playing_game):
    game = playing_game(3)
    alice, bob, carol = game.state.players
    give(game, bob, sheep=2)
    give(game, carol, ore=1)
    target = _share_hex(game, bob, carol)
    game.roll_values = lambda: (3, 4)

    assert game.step(Action.ROLL_DICE)
    assert game.step(Action.MOVE_ROBBER, MoveRobberPayload(target))
    assert game.state.awaiting_victim
    assert sorted(game.state.victim_candidates) == [bob.id, carol.id]
    assert not game.step(Action.END_TURN)

    assert not game.step(Action.STEAL_RESOURCE, StealResourcePayload(alice.id))
    assert game.step(Action.STEAL_RESOURCE, StealResourcePayload(carol.id))
    assert alice.resources[ResourceType.ORE] == 1
    assert carol.total_resources() == 0
    assert bob.total_resources() == 2
    assert not game.state.robber_pending
    assert not game.step(Action.STEAL_RESOURCE, StealResourcePayload(bob.id))
    assert game.step(Action.END_TURN)


def test_friendly_robber_spares_low_scores(playing_game):
    game = playing_game(3, friendly_robber=True)
    alice, bob, carol = game.state.players
    give(game, bob, sheep=2)
    give(game, carol, ore=1)
    # Hidden points do not count: bob still shows 2
    bob.dev_cards.append(DevCard(DevCardType.VICTORY_POINT, bought_turn=0))
    carol.cities.append(carol.settlements.pop())
    target = _share_hex(game, bob, carol)
    assert game.robber_victims(target, alice.id) == [carol.id]

    game.roll_values = lambda: (3, 4)
    assert game.step(Action.ROLL_DICE)
    assert game.step(Action.MOVE_ROBBER, MoveRobberPayload(target))

    assert not game.state.awaiting_victim
    assert carol.total_resources() == 0
    assert bob.total_resources() == 2
    assert alice.resources[ResourceType.ORE] == 1


def test_robber_cannot_stay(playing_game):
    game = playing_game()
    game.roll_values = lambda: (3, 4)
    assert game.step(Action.ROLL_DICE)
    assert not game.step(Action.MOVE_ROBBER, MoveRobberPayload(game.state.robbers[0]))
    assert not game.step(Action.MOVE_ROBBER, MoveRobberPayload("99,99"))


def test_robber_stays_when_every_hex_holds_one(playing_game):
    game = playing_game()
    game.state.robbers = sorted(game.board.hexes)
    game.roll_values = lambda: (3, 4)

    assert game.step(Action.ROLL_DICE)

    assert not game.state.awaiting_robber
    assert any("robber stays put" in line for line in game.state.history)
    assert game.step(Action.END_TURN)


def test_dev_card_not_playable_on_purchase_turn(playing_game):
    game = playing_game()
    _no_sevens(game)
    alice = game.state.players[0]
    game.state.deck.append(DevCardType.KNIGHT)
    give(game, alice, sheep=1, wheat=1, ore=1)

    assert game.step(Action.ROLL_DICE)
    assert game.step(Action.BUY_DEV_CARD)
    assert alice.dev_cards[-1].card_type == DevCardType.KNIGHT
    assert not game.step(Action.PLAY_DEV_CARD, PlayDevCardPayload(DevCardType.KNIGHT))
    assert game.step(Action.END_TURN)
    _pass_turn(game)

    # Knights may be played before rolling
    assert game.step(Action.PLAY_DEV_CARD, PlayDevCardPayload(DevCardType.KNIGHT))
    assert alice.knights_played == 1
    assert game.state.awaiting_robber
    assert not game.step(Action.ROLL_DICE)

    alice.dev_cards.append(DevCard(DevCardType.KNIGHT, bought_turn=0))
    assert not game.step(Action.PLAY_DEV_CARD, PlayDevCardPayload(DevCardType.KNIGHT))


def test_victory_point_cards_are_never_played(playing_game):
    game = playing_game()
    alice = game.state.players[0]
    alice.dev_cards.append(DevCard(DevCardType.VICTORY_POINT, bought_turn=0))
    assert not game.step(Action.PLAY_DEV_CARD, PlayDevCardPayload(DevCardType.VICTORY_POINT))


def test_road_building_grants_two_free_roads(playing_game):
    game = playing_game()
    _no_sevens(game)
    alice = game.state.players[0]
    alice.dev_cards.append(DevCard(DevCardType.ROAD_BUILDING, bought_turn=0))
    assert game.step(Action.PLAY_DEV_CARD, PlayDevCardPayload(DevCardType.ROAD_BUILDING))
    assert game.state.free_roads == 2

    for _ in range(2):
        edge = sorted(rules.legal_road_edges(game.board, alice.id, Phase.PLAY))[0]
        assert game.step(Action.BUILD_ROAD, BuildRoadPayload(edge))
    assert game.state.free_roads == 0
    assert len(alice.roads) == 4
    assert alice.total_resources() == 0


def test_victory_ends_game(playing_game):
    game = playing_game(win_target=3)
    _no_sevens(game)
    alice = game.state.players[0]
    alice.dev_cards.append(DevCard(DevCardType.VICTORY_POINT, bought_turn=0))

    assert game.step(Action.ROLL_DICE)
    assert game.state.phase == Phase.GAME_OVER
    assert game.state.winners == [alice.id]
    assert not game.step(Action.END_TURN)


def test_shrinking_mode_ignores_points(playing_game):
    game = playing_game(win_target=3, mode=GameMode.SHRINKING)
    _no_sevens(game)
    game.state.players[0].dev_cards.append(DevCard(DevCardType.VICTORY_POINT, bought_turn=0))
    assert game.step(Action.ROLL_DICE)
    assert game.state.phase == Phase.PLAY


def test_last_player_standing_wins(playing_game):
    game = playing_game()
    _no_sevens(game)
    alice, bob = game.state.players
    game.board.clear_owner(bob.id)
    assert bob.structure_count() == 0

    _pass_turn(game)

    assert bob.eliminated
    assert game.state.phase == Phase.GAME_OVER
    assert game.state.winners == [alice.id]


def test_eliminated_player_returns_cards(playing_game):
    game = playing_game(3)
    carol = game.state.players[2]
    give(game, carol, wood=3)
    carol.dev_cards.append(DevCard(DevCardType.MONOPOLY, bought_turn=0))
    bank_wood = game.state.bank[ResourceType.WOOD]
    deck_size = len(game.state.deck)

    game.eliminate(carol)

    assert carol.eliminated
    assert carol.total_resources() == 0
    assert carol.structure_count() == 0
    assert game.state.bank[ResourceType.WOOD] == bank_wood + 3
    assert len(game.state.deck) == deck_size + 1
    assert game.state.deck[0] == DevCardType.MONOPOLY
    assert game.board.vertices_owned_by(carol.id) == []


def test_expanding_board_grows_each_rotation(playing_game):
    game = playing_game(mode=GameMode.EXPANDING, expand_every=1)
    _no_sevens(game)
    _pass_turn(game)
    _pass_turn(game)

    assert game.state.rotation == 1
    assert game.board.radius == 3
    for player in game.state.players:
        for vid in player.settlements:
            assert game.board.vertices[vid].owner == player.id
        for eid in player.roads:
            assert game.board.edges[eid].owner == player.id


def test_shrinking_game_ends_at_min_radius(playing_game):
    game = playing_game(mode=GameMode.SHRINKING, shrink_grace=1, shrink_every=1)
    _no_sevens(game)
    _pass_turn(game)
    _pass_turn(game)

    assert game.board.radius == 1
    assert game.state.phase == Phase.GAME_OVER
    for winner in game.state.winners:
        assert winner == ENVIRONMENT_WINNER or not game.state.player(winner).eliminated


def test_shrinking_game_at_min_radius_ends_when_shrink_is_due(playing_game):
    game = playing_game(mode=GameMode.SHRINKING, radius=1, shrink_grace=1, shrink_every=1)
    _no_sevens(game)
    _pass_turn(game)
    assert game.state.phase == Phase.PLAY

    _pass_turn(game)

    assert game.state.rotation == 1
    assert game.board.radius == 1
    assert game.state.phase == Phase.GAME_OVER
    # Every hex of a radius-1 board lies in the central rings
    assert sorted(game.state.winners) == [0, 1]


def test_trade_offer_times_out(playing_game):
    game = playing_game()
    _no_sevens(game)
    alice, bob = game.state.players
    give(game, alice, wood=1)
    assert game.step(Action.ROLL_DICE)

    offer = ProposeTradePayload(bob.id, {ResourceType.WOOD: 1}, {ResourceType.ORE: 1})
    assert game.step(Action.PROPOSE_TRADE, offer)
    assert game.state.pending_trade is not None
    assert not game.step(Action.PROPOSE_TRADE, offer)

    game.scheduler.advance(game.config.trade_timeout)
    assert game.state.pending_trade is None
    assert game.state.history[0] == "The trade offer expired"


def test_trade_accept_and_late_timeout(playing_game):
    game = playing_game()
    _no_sevens(game)
    alice, bob = game.state.players
    give(game, alice, wood=1)
    give(game, bob, ore=1)
    assert game.step(Action.ROLL_DICE)
    assert game.step(Action.PROPOSE_TRADE,
                     ProposeTradePayload(bob.id, {ResourceType.WOOD: 1}, {ResourceType.ORE: 1}))

    assert not game.step(Action.ACCEPT_TRADE, player_id=alice.id)
    assert game.step(Action.ACCEPT_TRADE, player_id=bob.id)
    assert alice.resources[ResourceType.ORE] == 1
    assert bob.resources[ResourceType.WOOD] == 1

    message = game.state.history[0]
    game.scheduler.advance(game.config.trade_timeout)
    assert game.state.history[0] == message


def test_end_turn_cancels_pending_trade(playing_game):
    game = playing_game()
    _no_sevens(game)
    alice, bob = game.state.players
    give(game, alice, wood=1)
    assert game.step(Action.ROLL_DICE)
    assert game.step(Action.PROPOSE_TRADE,
                     ProposeTradePayload(bob.id, {ResourceType.WOOD: 1}, {ResourceType.ORE: 1}))
    assert game.step(Action.END_TURN)
    assert game.state.pending_trade is None
    # The timeout belongs to the previous turn and never fires
    assert game.scheduler.advance(game.config.trade_timeout) == 0


def test_history_is_bounded(playing_game):
    game = playing_game(history_size=3)
    _no_sevens(game)
    for _ in range(4):
        _pass_turn(game)
    assert len(game.state.history) == 3
