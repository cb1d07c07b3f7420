"""
Bank, cost tables, dice production, trading and development cards.
"""
import math
import random
from typing import Dict, List, Optional

from .board import BoardGraph
from .errors import IllegalActionError
from .logging_config import get_logger
from .state import (
    DevCard,
    DevCardType,
    GameState,
    Player,
    PortType,
    RESOURCE_TYPES,
    ResourceType,
    TradeOffer,
    empty_resources,
)

logger = get_logger(__name__)

ROAD_COST = {ResourceType.WOOD: 1, ResourceType.BRICK: 1}
SETTLEMENT_COST = {
    ResourceType.WOOD: 1,
    ResourceType.BRICK: 1,
    ResourceType.SHEEP: 1,
    ResourceType.WHEAT: 1,
}
CITY_COST = {ResourceType.ORE: 3, ResourceType.WHEAT: 2}
DEV_CARD_COST = {ResourceType.SHEEP: 1, ResourceType.WHEAT: 1, ResourceType.ORE: 1}

COSTS = {
    "road": ROAD_COST,
    "settlement": SETTLEMENT_COST,
    "city": CITY_COST,
    "dev_card": DEV_CARD_COST,
}

BANK_PER_RESOURCE = 19
DEFAULT_TRADE_RATE = 4
GENERIC_PORT_RATE = 3
RESOURCE_PORT_RATE = 2

# Standard deck for up to four players on a 19-hex board
BASE_DECK = {
    DevCardType.KNIGHT: 14,
    DevCardType.ROAD_BUILDING: 2,
    DevCardType.YEAR_OF_PLENTY: 2,
    DevCardType.MONOPOLY: 2,
    DevCardType.VICTORY_POINT: 5,
}


def supply_scale(player_count: int, hex_count: int) -> int:
    """Multiplier for bank and deck sizes on bigger tables and boards."""
    return math.ceil(max(1.0, player_count / 4, hex_count / 19))


def create_bank(player_count: int, hex_count: int) -> Dict[ResourceType, int]:
    scale = supply_scale(player_count, hex_count)
    return {resource: BANK_PER_RESOURCE * scale for resource in RESOURCE_TYPES}


def create_deck(player_count: int, hex_count: int, rng: random.Random) -> List[DevCardType]:
    """Build and shuffle the development deck once, at game start."""
    scale = supply_scale(player_count, hex_count)
    deck = []
    for card_type, count in BASE_DECK.items():
        deck.extend([card_type] * (count * scale))
    rng.shuffle(deck)
    return deck


def pay(state: GameState, player: Player, cost: Dict[ResourceType, int], what: str):
    """Move a cost from the player to the bank, or raise if the player cannot afford it."""
    for resource, amount in cost.items():
        if player.resources[resource] < amount:
            raise IllegalActionError(f"Insufficient {resource.value} to buy {what}")
    for resource, amount in cost.items():
        player.resources[resource] -= amount
        state.bank[resource] += amount


def grant(state: GameState, player: Player, resource: ResourceType, amount: int) -> int:
    """Give up to `amount` from the bank; returns how many were actually handed out."""
    given = min(amount, state.bank[resource])
    if given < amount:
        logger.warning(
            "bank_shortfall",
            player_id=player.id,
            resource=resource.value,
            requested=amount,
            given=given,
        )
    state.bank[resource] -= given
    player.resources[resource] += given
    return given


def produce(state: GameState, board: BoardGraph, dice_total: int) -> Dict[int, Dict[ResourceType, int]]:
    """
    Distribute resources for a dice total.

    Every hex with the rolled number and no robber pays 1 per settlement and
    2 per city. When the bank cannot cover a resource's total demand, the
    remaining supply is handed out in turn order starting with the current
    player and the shortfall is logged.
    """
    demand: Dict[ResourceType, Dict[int, int]] = {resource: {} for resource in RESOURCE_TYPES}
    for hx in board.hexes.values():
        if hx.number != dice_total or hx.resource is None or hx.id in state.robbers:
            continue
        for vid in hx.vertex_ids:
            vertex = board.vertices[vid]
            if vertex.owner is None:
                continue
            owed = demand[hx.resource]
            owed[vertex.owner] = owed.get(vertex.owner, 0) + (2 if vertex.is_city else 1)

    count = len(state.players)
    turn_order = [state.players[(state.current_player_index + i) % count] for i in range(count)]

    gains: Dict[int, Dict[ResourceType, int]] = {}
    for resource, owed in demand.items():
        total = sum(owed.values())
        if total == 0:
            continue
        if total > state.bank[resource]:
            logger.warning(
                "bank_shortfall",
                resource=resource.value,
                requested=total,
                available=state.bank[resource],
            )
        for player in turn_order:
            amount = min(owed.get(player.id, 0), state.bank[resource])
            if amount <= 0:
                continue
            state.bank[resource] -= amount
            player.resources[resource] += amount
            player.stats.resources_produced += amount
            gains.setdefault(player.id, empty_resources())[resource] += amount
    return gains


def trade_rate(board: BoardGraph, player_id: int, resource: ResourceType) -> int:
    """4:1 by default, 3:1 with a generic port, 2:1 with the matching port."""
    rate = DEFAULT_TRADE_RATE
    for vertex in board.vertices_owned_by(player_id):
        if vertex.port == PortType.GENERIC:
            rate = min(rate, GENERIC_PORT_RATE)
        elif vertex.port is not None and vertex.port.value == resource.value:
            rate = min(rate, RESOURCE_PORT_RATE)
    return rate


def bank_trade(state: GameState, board: BoardGraph, player: Player,
               give: ResourceType, receive: ResourceType) -> int:
    """Trade `rate` of one resource for one of another with the bank. Returns the rate used."""
    if give == receive:
        raise IllegalActionError("Cannot trade a resource for itself")
    rate = trade_rate(board, player.id, give)
    if player.resources[give] < rate:
        raise IllegalActionError(
            f"Insufficient {give.value} to trade (have {player.resources[give]}, need {rate})"
        )
    if state.bank[receive] < 1:
        raise IllegalActionError(f"Bank has no {receive.value} left")

    player.resources[give] -= rate
    state.bank[give] += rate
    state.bank[receive] -= 1
    player.resources[receive] += 1
    return rate


def can_bank_trade(state: GameState, board: BoardGraph, player: Player) -> bool:
    """True if any 4:1/port trade is currently possible for the player."""
    for give in RESOURCE_TYPES:
        if player.resources[give] < trade_rate(board, player.id, give):
            continue
        if any(state.bank[receive] > 0 for receive in RESOURCE_TYPES if receive != give):
            return True
    return False


# ----------------------------------------------------------------------
# Peer trading
# ----------------------------------------------------------------------

def _validate_bundle(bundle: Dict[ResourceType, int], label: str):
    if not bundle or any(amount < 0 for amount in bundle.values()) or sum(bundle.values()) == 0:
        raise IllegalActionError(f"Trade must {label} at least one resource")


def propose_trade(state: GameState, proposer: Player, target: Player,
                  give: Dict[ResourceType, int], receive: Dict[ResourceType, int],
                  now: float, timeout: float) -> TradeOffer:
    """Open a pending offer. Only one offer can be pending at a time."""
    if state.pending_trade is not None:
        raise IllegalActionError("A trade offer is already pending")
    if target.id == proposer.id:
        raise IllegalActionError("Cannot trade with yourself")
    if target.eliminated:
        raise IllegalActionError(f"Player {target.id} has been eliminated")
    _validate_bundle(give, "give")
    _validate_bundle(receive, "receive")
    if not proposer.has_resources(give):
        raise IllegalActionError("Insufficient resources to offer this trade")

    offer = TradeOffer(
        offer_id=state.next_offer_id,
        proposer_id=proposer.id,
        target_id=target.id,
        give=dict(give),
        receive=dict(receive),
        turn_token=state.turn_token,
        expires_at=now + timeout,
    )
    state.next_offer_id += 1
    state.pending_trade = offer
    return offer


def accept_trade(state: GameState, responder_id: int) -> TradeOffer:
    """Verify both sides and swap holdings in one step."""
    offer = state.pending_trade
    if offer is None:
        raise IllegalActionError("No trade offer is pending")
    if responder_id != offer.target_id:
        raise IllegalActionError(f"Player {responder_id} is not the target of this offer")

    proposer = state.player(offer.proposer_id)
    target = state.player(offer.target_id)
    if not proposer.has_resources(offer.give):
        raise IllegalActionError("Proposer no longer holds the offered resources")
    if not target.has_resources(offer.receive):
        raise IllegalActionError("Insufficient resources to accept this trade")

    for resource, amount in offer.give.items():
        proposer.resources[resource] -= amount
        target.resources[resource] += amount
    for resource, amount in offer.receive.items():
        target.resources[resource] -= amount
        proposer.resources[resource] += amount
    proposer.stats.trades_completed += 1
    target.stats.trades_completed += 1
    state.pending_trade = None
    return offer


def decline_trade(state: GameState, player_id: int) -> TradeOffer:
    """Target declines or proposer withdraws."""
    offer = state.pending_trade
    if offer is None:
        raise IllegalActionError("No trade offer is pending")
    if player_id not in (offer.proposer_id, offer.target_id):
        raise IllegalActionError(f"Player {player_id} is not part of this offer")
    state.pending_trade = None
    return offer


def expire_trade(state: GameState, offer_id: int) -> bool:
    """Clear the pending offer if it is still the one that timed out."""
    offer = state.pending_trade
    if offer is None or offer.offer_id != offer_id:
        return False
    state.pending_trade = None
    return True


# ----------------------------------------------------------------------
# Development cards
# ----------------------------------------------------------------------

def buy_dev_card(state: GameState, player: Player) -> DevCard:
    if not state.deck:
        raise IllegalActionError("No development cards available")
    pay(state, player, DEV_CARD_COST, "a development card")
    card = DevCard(card_type=state.deck.pop(), bought_turn=state.turn_token)
    player.dev_cards.append(card)
    player.stats.dev_cards_bought += 1
    return card


def find_playable_card(state: GameState, player: Player, card_type: DevCardType) -> Optional[DevCard]:
    """A card of this type that was not bought during the current turn."""
    for card in player.dev_cards:
        if card.card_type == card_type and card.bought_turn != state.turn_token:
            return card
    return None


def year_of_plenty(state: GameState, player: Player, picks: List[ResourceType]) -> Dict[ResourceType, int]:
    """Take two resources of the player's choice from the bank (bank-capped)."""
    if len(picks) != 2:
        raise IllegalActionError(f"year_of_plenty takes exactly 2 resources, got {len(picks)}")
    received = empty_resources()
    for resource in picks:
        received[resource] += grant(state, player, resource, 1)
    return received


def monopoly(state: GameState, player: Player, resource: ResourceType) -> int:
    """Collect every unit of one resource from all opponents."""
    total = 0
    for other in state.players:
        if other.id == player.id:
            continue
        total += other.resources[resource]
        other.resources[resource] = 0
    player.resources[resource] += total
    return total


def discard(state: GameState, player: Player, cards: Dict[ResourceType, int]):
    for resource, amount in cards.items():
        if amount < 0 or player.resources[resource] < amount:
            raise IllegalActionError(f"Insufficient {resource.value} to discard")
    for resource, amount in cards.items():
        player.resources[resource] -= amount
        state.bank[resource] += amount
    player.stats.resources_discarded += sum(cards.values())


def return_all_to_bank(state: GameState, player: Player):
    for resource in RESOURCE_TYPES:
        state.bank[resource] += player.resources[resource]
        player.resources[resource] = 0
