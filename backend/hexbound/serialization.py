"""
Snapshot serialization for replicating a game between instances.

A snapshot is a JSON-serializable dictionary: a compact hex table, sparse
ownership maps, per-player holdings and the scalar turn state. Incoming
snapshots are validated with pydantic and fully replace the receiving
game's board and state.
"""
import json
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from .board import BoardGraph
from .game import (
    Action,
    ActionPayload,
    BuildCityPayload,
    BuildRoadPayload,
    BuildSettlementPayload,
    DiscardResourcesPayload,
    Game,
    MoveRobberPayload,
    PlayDevCardPayload,
    ProposeTradePayload,
    StealResourcePayload,
    TradeBankPayload,
)
from .state import (
    DevCard,
    DevCardType,
    Difficulty,
    GameMode,
    GameState,
    Hex,
    Phase,
    Player,
    PlayerStats,
    ResourceType,
    Terrain,
    TradeOffer,
    empty_resources,
)

SNAPSHOT_VERSION = 1


# Validation models
class PlayerSnapshot(BaseModel):
    """Per-player holdings in a snapshot."""
    id: int
    name: str
    is_ai: bool = False
    difficulty: str = Difficulty.NORMAL.value
    resources: Dict[str, int]
    settlements: List[str] = Field(default_factory=list)
    cities: List[str] = Field(default_factory=list)
    roads: List[str] = Field(default_factory=list)
    dev_cards: List[Tuple[str, int]] = Field(default_factory=list)  # (card type, purchase turn token)
    knights_played: int = 0
    eliminated: bool = False
    stats: Dict[str, int] = Field(default_factory=dict)


class TradeSnapshot(BaseModel):
    """A pending peer trade in a snapshot."""
    offer_id: int
    proposer_id: int
    target_id: int
    give: Dict[str, int]
    receive: Dict[str, int]
    turn_token: int
    expires_at: float


class GameSnapshot(BaseModel):
    """Complete replicable game snapshot."""
    version: int = SNAPSHOT_VERSION
    radius: int
    hexes: List[Tuple[int, int, str, Optional[int]]]  # [q, r, terrain, number]
    vertices: Dict[str, Tuple[int, bool]] = Field(default_factory=dict)  # owned only: id -> [owner, is_city]
    edges: Dict[str, int] = Field(default_factory=dict)  # owned only: id -> owner
    players: List[PlayerSnapshot]
    phase: str
    mode: str = GameMode.STANDARD.value
    current_player_index: int = 0
    dice: Optional[Tuple[int, int]] = None
    has_rolled: bool = False
    turn_token: int = 0
    rotation: int = 0
    placement_order: List[int] = Field(default_factory=list)
    placement_step: int = 0
    placement_settlement: Optional[str] = None
    robbers: List[str] = Field(default_factory=list)
    pending_discards: Dict[int, int] = Field(default_factory=dict)
    awaiting_robber: bool = False
    awaiting_victim: bool = False
    victim_candidates: List[int] = Field(default_factory=list)
    friendly_robber: bool = False
    pending_trade: Optional[TradeSnapshot] = None
    next_offer_id: int = 1
    free_roads: int = 0
    dev_card_played: bool = False
    deck: List[str] = Field(default_factory=list)
    longest_road_holder: Optional[int] = None
    longest_road_length: int = 4
    largest_army_holder: Optional[int] = None
    largest_army_size: int = 2
    bank: Dict[str, int]
    win_target: int = 10
    winners: List[int] = Field(default_factory=list)
    history: List[str] = Field(default_factory=list)
    clock: float = 0.0  # Scheduler time, so trade countdowns resume where they were


def _resources_out(resources: Dict[ResourceType, int]) -> Dict[str, int]:
    return {rt.value: count for rt, count in resources.items()}


def _resources_in(data: Dict[str, int]) -> Dict[ResourceType, int]:
    resources = empty_resources()
    for rt, count in data.items():
        resources[ResourceType(rt)] = count
    return resources


def _bundle_in(data: Dict[str, int]) -> Dict[ResourceType, int]:
    """Sparse resource bundle (trade sides keep only the listed resources)."""
    return {ResourceType(rt): count for rt, count in data.items()}


def serialize_player(player: Player) -> Dict[str, Any]:
    """Serialize a Player to a dictionary."""
    return {
        "id": player.id,
        "name": player.name,
        "is_ai": player.is_ai,
        "difficulty": player.difficulty.value,
        "resources": _resources_out(player.resources),
        "settlements": list(player.settlements),
        "cities": list(player.cities),
        "roads": list(player.roads),
        "dev_cards": [[card.card_type.value, card.bought_turn] for card in player.dev_cards],
        "knights_played": player.knights_played,
        "eliminated": player.eliminated,
        "stats": dict(vars(player.stats)),
    }


def deserialize_player(data: PlayerSnapshot) -> Player:
    """Build a Player from a validated snapshot entry."""
    return Player(
        id=data.id,
        name=data.name,
        is_ai=data.is_ai,
        difficulty=Difficulty(data.difficulty),
        resources=_resources_in(data.resources),
        settlements=list(data.settlements),
        cities=list(data.cities),
        roads=list(data.roads),
        dev_cards=[DevCard(card_type=DevCardType(ct), bought_turn=token) for ct, token in data.dev_cards],
        knights_played=data.knights_played,
        eliminated=data.eliminated,
        stats=PlayerStats(**data.stats),
    )


def serialize_trade(offer: Optional[TradeOffer]) -> Optional[Dict[str, Any]]:
    if offer is None:
        return None
    return {
        "offer_id": offer.offer_id,
        "proposer_id": offer.proposer_id,
        "target_id": offer.target_id,
        "give": _resources_out(offer.give),
        "receive": _resources_out(offer.receive),
        "turn_token": offer.turn_token,
        "expires_at": offer.expires_at,
    }


def serialize_game(game: Game) -> Dict[str, Any]:
    """
    Serialize a running game to a JSON-serializable dictionary.
    """
    board = game.board
    state = game.state
    return {
        "version": SNAPSHOT_VERSION,
        "radius": board.radius,
        "hexes": [[hx.q, hx.r, hx.terrain.value, hx.number] for hx in board.hexes.values()],
        "vertices": {
            v.id: [v.owner, v.is_city] for v in board.vertices.values() if v.owner is not None
        },
        "edges": {e.id: e.owner for e in board.edges.values() if e.owner is not None},
        "players": [serialize_player(p) for p in state.players],
        "phase": state.phase.value,
        "mode": state.mode.value,
        "current_player_index": state.current_player_index,
        "dice": list(state.dice) if state.dice else None,
        "has_rolled": state.has_rolled,
        "turn_token": state.turn_token,
        "rotation": state.rotation,
        "placement_order": list(state.placement_order),
        "placement_step": state.placement_step,
        "placement_settlement": state.placement_settlement,
        "robbers": list(state.robbers),
        "pending_discards": {str(pid): n for pid, n in state.pending_discards.items()},
        "awaiting_robber": state.awaiting_robber,
        "awaiting_victim": state.awaiting_victim,
        "victim_candidates": list(state.victim_candidates),
        "friendly_robber": state.friendly_robber,
        "pending_trade": serialize_trade(state.pending_trade),
        "next_offer_id": state.next_offer_id,
        "free_roads": state.free_roads,
        "dev_card_played": state.dev_card_played,
        "deck": [card.value for card in state.deck],
        "longest_road_holder": state.longest_road_holder,
        "longest_road_length": state.longest_road_length,
        "largest_army_holder": state.largest_army_holder,
        "largest_army_size": state.largest_army_size,
        "bank": _resources_out(state.bank),
        "win_target": state.win_target,
        "winners": list(state.winners),
        "history": list(state.history),
        "clock": game.scheduler.now,
    }


def deserialize_game(data: Dict[str, Any], game: Optional[Game] = None) -> Tuple[GameState, BoardGraph]:
    """
    Validate a snapshot and rebuild the state and board it describes.

    Raises pydantic.ValidationError for malformed snapshots and ValueError
    for ids that do not exist on the described board.
    """
    snapshot = GameSnapshot.model_validate(data)
    if snapshot.version != SNAPSHOT_VERSION:
        raise ValueError(f"Unsupported snapshot version {snapshot.version}")

    hexes = [
        Hex(q=q, r=r, terrain=Terrain(terrain), number=number)
        for q, r, terrain, number in snapshot.hexes
    ]
    rng = game.rng if game is not None else None
    board = BoardGraph.from_hexes(hexes, rng=rng)
    board.radius = snapshot.radius

    for vid, (owner, is_city) in snapshot.vertices.items():
        vertex = board.get_vertex(vid)
        if vertex is None:
            raise ValueError(f"Snapshot vertex {vid} is not on the board")
        vertex.owner = owner
        vertex.is_city = is_city
    for eid, owner in snapshot.edges.items():
        edge = board.get_edge(eid)
        if edge is None:
            raise ValueError(f"Snapshot edge {eid} is not on the board")
        edge.owner = owner

    pending_trade = None
    if snapshot.pending_trade is not None:
        trade = snapshot.pending_trade
        pending_trade = TradeOffer(
            offer_id=trade.offer_id,
            proposer_id=trade.proposer_id,
            target_id=trade.target_id,
            give=_bundle_in(trade.give),
            receive=_bundle_in(trade.receive),
            turn_token=trade.turn_token,
            expires_at=trade.expires_at,
        )

    state = GameState(
        players=[deserialize_player(p) for p in snapshot.players],
        phase=Phase(snapshot.phase),
        mode=GameMode(snapshot.mode),
        current_player_index=snapshot.current_player_index,
        dice=tuple(snapshot.dice) if snapshot.dice else None,
        has_rolled=snapshot.has_rolled,
        turn_token=snapshot.turn_token,
        rotation=snapshot.rotation,
        placement_order=list(snapshot.placement_order),
        placement_step=snapshot.placement_step,
        placement_settlement=snapshot.placement_settlement,
        robbers=list(snapshot.robbers),
        pending_discards=dict(snapshot.pending_discards),
        awaiting_robber=snapshot.awaiting_robber,
        awaiting_victim=snapshot.awaiting_victim,
        victim_candidates=list(snapshot.victim_candidates),
        friendly_robber=snapshot.friendly_robber,
        pending_trade=pending_trade,
        next_offer_id=snapshot.next_offer_id,
        free_roads=snapshot.free_roads,
        dev_card_played=snapshot.dev_card_played,
        deck=[DevCardType(card) for card in snapshot.deck],
        longest_road_holder=snapshot.longest_road_holder,
        longest_road_length=snapshot.longest_road_length,
        largest_army_holder=snapshot.largest_army_holder,
        largest_army_size=snapshot.largest_army_size,
        bank=_resources_in(snapshot.bank),
        win_target=snapshot.win_target,
        winners=list(snapshot.winners),
        history=list(snapshot.history),
    )
    return state, board


def apply_snapshot(game: Game, data: Dict[str, Any]) -> Game:
    """Replace the game's board and state with those of a received snapshot."""
    state, board = deserialize_game(data, game)
    game.replace(state, board, clock=float(data.get("clock", 0.0)))
    return game


def snapshot_to_json(game: Game) -> str:
    return json.dumps(serialize_game(game))


def snapshot_from_json(game: Game, text: str) -> Game:
    return apply_snapshot(game, json.loads(text))


# ----------------------------------------------------------------------
# Intents
# ----------------------------------------------------------------------

def serialize_action(action: Action) -> str:
    """Serialize an Action to a string."""
    return action.value


def deserialize_action(value: str) -> Action:
    """Deserialize a string to an Action."""
    return Action(value)


def serialize_action_payload(payload: Optional[ActionPayload]) -> Optional[Dict[str, Any]]:
    """Serialize an action payload to a dictionary tagged with its type."""
    if payload is None:
        return None
    if isinstance(payload, BuildRoadPayload):
        return {"type": "build_road", "edge_id": payload.edge_id}
    if isinstance(payload, BuildSettlementPayload):
        return {"type": "build_settlement", "vertex_id": payload.vertex_id}
    if isinstance(payload, BuildCityPayload):
        return {"type": "build_city", "vertex_id": payload.vertex_id}
    if isinstance(payload, PlayDevCardPayload):
        picks = payload.year_of_plenty_resources
        return {
            "type": "play_dev_card",
            "card_type": payload.card_type.value,
            "year_of_plenty_resources": [r.value for r in picks] if picks else None,
            "monopoly_resource": payload.monopoly_resource.value if payload.monopoly_resource else None,
        }
    if isinstance(payload, TradeBankPayload):
        return {"type": "trade_bank", "give": payload.give.value, "receive": payload.receive.value}
    if isinstance(payload, ProposeTradePayload):
        return {
            "type": "propose_trade",
            "target_player_id": payload.target_player_id,
            "give": _resources_out(payload.give),
            "receive": _resources_out(payload.receive),
        }
    if isinstance(payload, MoveRobberPayload):
        return {"type": "move_robber", "hex_id": payload.hex_id, "robber_index": payload.robber_index}
    if isinstance(payload, StealResourcePayload):
        return {"type": "steal_resource", "victim_id": payload.victim_id}
    if isinstance(payload, DiscardResourcesPayload):
        return {"type": "discard_resources", "resources": _resources_out(payload.resources)}
    raise ValueError(f"Unknown payload type: {type(payload).__name__}")


def deserialize_action_payload(data: Optional[Dict[str, Any]]) -> Optional[ActionPayload]:
    """Deserialize a dictionary produced by serialize_action_payload."""
    if data is None:
        return None
    payload_type = data.get("type")
    if payload_type == "build_road":
        return BuildRoadPayload(edge_id=data["edge_id"])
    if payload_type == "build_settlement":
        return BuildSettlementPayload(vertex_id=data["vertex_id"])
    if payload_type == "build_city":
        return BuildCityPayload(vertex_id=data["vertex_id"])
    if payload_type == "play_dev_card":
        picks = data.get("year_of_plenty_resources")
        monopoly = data.get("monopoly_resource")
        return PlayDevCardPayload(
            card_type=DevCardType(data["card_type"]),
            year_of_plenty_resources=tuple(ResourceType(r) for r in picks) if picks else None,
            monopoly_resource=ResourceType(monopoly) if monopoly else None,
        )
    if payload_type == "trade_bank":
        return TradeBankPayload(give=ResourceType(data["give"]), receive=ResourceType(data["receive"]))
    if payload_type == "propose_trade":
        return ProposeTradePayload(
            target_player_id=data["target_player_id"],
            give={ResourceType(r): n for r, n in data["give"].items() if n},
            receive={ResourceType(r): n for r, n in data["receive"].items() if n},
        )
    if payload_type == "move_robber":
        return MoveRobberPayload(hex_id=data["hex_id"], robber_index=data.get("robber_index", 0))
    if payload_type == "steal_resource":
        return StealResourcePayload(victim_id=data["victim_id"])
    if payload_type == "discard_resources":
        return DiscardResourcesPayload(resources={ResourceType(r): n for r, n in data["resources"].items()})
    raise ValueError(f"Unknown payload type: {payload_type}")
