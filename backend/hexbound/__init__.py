"""
HexBound simulation engine.
"""
from .state import (
    ENVIRONMENT_WINNER,
    RESOURCE_TYPES,
    DestructionEvent,
    DevCard,
    DevCardType,
    Difficulty,
    Edge,
    GameMode,
    GameState,
    Hex,
    Phase,
    Player,
    PlayerStats,
    PortType,
    ResourceType,
    Terrain,
    TradeOffer,
    Vertex,
    edge_id,
    hex_id,
)
from .board import BoardGraph, HEX_SIZE, MIN_RADIUS, vertex_key
from .config import GameConfig
from .errors import IllegalActionError
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
    victory_points,
)
from .serialization import (
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

__all__ = [
    "ENVIRONMENT_WINNER",
    "RESOURCE_TYPES",
    "Action",
    "ActionPayload",
    "BoardGraph",
    "BuildCityPayload",
    "BuildRoadPayload",
    "BuildSettlementPayload",
    "DestructionEvent",
    "DevCard",
    "DevCardType",
    "Difficulty",
    "DiscardResourcesPayload",
    "Edge",
    "Game",
    "GameConfig",
    "GameMode",
    "GameState",
    "HEX_SIZE",
    "Hex",
    "IllegalActionError",
    "MIN_RADIUS",
    "MoveRobberPayload",
    "Phase",
    "PlayDevCardPayload",
    "Player",
    "PlayerStats",
    "PortType",
    "ProposeTradePayload",
    "ResourceType",
    "StealResourcePayload",
    "Terrain",
    "TradeBankPayload",
    "TradeOffer",
    "Vertex",
    "apply_snapshot",
    "deserialize_action",
    "deserialize_action_payload",
    "deserialize_game",
    "edge_id",
    "hex_id",
    "serialize_action",
    "serialize_action_payload",
    "serialize_game",
    "snapshot_from_json",
    "snapshot_to_json",
    "vertex_key",
    "victory_points",
]
