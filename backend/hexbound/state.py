"""
Data model for the HexBound simulation engine.

Plain dataclasses and enums only. Behaviour lives in the board, rules,
economy and game modules.
"""
from enum import Enum
from typing import Dict, List, Optional, Tuple
from dataclasses import dataclass, field


class ResourceType(Enum):
    """Resource types in the game."""
    WOOD = "wood"
    BRICK = "brick"
    SHEEP = "sheep"
    WHEAT = "wheat"
    ORE = "ore"


class Terrain(Enum):
    """Hex terrain. SEA is the non-playable border type."""
    WOOD = "wood"
    BRICK = "brick"
    SHEEP = "sheep"
    WHEAT = "wheat"
    ORE = "ore"
    DESERT = "desert"
    SEA = "sea"

    @property
    def resource(self) -> Optional[ResourceType]:
        """Resource produced by this terrain (None for desert and sea)."""
        try:
            return ResourceType(self.value)
        except ValueError:
            return None


class PortType(Enum):
    """Harbour types. GENERIC trades 3:1, resource ports trade 2:1."""
    GENERIC = "3:1"
    WOOD = "wood"
    BRICK = "brick"
    SHEEP = "sheep"
    WHEAT = "wheat"
    ORE = "ore"


class DevCardType(Enum):
    """Development card types."""
    KNIGHT = "knight"
    ROAD_BUILDING = "road_building"
    YEAR_OF_PLENTY = "year_of_plenty"
    MONOPOLY = "monopoly"
    VICTORY_POINT = "victory_point"


class Phase(Enum):
    """Top-level game phases."""
    INITIAL_PLACEMENT = "initial_placement"
    PLAY = "play"
    GAME_OVER = "game_over"


class GameMode(Enum):
    """Board variants."""
    STANDARD = "standard"
    EXPANDING = "expanding"
    SHRINKING = "shrinking"  # battle royale


class Difficulty(Enum):
    """Scripted player difficulty tiers."""
    EASY = "easy"
    NORMAL = "normal"
    HARD = "hard"


RESOURCE_TYPES: List[ResourceType] = list(ResourceType)

# Winner id used when the board itself outlasts every player
ENVIRONMENT_WINNER = -1


def empty_resources() -> Dict[ResourceType, int]:
    """Return a zeroed resource mapping."""
    return {resource: 0 for resource in RESOURCE_TYPES}


@dataclass
class Hex:
    """A hex tile in axial coordinates."""
    q: int
    r: int
    terrain: Terrain
    number: Optional[int] = None  # None for desert
    vertex_ids: List[str] = field(default_factory=list)
    edge_ids: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.number is not None and (self.number < 2 or self.number > 12 or self.number == 7):
            raise ValueError(f"Number token must be 2-6 or 8-12, got {self.number}")

    @property
    def id(self) -> str:
        return hex_id(self.q, self.r)

    @property
    def resource(self) -> Optional[ResourceType]:
        return self.terrain.resource

    @property
    def ring(self) -> int:
        """Hex distance from the board origin."""
        return (abs(self.q) + abs(self.r) + abs(self.q + self.r)) // 2


def hex_id(q: int, r: int) -> str:
    return f"{q},{r}"


@dataclass
class Vertex:
    """A corner where settlements and cities are built."""
    id: str
    x: float
    y: float
    owner: Optional[int] = None
    is_city: bool = False
    port: Optional[PortType] = None
    hex_ids: List[str] = field(default_factory=list)

    @property
    def position(self) -> Tuple[float, float]:
        return (self.x, self.y)


@dataclass
class Edge:
    """A side of a hex where roads are built."""
    id: str
    v1: str
    v2: str
    owner: Optional[int] = None

    @property
    def vertex_ids(self) -> Tuple[str, str]:
        return (self.v1, self.v2)


def edge_id(vertex_a: str, vertex_b: str) -> str:
    """Direction-independent edge id: sorted vertex ids joined by '|'."""
    first, second = sorted((vertex_a, vertex_b))
    return f"{first}|{second}"


@dataclass
class DevCard:
    """A development card in hand, stamped with the turn token it was bought on."""
    card_type: DevCardType
    bought_turn: int


@dataclass
class PlayerStats:
    """Cumulative per-player counters."""
    roads_built: int = 0
    settlements_built: int = 0
    cities_built: int = 0
    dev_cards_bought: int = 0
    dev_cards_played: int = 0
    resources_produced: int = 0
    resources_stolen: int = 0
    resources_discarded: int = 0
    trades_completed: int = 0


@dataclass
class Player:
    """Represents a player in the game."""
    id: int
    name: str
    is_ai: bool = False
    difficulty: Difficulty = Difficulty.NORMAL
    resources: Dict[ResourceType, int] = field(default_factory=empty_resources)
    settlements: List[str] = field(default_factory=list)  # Vertex ids
    cities: List[str] = field(default_factory=list)  # Vertex ids
    roads: List[str] = field(default_factory=list)  # Edge ids
    dev_cards: List[DevCard] = field(default_factory=list)
    knights_played: int = 0
    victory_points: int = 0
    eliminated: bool = False
    stats: PlayerStats = field(default_factory=PlayerStats)

    def total_resources(self) -> int:
        return sum(self.resources.values())

    def has_resources(self, cost: Dict[ResourceType, int]) -> bool:
        return all(self.resources[resource] >= amount for resource, amount in cost.items())

    def structure_count(self) -> int:
        return len(self.settlements) + len(self.cities) + len(self.roads)

    def victory_point_cards(self) -> int:
        return sum(1 for card in self.dev_cards if card.card_type == DevCardType.VICTORY_POINT)


@dataclass
class TradeOffer:
    """A pending player-to-player offer, from the proposer's perspective."""
    offer_id: int
    proposer_id: int
    target_id: int
    give: Dict[ResourceType, int]  # Proposer gives
    receive: Dict[ResourceType, int]  # Proposer receives
    turn_token: int
    expires_at: float


@dataclass(frozen=True)
class DestructionEvent:
    """A building or road removed from the board by a shrink or an elimination."""
    kind: str  # "settlement", "city" or "road"
    element_id: str
    owner: int


@dataclass
class GameState:
    """Mutable game state owned by a Game."""
    players: List[Player]
    phase: Phase = Phase.INITIAL_PLACEMENT
    mode: GameMode = GameMode.STANDARD
    current_player_index: int = 0
    dice: Optional[Tuple[int, int]] = None
    has_rolled: bool = False
    turn_token: int = 0
    rotation: int = 0

    # Initial placement bookkeeping
    placement_order: List[int] = field(default_factory=list)  # Player indices, snake order
    placement_step: int = 0
    placement_settlement: Optional[str] = None  # Settlement awaiting its road

    # Robber resolution
    robbers: List[str] = field(default_factory=list)  # Hex ids
    pending_discards: Dict[int, int] = field(default_factory=dict)  # Player id -> cards owed
    awaiting_robber: bool = False
    awaiting_victim: bool = False
    victim_candidates: List[int] = field(default_factory=list)
    friendly_robber: bool = False

    # Trading
    pending_trade: Optional[TradeOffer] = None
    next_offer_id: int = 1

    # Development cards
    free_roads: int = 0
    dev_card_played: bool = False
    deck: List[DevCardType] = field(default_factory=list)

    # Awards
    longest_road_holder: Optional[int] = None
    longest_road_length: int = 4
    largest_army_holder: Optional[int] = None
    largest_army_size: int = 2

    bank: Dict[ResourceType, int] = field(default_factory=empty_resources)
    win_target: int = 10
    winners: List[int] = field(default_factory=list)
    history: List[str] = field(default_factory=list)  # Most recent first

    @property
    def current_player(self) -> Player:
        return self.players[self.current_player_index]

    def player(self, player_id: int) -> Player:
        for player in self.players:
            if player.id == player_id:
                return player
        raise ValueError(f"Player {player_id} not found")

    def active_players(self) -> List[Player]:
        return [p for p in self.players if not p.eliminated]

    @property
    def dice_total(self) -> Optional[int]:
        if self.dice is None:
            return None
        return self.dice[0] + self.dice[1]

    @property
    def robber_pending(self) -> bool:
        """True while a 7 or knight still has discard, robber or victim steps open."""
        return bool(self.pending_discards) or self.awaiting_robber or self.awaiting_victim
