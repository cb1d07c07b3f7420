"""
Hex board topology for HexBound.

Hexes live in axial coordinates (q, r) with a flat-top layout. Vertices are
deduplicated through a canonical key built from the corner position rounded
to two decimals, and edges through the sorted pair of their vertex ids, so
neighbouring hexes always share the same Vertex and Edge objects.
"""
import math
import random
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .logging_config import get_logger
from .state import (
    DestructionEvent,
    Edge,
    Hex,
    PortType,
    Terrain,
    Vertex,
    edge_id,
    hex_id,
)

logger = get_logger(__name__)

HEX_SIZE = 50.0
MIN_RADIUS = 1
KEY_PRECISION = 2

AXIAL_DIRECTIONS = [(1, 0), (1, -1), (0, -1), (-1, 0), (-1, 1), (0, 1)]

# Resource terrains of a standard 19-hex board (the desert is added separately)
BASE_TERRAINS = (
    [Terrain.WOOD] * 4
    + [Terrain.BRICK] * 3
    + [Terrain.SHEEP] * 4
    + [Terrain.WHEAT] * 4
    + [Terrain.ORE] * 3
)
BASE_NUMBERS = [2, 3, 3, 4, 4, 5, 5, 6, 6, 8, 8, 9, 9, 10, 10, 11, 11, 12]

PORT_SEQUENCE = [
    PortType.GENERIC,
    PortType.WOOD,
    PortType.BRICK,
    PortType.SHEEP,
    PortType.WHEAT,
    PortType.ORE,
]
PORT_SPACING = 4

DESERT_PLACEMENT_ATTEMPTS = 50
NEW_HEX_DESERT_CHANCE = 0.1
DECAY_CHANCE = 0.1


def axial_ring(radius: int) -> List[Tuple[int, int]]:
    """Axial coordinates of every hex exactly `radius` steps from the origin."""
    if radius == 0:
        return [(0, 0)]
    results = []
    q, r = -radius, radius  # radius steps in direction 4
    for dq, dr in AXIAL_DIRECTIONS:
        for _ in range(radius):
            results.append((q, r))
            q, r = q + dq, r + dr
    return results


def axial_spiral(radius: int) -> List[Tuple[int, int]]:
    """All hexes within `radius`, ring by ring from the centre outward."""
    coords = []
    for ring in range(radius + 1):
        coords.extend(axial_ring(ring))
    return coords


def axial_distance(a: Tuple[int, int], b: Tuple[int, int]) -> int:
    dq = a[0] - b[0]
    dr = a[1] - b[1]
    return (abs(dq) + abs(dr) + abs(dq + dr)) // 2


def hex_center(q: int, r: int, size: float = HEX_SIZE) -> Tuple[float, float]:
    """Pixel centre of a flat-top hex."""
    x = size * 1.5 * q
    y = size * (math.sqrt(3) / 2 * q + math.sqrt(3) * r)
    return x, y


def hex_corners(q: int, r: int, size: float = HEX_SIZE) -> List[Tuple[float, float]]:
    """The six corner positions of a flat-top hex, counter-clockwise from east."""
    cx, cy = hex_center(q, r, size)
    corners = []
    for i in range(6):
        angle = math.radians(60 * i)
        corners.append((cx + size * math.cos(angle), cy + size * math.sin(angle)))
    return corners


def _canonical(value: float) -> float:
    # Adding 0.0 folds -0.0 into 0.0 so both sides of the axis share a key
    return round(value, KEY_PRECISION) + 0.0


def vertex_key(x: float, y: float) -> str:
    """Canonical vertex id for a corner position."""
    return f"{_canonical(x):.{KEY_PRECISION}f},{_canonical(y):.{KEY_PRECISION}f}"


class BoardGraph:
    """
    Hex, vertex and edge maps plus the adjacency needed by the rules.

    The graph is mutated in place by expand() and shrink(). Ownership lives
    on the Vertex/Edge objects; robbers are tracked by the game state and
    passed in where the board needs them.
    """

    def __init__(self, rng: Optional[random.Random] = None, hex_size: float = HEX_SIZE):
        self.rng = rng or random.Random()
        self.hex_size = hex_size
        self.radius = 0
        self.hexes: Dict[str, Hex] = {}
        self.vertices: Dict[str, Vertex] = {}
        self.edges: Dict[str, Edge] = {}
        self._vertex_edges: Dict[str, List[str]] = {}
        self._vertex_neighbors: Dict[str, List[str]] = {}
        self._edge_hexes: Dict[str, List[str]] = {}
        self.destruction_listeners: List[Callable[[DestructionEvent], None]] = []

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate(self, radius: int) -> "BoardGraph":
        """Build a fresh board of the given radius with terrain, numbers and ports."""
        if radius < MIN_RADIUS:
            raise ValueError(f"Board radius must be at least {MIN_RADIUS}, got {radius}")

        coords = axial_spiral(radius)
        terrains = self._place_deserts(coords, self._terrain_pool(len(coords)))
        producing = sum(1 for t in terrains if t != Terrain.DESERT)
        numbers = iter(self._number_pool(producing))

        self.hexes = {}
        for (q, r), terrain in zip(coords, terrains):
            number = None if terrain == Terrain.DESERT else next(numbers)
            self.hexes[hex_id(q, r)] = Hex(q=q, r=r, terrain=terrain, number=number)

        self.radius = radius
        self.vertices = {}
        self.edges = {}
        self._rebuild()
        self.assign_ports()

        logger.info(
            "board_generated",
            radius=radius,
            hexes=len(self.hexes),
            vertices=len(self.vertices),
            edges=len(self.edges),
        )
        return self

    @classmethod
    def from_hexes(cls, hexes: Iterable[Hex], rng: Optional[random.Random] = None,
                   hex_size: float = HEX_SIZE) -> "BoardGraph":
        """Rebuild a board from an explicit hex table (used when applying snapshots)."""
        board = cls(rng=rng, hex_size=hex_size)
        board.hexes = {h.id: h for h in hexes}
        board.radius = max((h.ring for h in board.hexes.values()), default=0)
        board._rebuild()
        board.assign_ports()
        return board

    def _terrain_pool(self, count: int) -> List[Terrain]:
        deserts = max(1, round(count / 19))
        pool = [BASE_TERRAINS[i % len(BASE_TERRAINS)] for i in range(count - deserts)]
        pool.extend([Terrain.DESERT] * deserts)
        return pool

    def _number_pool(self, count: int) -> List[int]:
        pool = [BASE_NUMBERS[i % len(BASE_NUMBERS)] for i in range(count)]
        self.rng.shuffle(pool)
        return pool

    def _place_deserts(self, coords: List[Tuple[int, int]], pool: List[Terrain]) -> List[Terrain]:
        """Shuffle the terrain pool, retrying until no two deserts touch (bounded)."""
        pool = list(pool)
        for _ in range(DESERT_PLACEMENT_ATTEMPTS):
            self.rng.shuffle(pool)
            deserts = [coords[i] for i, t in enumerate(pool) if t == Terrain.DESERT]
            if not any(
                axial_distance(a, b) == 1
                for i, a in enumerate(deserts)
                for b in deserts[i + 1:]
            ):
                return pool
        logger.debug("desert_spacing_unsatisfied", hexes=len(coords))
        return pool

    def _rebuild(self):
        """Recompute vertex and edge maps from the hex set, keeping ownership by id."""
        vertices: Dict[str, Vertex] = {}
        edges: Dict[str, Edge] = {}

        for hx in self.hexes.values():
            keys = []
            for x, y in hex_corners(hx.q, hx.r, self.hex_size):
                key = vertex_key(x, y)
                vertex = vertices.get(key)
                if vertex is None:
                    vertex = Vertex(id=key, x=_canonical(x), y=_canonical(y))
                    vertices[key] = vertex
                vertex.hex_ids.append(hx.id)
                keys.append(key)

            hx.vertex_ids = keys
            hx.edge_ids = []
            for i in range(6):
                a, b = keys[i], keys[(i + 1) % 6]
                eid = edge_id(a, b)
                if eid not in edges:
                    first, second = sorted((a, b))
                    edges[eid] = Edge(id=eid, v1=first, v2=second)
                hx.edge_ids.append(eid)

        for vid, vertex in vertices.items():
            old = self.vertices.get(vid)
            if old is not None:
                vertex.owner = old.owner
                vertex.is_city = old.is_city
        for eid, edge in edges.items():
            old = self.edges.get(eid)
            if old is not None:
                edge.owner = old.owner

        self.vertices = vertices
        self.edges = edges
        self._index()

    def _index(self):
        self._vertex_edges = {vid: [] for vid in self.vertices}
        self._vertex_neighbors = {vid: [] for vid in self.vertices}
        for edge in self.edges.values():
            self._vertex_edges[edge.v1].append(edge.id)
            self._vertex_edges[edge.v2].append(edge.id)
            self._vertex_neighbors[edge.v1].append(edge.v2)
            self._vertex_neighbors[edge.v2].append(edge.v1)

        self._edge_hexes = {eid: [] for eid in self.edges}
        for hx in self.hexes.values():
            for eid in hx.edge_ids:
                self._edge_hexes[eid].append(hx.id)

    def assign_ports(self):
        """Place a port on every 4th boundary edge, walking the rim by angle."""
        for vertex in self.vertices.values():
            vertex.port = None

        for i, edge in enumerate(self.boundary_edges()):
            if i % PORT_SPACING != 0:
                continue
            port = PORT_SEQUENCE[(i // PORT_SPACING) % len(PORT_SEQUENCE)]
            self.vertices[edge.v1].port = port
            self.vertices[edge.v2].port = port

    # ------------------------------------------------------------------
    # Resizing
    # ------------------------------------------------------------------

    def expand(self) -> Dict[str, str]:
        """
        Grow the board by one ring.

        Pieces standing on the old border are snapshotted, cleared and
        re-snapped to the nearest free vertex/edge of the rebuilt graph.
        Interior pieces keep their ids. Returns a mapping old id -> new id
        for every re-snapped piece whose id changed.
        """
        old_size = self.hex_size
        border_vertices = [
            (v.id, v.x, v.y, v.owner, v.is_city)
            for v in self.vertices.values()
            if v.owner is not None and len(v.hex_ids) < 3
        ]
        border_edges = []
        for edge in self.edges.values():
            if edge.owner is not None and len(self._edge_hexes[edge.id]) == 1:
                mx, my = self.edge_midpoint(edge.id)
                border_edges.append((edge.id, mx, my, edge.owner))

        previous_ids = list(self.hexes)
        self.radius += 1
        for q, r in axial_ring(self.radius):
            if self.rng.random() < NEW_HEX_DESERT_CHANCE:
                self.hexes[hex_id(q, r)] = Hex(q=q, r=r, terrain=Terrain.DESERT)
            else:
                terrain = self.rng.choice(BASE_TERRAINS)
                self.hexes[hex_id(q, r)] = Hex(q=q, r=r, terrain=terrain, number=self.rng.choice(BASE_NUMBERS))

        if self.rng.random() < DECAY_CHANCE:
            candidates = [hid for hid in previous_ids if self.hexes[hid].terrain != Terrain.DESERT]
            if candidates:
                decayed = self.hexes[self.rng.choice(candidates)]
                decayed.terrain = Terrain.DESERT
                decayed.number = None
                logger.info("hex_decayed", hex_id=decayed.id)

        for vid, _, _, _, _ in border_vertices:
            self.vertices[vid].owner = None
            self.vertices[vid].is_city = False
        for eid, _, _, _ in border_edges:
            self.edges[eid].owner = None

        self._rebuild()

        scale = self.hex_size / old_size
        remapped: Dict[str, str] = {}
        for vid, x, y, owner, is_city in border_vertices:
            free_vertices = ((v.id, v.x, v.y) for v in self.vertices.values() if v.owner is None)
            target = self._nearest(free_vertices, x * scale, y * scale)
            self.vertices[target].owner = owner
            self.vertices[target].is_city = is_city
            if target != vid:
                remapped[vid] = target
        for eid, x, y, owner in border_edges:
            free_edges = (
                (e.id,) + self.edge_midpoint(e.id)
                for e in self.edges.values()
                if e.owner is None
            )
            target = self._nearest(free_edges, x * scale, y * scale)
            self.edges[target].owner = owner
            if target != eid:
                remapped[eid] = target

        self.assign_ports()
        logger.info(
            "board_expanded",
            radius=self.radius,
            hexes=len(self.hexes),
            resnapped=len(border_vertices) + len(border_edges),
            moved=len(remapped),
        )
        return remapped

    @staticmethod
    def _nearest(candidates: Iterable[Tuple[str, float, float]], x: float, y: float) -> str:
        best_id = None
        best_distance = math.inf
        for cid, cx, cy in candidates:
            distance = math.hypot(cx - x, cy - y)
            if distance < best_distance or (distance == best_distance and best_id is not None and cid < best_id):
                best_id = cid
                best_distance = distance
        if best_id is None:
            raise ValueError("No free position to re-snap a border piece onto")
        return best_id

    def shrink(self, robbers: List[str]) -> Tuple[List[DestructionEvent], List[str]]:
        """
        Remove the outermost ring.

        Returns the destruction events for every building/road that stood on
        a removed vertex/edge, and the updated robber positions. A robber on a
        removed hex moves to a random remaining hex without a robber,
        preferring deserts, and is dropped if no such hex exists.
        """
        if self.radius <= MIN_RADIUS:
            logger.warning("shrink_skipped", radius=self.radius)
            return [], list(robbers)

        self.radius -= 1
        for hid in [hid for hid, hx in self.hexes.items() if hx.ring > self.radius]:
            del self.hexes[hid]

        old_vertices = self.vertices
        old_edges = self.edges
        self._rebuild()

        events: List[DestructionEvent] = []
        for vid, vertex in old_vertices.items():
            if vid not in self.vertices and vertex.owner is not None:
                kind = "city" if vertex.is_city else "settlement"
                events.append(DestructionEvent(kind=kind, element_id=vid, owner=vertex.owner))
        for eid, edge in old_edges.items():
            if eid not in self.edges and edge.owner is not None:
                events.append(DestructionEvent(kind="road", element_id=eid, owner=edge.owner))

        new_robbers = self._relocate_robbers(robbers)
        self.assign_ports()
        self._notify(events)

        logger.info(
            "board_shrunk",
            radius=self.radius,
            hexes=len(self.hexes),
            destroyed=len(events),
            robbers=len(new_robbers),
        )
        return events, new_robbers

    def _relocate_robbers(self, robbers: List[str]) -> List[str]:
        placed = [hid for hid in robbers if hid in self.hexes]
        for hid in robbers:
            if hid in self.hexes:
                continue
            free = sorted(h for h in self.hexes if h not in placed)
            if not free:
                logger.warning("robber_dropped", hex_id=hid)
                continue
            deserts = [h for h in free if self.hexes[h].terrain == Terrain.DESERT]
            target = self.rng.choice(deserts or free)
            placed.append(target)
            logger.info("robber_relocated", from_hex=hid, to_hex=target)
        return placed

    def clear_owner(self, player_id: int) -> List[DestructionEvent]:
        """Remove every building and road of a player (elimination)."""
        events = []
        for vertex in self.vertices.values():
            if vertex.owner == player_id:
                kind = "city" if vertex.is_city else "settlement"
                events.append(DestructionEvent(kind=kind, element_id=vertex.id, owner=player_id))
                vertex.owner = None
                vertex.is_city = False
        for edge in self.edges.values():
            if edge.owner == player_id:
                events.append(DestructionEvent(kind="road", element_id=edge.id, owner=player_id))
                edge.owner = None
        self._notify(events)
        return events

    def _notify(self, events: List[DestructionEvent]):
        for event in events:
            for listener in self.destruction_listeners:
                listener(event)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_hex(self, hid: str) -> Optional[Hex]:
        return self.hexes.get(hid)

    def get_vertex(self, vid: str) -> Optional[Vertex]:
        return self.vertices.get(vid)

    def get_edge(self, eid: str) -> Optional[Edge]:
        return self.edges.get(eid)

    def edges_of_vertex(self, vid: str) -> List[Edge]:
        return [self.edges[eid] for eid in self._vertex_edges.get(vid, [])]

    def neighbors_of_vertex(self, vid: str) -> List[Vertex]:
        return [self.vertices[n] for n in self._vertex_neighbors.get(vid, [])]

    def hexes_of_vertex(self, vid: str) -> List[Hex]:
        vertex = self.vertices.get(vid)
        if vertex is None:
            return []
        return [self.hexes[hid] for hid in vertex.hex_ids]

    def hexes_of_edge(self, eid: str) -> List[Hex]:
        return [self.hexes[hid] for hid in self._edge_hexes.get(eid, [])]

    def adjacent_hexes(self, hid: str) -> List[Hex]:
        hx = self.hexes[hid]
        result = []
        for dq, dr in AXIAL_DIRECTIONS:
            neighbor = self.hexes.get(hex_id(hx.q + dq, hx.r + dr))
            if neighbor is not None:
                result.append(neighbor)
        return result

    def hex_ring(self, hid: str) -> int:
        return self.hexes[hid].ring

    def vertex_ring(self, vid: str) -> int:
        """Smallest ring among the hexes touching a vertex."""
        return min(hx.ring for hx in self.hexes_of_vertex(vid))

    def in_outer_rings(self, vid: str, rings: int) -> bool:
        """True if the vertex touches one of the outermost `rings` rings."""
        return max(hx.ring for hx in self.hexes_of_vertex(vid)) > self.radius - rings

    def in_central_rings(self, vid: str, rings: int) -> bool:
        """True if the vertex touches a hex within the central `rings` rings (ring < rings)."""
        return self.vertex_ring(vid) < rings

    def is_boundary_edge(self, eid: str) -> bool:
        return len(self._edge_hexes.get(eid, [])) == 1

    def boundary_edges(self) -> List[Edge]:
        """Edges with exactly one adjacent hex, in angular order around the origin."""
        rim = [self.edges[eid] for eid, hexes in self._edge_hexes.items() if len(hexes) == 1]

        def angle(edge: Edge) -> Tuple[float, str]:
            mx, my = self.edge_midpoint(edge.id)
            return (round(math.atan2(my, mx) % (2 * math.pi), 9), edge.id)

        return sorted(rim, key=angle)

    def edge_midpoint(self, eid: str) -> Tuple[float, float]:
        edge = self.edges[eid]
        a = self.vertices[edge.v1]
        b = self.vertices[edge.v2]
        return ((a.x + b.x) / 2, (a.y + b.y) / 2)

    def distance(self, vertex_a: str, vertex_b: str) -> float:
        a = self.vertices[vertex_a]
        b = self.vertices[vertex_b]
        return math.hypot(a.x - b.x, a.y - b.y)

    def vertices_owned_by(self, player_id: int) -> List[Vertex]:
        return [v for v in self.vertices.values() if v.owner == player_id]

    def edges_owned_by(self, player_id: int) -> List[Edge]:
        return [e for e in self.edges.values() if e.owner == player_id]

    def hexes_touching_owner(self, player_id: int) -> List[Hex]:
        seen = {}
        for vertex in self.vertices_owned_by(player_id):
            for hid in vertex.hex_ids:
                seen[hid] = self.hexes[hid]
        return list(seen.values())
