"""
Placement legality for settlements, roads and cities.

All checks are pure reads of the board: calling them never mutates state,
so repeated calls give the same answer.
"""
from typing import List

from .board import BoardGraph
from .state import GameMode, Phase

# During initial placement of a shrinking game, pieces must start this close to the rim
SHRINKING_START_RINGS = 4


def _outside_start_zone(board: BoardGraph, vertex_ids, phase: Phase, mode: GameMode) -> bool:
    if phase != Phase.INITIAL_PLACEMENT or mode != GameMode.SHRINKING:
        return False
    return not any(board.in_outer_rings(vid, SHRINKING_START_RINGS) for vid in vertex_ids)


def can_place_settlement(board: BoardGraph, vertex_id: str, player_id: int,
                         phase: Phase, mode: GameMode = GameMode.STANDARD) -> bool:
    """Check occupancy, the distance rule, the start zone and road connection."""
    vertex = board.get_vertex(vertex_id)
    if vertex is None or vertex.owner is not None:
        return False

    # Distance rule: no building on any adjacent vertex
    if any(neighbor.owner is not None for neighbor in board.neighbors_of_vertex(vertex_id)):
        return False

    if _outside_start_zone(board, [vertex_id], phase, mode):
        return False

    if phase == Phase.INITIAL_PLACEMENT:
        return True

    return any(edge.owner == player_id for edge in board.edges_of_vertex(vertex_id))


def can_place_road(board: BoardGraph, edge_id: str, player_id: int,
                   phase: Phase, mode: GameMode = GameMode.STANDARD) -> bool:
    """A road must be free and touch the player's building or road network."""
    edge = board.get_edge(edge_id)
    if edge is None or edge.owner is not None:
        return False

    if _outside_start_zone(board, edge.vertex_ids, phase, mode):
        return False

    for vid in edge.vertex_ids:
        if board.vertices[vid].owner == player_id:
            return True
        for other in board.edges_of_vertex(vid):
            if other.id != edge_id and other.owner == player_id:
                return True
    return False


def can_place_city(board: BoardGraph, vertex_id: str, player_id: int) -> bool:
    """Only the player's own settlement can be upgraded."""
    vertex = board.get_vertex(vertex_id)
    return vertex is not None and vertex.owner == player_id and not vertex.is_city


def legal_settlement_vertices(board: BoardGraph, player_id: int, phase: Phase,
                              mode: GameMode = GameMode.STANDARD) -> List[str]:
    return [vid for vid in board.vertices if can_place_settlement(board, vid, player_id, phase, mode)]


def legal_road_edges(board: BoardGraph, player_id: int, phase: Phase,
                     mode: GameMode = GameMode.STANDARD) -> List[str]:
    return [eid for eid in board.edges if can_place_road(board, eid, player_id, phase, mode)]


def legal_city_vertices(board: BoardGraph, player_id: int) -> List[str]:
    return [vid for vid in board.vertices if can_place_city(board, vid, player_id)]
