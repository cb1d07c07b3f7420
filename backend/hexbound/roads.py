"""
Longest road and largest army tracking.
"""
from typing import Dict, List, Set

from .board import BoardGraph
from .logging_config import get_logger
from .state import GameState

logger = get_logger(__name__)

LONGEST_ROAD_RECORD = 4  # A first claim needs 5 segments
LARGEST_ARMY_RECORD = 2  # A first claim needs 3 knights


def longest_path(board: BoardGraph, player_id: int) -> int:
    """Calculate the longest continuous road for a player."""
    road_graph: Dict[str, List[str]] = {}
    for edge in board.edges_owned_by(player_id):
        road_graph.setdefault(edge.v1, []).append(edge.v2)
        road_graph.setdefault(edge.v2, []).append(edge.v1)
    if not road_graph:
        return 0

    def blocked(vertex_id: str) -> bool:
        owner = board.vertices[vertex_id].owner
        return owner is not None and owner != player_id

    def dfs(node: str, used: Set[str]) -> int:
        best = 0
        for neighbor in road_graph[node]:
            key = node + "|" + neighbor if node < neighbor else neighbor + "|" + node
            if key in used:
                continue
            used.add(key)
            # A trail may end at an opponent's building but not pass through it
            length = 1 if blocked(neighbor) else 1 + dfs(neighbor, used)
            used.remove(key)
            best = max(best, length)
        return best

    return max(dfs(start, set()) for start in road_graph)


def update_longest_road(state: GameState, board: BoardGraph) -> bool:
    """
    Re-evaluate the longest road holder. Returns True if the holder changed.

    The title only moves when a player strictly exceeds the current record.
    If the holder's own road shrinks (broken or destroyed), the record falls
    to the holder's new length, and the title is released below 5.
    """
    previous = state.longest_road_holder
    lengths = {p.id: longest_path(board, p.id) for p in state.players if not p.eliminated}

    if previous is not None:
        held = lengths.get(previous, 0)
        if held < state.longest_road_length:
            state.longest_road_length = max(held, LONGEST_ROAD_RECORD)
            if held <= LONGEST_ROAD_RECORD:
                state.longest_road_holder = None

    # Current player first so simultaneous claims resolve in turn order
    count = len(state.players)
    for offset in range(count):
        player = state.players[(state.current_player_index + offset) % count]
        length = lengths.get(player.id, 0)
        if length > state.longest_road_length:
            state.longest_road_length = length
            state.longest_road_holder = player.id

    changed = state.longest_road_holder != previous
    if changed:
        logger.info(
            "longest_road_changed",
            holder=state.longest_road_holder,
            previous=previous,
            length=state.longest_road_length,
        )
    return changed


def update_largest_army(state: GameState) -> bool:
    """Award largest army to a player whose knight count strictly beats the record."""
    previous = state.largest_army_holder
    for player in state.players:
        if player.eliminated:
            continue
        if player.knights_played > state.largest_army_size:
            state.largest_army_size = player.knights_played
            state.largest_army_holder = player.id
    changed = state.largest_army_holder != previous
    if changed:
        logger.info(
            "largest_army_changed",
            holder=state.largest_army_holder,
            previous=previous,
            knights=state.largest_army_size,
        )
    return changed
