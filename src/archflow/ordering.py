"""
Connection processing order.

Lanes are claimed first come, first served, so the order in which
connections are routed changes the result. SortStrategy picks that order;
routes are always reported by declaration index regardless.
"""

from enum import Enum
from typing import Dict, List, Tuple

from .models import ComputedNode, Connection


class SortStrategy(Enum):
    """Order in which connections are routed."""

    ORIGINAL = "original"
    VERTICAL_LENGTH_DESC = "vertical_length_desc"
    VERTICAL_LENGTH_ASC = "vertical_length_asc"
    TARGET_Y_ASC = "target_y_asc"
    TARGET_Y_DESC = "target_y_desc"
    SOURCE_X_ASC = "source_x_asc"
    SOURCE_X_DESC = "source_x_desc"
    BOUNDING_BOX_AWARE = "bounding_box_aware"


def _sort_key(strategy: SortStrategy, source: ComputedNode, target: ComputedNode):
    if strategy == SortStrategy.VERTICAL_LENGTH_DESC:
        return -abs(target.y - source.y)
    if strategy == SortStrategy.VERTICAL_LENGTH_ASC:
        return abs(target.y - source.y)
    if strategy == SortStrategy.TARGET_Y_ASC:
        return target.y
    if strategy == SortStrategy.TARGET_Y_DESC:
        return -target.y
    if strategy == SortStrategy.SOURCE_X_ASC:
        return source.x
    if strategy == SortStrategy.SOURCE_X_DESC:
        return -source.x
    # Wide connections first, left to right; then tall ones, top to bottom
    if abs(target.x - source.x) > abs(target.y - source.y):
        return (0, source.x)
    return (1, target.y)


def sort_connections(
    connections: List[Connection],
    strategy: SortStrategy,
    node_map: Dict[str, ComputedNode],
) -> List[Tuple[int, Connection]]:
    """
    Order connections for routing.

    Args:
        connections: Connections in declaration order
        strategy: Ordering to apply
        node_map: Computed nodes by id

    Returns:
        (declaration index, connection) pairs in processing order. The sort
        is stable; connections with an unknown endpoint keep their relative
        order after all others.
    """
    indexed = list(enumerate(connections))
    if strategy == SortStrategy.ORIGINAL:
        return indexed

    known = [
        (i, c) for i, c in indexed if c.source in node_map and c.target in node_map
    ]
    unknown = [
        (i, c) for i, c in indexed if c.source not in node_map or c.target not in node_map
    ]
    known.sort(
        key=lambda item: _sort_key(
            strategy, node_map[item[1].source], node_map[item[1].target]
        )
    )
    return known + unknown


def detect_bidirectional_pairs(connections: List[Connection]) -> List[Tuple[int, int]]:
    """
    Find A -> B / B -> A pairs.

    Each connection takes part in at most one pair; the first unpaired
    reverse connection wins.

    Returns:
        (index, reverse index) pairs in declaration order
    """
    pairs: List[Tuple[int, int]] = []
    paired = set()
    for i, connection in enumerate(connections):
        if i in paired:
            continue
        for j in range(len(connections)):
            other = connections[j]
            if (
                j != i
                and j not in paired
                and other.source == connection.target
                and other.target == connection.source
            ):
                pairs.append((i, j))
                paired.update((i, j))
                break
    return pairs
