"""
Anchor selection for connections.

Picks the (exit, entry) side pair of every connection by scoring all sixteen
combinations, lets children escape their enclosing group through the best
boundary, and spreads connections that share a node side across distinct
anchor points.
"""

import itertools
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from .models import AnchorInfo, BoundingBox, ComputedNode, Connection, Point, Side
from .router import ConnectorType, basic_waypoints, classify_connector, path_length
from .tracer import LayoutTrace

LOGGER = logging.getLogger(__name__)

# =============================================================================
# ANCHOR CONFIGURATION
# =============================================================================

# --- Side Scoring (lower wins) ---

# Leaving or entering on the side facing away from the other node
DIRECTION_PENALTY = 100

# Opposite-side pairs that run toward the target
STRAIGHT_BONUS = 15  # along the dominant axis
STRAIGHT_BONUS_MINOR = 5  # along the other axis

# One-bend L shapes, only for nearby targets; further away a short leg of
# the L tends to clip neighbouring nodes and a Z reads better
L_SHAPE_BONUS = 10
L_SHAPE_RANGE = 150

# --- Container Escape ---

# A sibling sitting between the child and the group boundary
CORRIDOR_PENALTY = 500

# --- Distribution ---

SPREAD_PER_CONNECTION = 0.1
MAX_SPREAD = 0.3

# =============================================================================

SidePair = Tuple[Side, Side]

SIDE_COMBINATIONS: List[SidePair] = list(itertools.product(Side, Side))


def dominant_side(dx: float, dy: float) -> Side:
    """Side pointing along the dominant axis of (dx, dy); ties go vertical."""
    if abs(dx) > abs(dy):
        return Side.RIGHT if dx > 0 else Side.LEFT
    return Side.BOTTOM if dy > 0 else Side.TOP


def score_sides(source: BoundingBox, target: BoundingBox, exit_side: Side, entry_side: Side) -> float:
    """
    Score one (exit, entry) pair between two boxes.

    The base score is the length of the orthogonal path between the two
    side centers. Penalties and bonuses then favour exits facing the target
    and simple shapes.
    """
    start = source.anchor(exit_side)
    end = target.anchor(entry_side)
    connector = classify_connector(exit_side, entry_side, start, end)
    score = path_length(basic_waypoints(start, end, exit_side, entry_side, connector))

    dx = target.center_x - source.center_x
    dy = target.center_y - source.center_y
    toward_target = dominant_side(dx, dy)
    toward_source = dominant_side(-dx, -dy)

    if exit_side == toward_target.opposite:
        score += DIRECTION_PENALTY
    if entry_side == toward_source.opposite:
        score += DIRECTION_PENALTY

    if entry_side == exit_side.opposite:
        ux, uy = exit_side.direction
        if ux * dx + uy * dy > 0:
            if exit_side.is_horizontal == toward_target.is_horizontal:
                score -= STRAIGHT_BONUS
            else:
                score -= STRAIGHT_BONUS_MINOR
    elif connector in (ConnectorType.L_HORIZONTAL, ConnectorType.L_VERTICAL):
        if abs(dx) <= L_SHAPE_RANGE and abs(dy) <= L_SHAPE_RANGE:
            score -= L_SHAPE_BONUS

    return score


def best_sides(
    source: BoundingBox,
    target: BoundingBox,
    from_side: Optional[Side] = None,
    to_side: Optional[Side] = None,
) -> SidePair:
    """Lowest scoring pair; a pinned side restricts the candidates."""
    candidates = [
        (exit_side, entry_side)
        for exit_side, entry_side in SIDE_COMBINATIONS
        if (from_side is None or exit_side == from_side)
        and (to_side is None or entry_side == to_side)
    ]
    # min() keeps the first of equal scores, i.e. enumeration order
    return min(candidates, key=lambda pair: score_sides(source, target, *pair))


def _corridor(child: BoundingBox, group: BoundingBox, side: Side) -> BoundingBox:
    if side == Side.RIGHT:
        return BoundingBox(child.right, child.top, group.right - child.right, child.height)
    if side == Side.LEFT:
        return BoundingBox(group.left, child.top, child.left - group.left, child.height)
    if side == Side.BOTTOM:
        return BoundingBox(child.left, child.bottom, child.width, group.bottom - child.bottom)
    return BoundingBox(child.left, group.top, child.width, child.top - group.top)


def _boundary_exit(child: BoundingBox, group: BoundingBox, side: Side) -> Tuple[float, Point]:
    """Distance to the group boundary and the point where the path crosses it."""
    if side == Side.RIGHT:
        return group.right - child.right, (group.right, child.center_y)
    if side == Side.LEFT:
        return child.left - group.left, (group.left, child.center_y)
    if side == Side.BOTTOM:
        return group.bottom - child.bottom, (child.center_x, group.bottom)
    return child.top - group.top, (child.center_x, group.top)


def escape_sides(
    child: ComputedNode,
    group: ComputedNode,
    target: ComputedNode,
) -> SidePair:
    """
    Sides for a connection leaving a group whose target lies outside it.

    Each group boundary is scored by whether a sibling blocks the straight
    corridor to it, the distance to reach it, and the Manhattan distance
    from the crossing point to the target. The entry side faces the
    crossing point.
    """
    siblings = [c.bounds for c in group.children if c.id != child.id]
    best: Optional[Tuple[float, Side, Point]] = None
    for side in Side:
        corridor = _corridor(child.bounds, group.bounds, side)
        blocked = any(s.intersects_box(corridor) for s in siblings)
        distance, exit_point = _boundary_exit(child.bounds, group.bounds, side)
        score = (CORRIDOR_PENALTY if blocked else 0) + distance
        score += abs(exit_point[0] - target.center[0]) + abs(exit_point[1] - target.center[1])
        if best is None or score < best[0]:
            best = (score, side, exit_point)

    _, exit_side, exit_point = best
    entry_side = dominant_side(
        exit_point[0] - target.center[0], exit_point[1] - target.center[1]
    )
    return exit_side, entry_side


def anchor_ratio(index: int, total: int) -> float:
    """
    Fractional position of slot index among total slots on one side.

    Slots spread symmetrically around the middle, never further than
    MAX_SPREAD from it.
    """
    if total <= 1:
        return 0.5
    spread = min(SPREAD_PER_CONNECTION * total, MAX_SPREAD)
    return 0.5 - spread + 2 * spread * index / (total - 1)


class AnchorPlanner:
    """
    Resolves sides and anchor slots for all connections of a render.

    Args:
        node_map: All computed nodes by id
        trace: Optional trace receiving side decisions
    """

    def __init__(self, node_map: Dict[str, ComputedNode], trace: Optional[LayoutTrace] = None):
        self.node_map = node_map
        self.trace = trace

    def select_sides(self, connection: Connection) -> SidePair:
        """Choose the (exit, entry) sides of one connection."""
        if connection.from_side is not None and connection.to_side is not None:
            return connection.from_side, connection.to_side

        source = self.node_map[connection.source]
        target = self.node_map[connection.target]

        if source.id == target.id:
            return connection.from_side or Side.RIGHT, connection.to_side or Side.RIGHT

        if connection.from_side is None and source.parent_id is not None:
            group = self.node_map.get(source.parent_id)
            if (
                group is not None
                and group.type.is_container
                and not group.bounds.contains_point(target.center)
            ):
                exit_side, entry_side = escape_sides(source, group, target)
                return exit_side, connection.to_side or entry_side

        return best_sides(source.bounds, target.bounds, connection.from_side, connection.to_side)

    def plan(self, ordered: List[Tuple[int, Connection]]) -> Dict[int, AnchorInfo]:
        """
        Resolve AnchorInfo for connections given in processing order.

        Connections with an unknown endpoint are skipped. Incoming and
        outgoing connections on one node side share a single slot list,
        sorted by the far end's center along that side.
        """
        sides: Dict[int, SidePair] = {}
        slots: Dict[Tuple[str, Side], List[Tuple[int, str, str]]] = defaultdict(list)

        for index, connection in ordered:
            if connection.source not in self.node_map or connection.target not in self.node_map:
                LOGGER.debug(
                    "Skipping connection %s -> %s: unknown endpoint",
                    connection.source,
                    connection.target,
                )
                continue
            exit_side, entry_side = self.select_sides(connection)
            sides[index] = (exit_side, entry_side)
            slots[(connection.source, exit_side)].append((index, "from", connection.target))
            slots[(connection.target, entry_side)].append((index, "to", connection.source))
            if self.trace is not None:
                self.trace.add_decision(
                    index, "sides_selected", f"{exit_side.value} -> {entry_side.value}"
                )

        infos = {index: AnchorInfo(*pair) for index, pair in sides.items()}
        for (_, side), entries in slots.items():
            entries.sort(key=lambda entry: self._far_end_key(entry[2], side))
            total = len(entries)
            for position, (index, end, _) in enumerate(entries):
                info = infos[index]
                if end == "from":
                    info.from_index, info.from_total = position, total
                else:
                    info.to_index, info.to_total = position, total
        return infos

    def _far_end_key(self, node_id: str, side: Side) -> float:
        center_x, center_y = self.node_map[node_id].center
        return center_y if side.is_horizontal else center_x

    def anchor_points(self, connection: Connection, info: AnchorInfo) -> Tuple[Point, Point]:
        """Source and target anchor points of a connection."""
        source = self.node_map[connection.source]
        target = self.node_map[connection.target]
        start = source.bounds.anchor(info.from_side, anchor_ratio(info.from_index, info.from_total))
        end = target.bounds.anchor(info.to_side, anchor_ratio(info.to_index, info.to_total))
        return start, end
