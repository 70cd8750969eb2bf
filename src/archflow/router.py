"""
Connection routing module.

Implements orthogonal connection routing with:
- Topology classification (straight, L, Z and U connectors)
- Obstacle probing around other nodes' boxes with a 5-segment fallback detour
- Lane reservation so parallel segments of different connections never share
  a coordinate
- Node-area reservations that keep lanes off the edges of icons
- Cubic control points for curved connections
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .models import BoundingBox, ComputedNode, Connection, ConnectionStyle, NodeType, Point, Side
from .tracer import LayoutTrace

LOGGER = logging.getLogger(__name__)

# =============================================================================
# ROUTING CONFIGURATION - Adjust these values to tune routing behavior
# =============================================================================

# --- Topology ---

# Opposite-side anchors closer than this on the cross axis route straight
STRAIGHT_TOLERANCE = 10

# How far U connectors swing out beyond the outermost anchor
DETOUR_DISTANCE = 40

# --- Obstacle Avoidance ---

# Boxes are inflated by this margin for collision checks
OBSTACLE_MARGIN = 10

# Probed coordinates sit this far outside a colliding box
OBSTACLE_CLEARANCE = 20

# Rounds of 5-segment detours, each widening around newly hit boxes
MAX_DETOUR_ATTEMPTS = 3

# --- Lanes ---

# Step used to move a lane off an already reserved coordinate
LANE_SHIFT = 15

# Reserved intervals closer than this on the cross axis conflict
LANE_TOLERANCE = 5

# Margin used for node-area reservations (reserved lines sit margin - 1 out)
NODE_AREA_MARGIN = 5

# --- Curves ---

CURVE_FACTOR = 0.4
MAX_CURVE_OFFSET = 100

# =============================================================================


class ConnectorType(Enum):
    """Shape of an orthogonal connection."""

    STRAIGHT = "straight"
    L_HORIZONTAL = "L_horizontal"  # leaves horizontally, one bend
    L_VERTICAL = "L_vertical"  # leaves vertically, one bend
    Z_HORIZONTAL = "Z_horizontal"  # horizontal, vertical jog, horizontal
    Z_VERTICAL = "Z_vertical"  # vertical, horizontal jog, vertical
    U_HORIZONTAL = "U_horizontal"  # out and back on left/right sides
    U_VERTICAL = "U_vertical"  # out and back on top/bottom sides


@dataclass
class ReservedLine:
    """An axis-parallel interval: a vertical line at x or a horizontal one at y."""

    position: float
    start: float
    end: float
    owner: str = ""


@dataclass
class RoutedConnection:
    """
    Final geometry of one connection.

    Attributes:
        index: Index of the connection in declaration order
        source: Source node id
        target: Target node id
        exit_side: Side of the source the path leaves from
        entry_side: Side of the target the path enters
        connector: Topology of the path
        waypoints: Ordered points; the first is the source anchor and the
            last is the target anchor. For curves: start, two controls, end
        curved: Whether waypoints are cubic control points
        bidirectional: Whether the connection draws arrows at both ends
        paired: Whether a reverse connection between the same nodes exists
        collisions: Ids of boxes the path still crosses
    """

    index: int
    source: str
    target: str
    exit_side: Side
    entry_side: Side
    connector: ConnectorType
    waypoints: List[Point] = field(default_factory=list)
    curved: bool = False
    bidirectional: bool = False
    paired: bool = False
    collisions: List[str] = field(default_factory=list)

    @property
    def segments(self) -> List[Tuple[Point, Point]]:
        return list(zip(self.waypoints, self.waypoints[1:]))

    @property
    def length(self) -> float:
        return path_length(self.waypoints)


def classify_connector(exit_side: Side, entry_side: Side, start: Point, end: Point) -> ConnectorType:
    """Pick the connector topology for an (exit, entry) pair."""
    if exit_side == entry_side:
        return ConnectorType.U_HORIZONTAL if exit_side.is_horizontal else ConnectorType.U_VERTICAL

    if entry_side == exit_side.opposite:
        if exit_side.is_horizontal:
            if abs(start[1] - end[1]) < STRAIGHT_TOLERANCE:
                return ConnectorType.STRAIGHT
            return ConnectorType.Z_HORIZONTAL
        if abs(start[0] - end[0]) < STRAIGHT_TOLERANCE:
            return ConnectorType.STRAIGHT
        return ConnectorType.Z_VERTICAL

    return ConnectorType.L_HORIZONTAL if exit_side.is_horizontal else ConnectorType.L_VERTICAL


def _jog(start: Point, end: Point, coord: float, horizontal: bool) -> List[Point]:
    """Three-segment path whose middle segment sits at coord."""
    if horizontal:
        return [start, (coord, start[1]), (coord, end[1]), end]
    return [start, (start[0], coord), (end[0], coord), end]


def u_detour_coordinate(exit_side: Side, start: Point, end: Point) -> float:
    if exit_side == Side.RIGHT:
        return max(start[0], end[0]) + DETOUR_DISTANCE
    if exit_side == Side.LEFT:
        return min(start[0], end[0]) - DETOUR_DISTANCE
    if exit_side == Side.BOTTOM:
        return max(start[1], end[1]) + DETOUR_DISTANCE
    return min(start[1], end[1]) - DETOUR_DISTANCE


def basic_waypoints(
    start: Point,
    end: Point,
    exit_side: Side,
    entry_side: Side,
    connector: Optional[ConnectorType] = None,
) -> List[Point]:
    """
    Waypoints of the plain connector shape, ignoring obstacles and lanes.

    Straight connectors that are not exactly aligned get a jog at the
    midpoint so every segment stays axis-parallel.
    """
    if connector is None:
        connector = classify_connector(exit_side, entry_side, start, end)

    if connector in (ConnectorType.STRAIGHT, ConnectorType.Z_HORIZONTAL, ConnectorType.Z_VERTICAL):
        horizontal = exit_side.is_horizontal
        if connector == ConnectorType.STRAIGHT and (
            (horizontal and start[1] == end[1]) or (not horizontal and start[0] == end[0])
        ):
            return [start, end]
        axis = 0 if horizontal else 1
        return _jog(start, end, (start[axis] + end[axis]) / 2, horizontal)

    if connector == ConnectorType.L_HORIZONTAL:
        return [start, (end[0], start[1]), end]
    if connector == ConnectorType.L_VERTICAL:
        return [start, (start[0], end[1]), end]

    return _jog(start, end, u_detour_coordinate(exit_side, start, end), exit_side.is_horizontal)


def curve_points(start: Point, end: Point, exit_side: Side, entry_side: Side) -> List[Point]:
    """Start, two cubic control points and end for a curved connection."""
    distance = math.hypot(end[0] - start[0], end[1] - start[1])
    offset = min(distance * CURVE_FACTOR, MAX_CURVE_OFFSET)
    ex, ey = exit_side.direction
    nx_, ny_ = entry_side.direction
    return [
        start,
        (start[0] + ex * offset, start[1] + ey * offset),
        (end[0] + nx_ * offset, end[1] + ny_ * offset),
        end,
    ]


def path_length(points: List[Point]) -> float:
    """Sum of Manhattan segment lengths."""
    return sum(
        abs(b[0] - a[0]) + abs(b[1] - a[1]) for a, b in zip(points, points[1:])
    )


def simplify_waypoints(points: List[Point]) -> List[Point]:
    """Drop repeated points and middle points of straight runs."""
    deduped: List[Point] = []
    for p in points:
        if not deduped or deduped[-1] != p:
            deduped.append(p)
    if len(deduped) <= 2:
        return deduped

    result = [deduped[0]]
    for i in range(1, len(deduped) - 1):
        prev, cur, nxt = result[-1], deduped[i], deduped[i + 1]
        if (prev[0] == cur[0] == nxt[0]) or (prev[1] == cur[1] == nxt[1]):
            continue
        result.append(cur)
    result.append(deduped[-1])
    return result


class LaneRegistry:
    """
    Reserved lanes of one render.

    Holds the vertical X and horizontal Y coordinates claimed by connections
    processed so far, plus reserved intervals around node areas. Create one
    per render; never share it between renders.
    """

    def __init__(self, shift: float = LANE_SHIFT, tolerance: float = LANE_TOLERANCE):
        self.shift = shift
        self.tolerance = tolerance
        self.vertical_lanes: Set[int] = set()
        self.horizontal_lanes: Set[int] = set()
        self.vertical_lines: List[ReservedLine] = []
        self.horizontal_lines: List[ReservedLine] = []

    def is_vertical_line_conflict(self, x: float, y1: float, y2: float) -> bool:
        """True if a vertical line at x over [y1, y2] touches a reserved one."""
        return _conflicts(self.vertical_lines, x, y1, y2, self.tolerance)

    def is_horizontal_line_conflict(self, y: float, x1: float, x2: float) -> bool:
        """True if a horizontal line at y over [x1, x2] touches a reserved one."""
        return _conflicts(self.horizontal_lines, y, x1, x2, self.tolerance)

    def reserve_vertical_line(self, x: float, y1: float, y2: float, owner: str = "") -> None:
        self.vertical_lines.append(ReservedLine(x, min(y1, y2), max(y1, y2), owner))

    def reserve_horizontal_line(self, y: float, x1: float, x2: float, owner: str = "") -> None:
        self.horizontal_lines.append(ReservedLine(y, min(x1, x2), max(x1, x2), owner))

    def register_node_areas(self, nodes: Iterable[ComputedNode]) -> None:
        """
        Reserve the square around each node's icon circle.

        Groups and composites are skipped; the nodes inside them reserve
        their own areas.
        """
        for node in nodes:
            if node.type in (NodeType.GROUP, NodeType.COMPOSITE):
                continue
            b = node.bounds
            half = min(b.width, b.height) / 2 + NODE_AREA_MARGIN - 1
            left, right = b.center_x - half, b.center_x + half
            top, bottom = b.center_y - half, b.center_y + half
            self.reserve_vertical_line(left, top, bottom, node.id)
            self.reserve_vertical_line(right, top, bottom, node.id)
            self.reserve_horizontal_line(top, left, right, node.id)
            self.reserve_horizontal_line(bottom, left, right, node.id)

    def find_vertical_lane(self, x: float, y1: float, y2: float, step: Optional[float] = None) -> int:
        """Round x and move it by step until the lane is free."""
        step = step or self.shift
        lane = round(x)
        while lane in self.vertical_lanes or self.is_vertical_line_conflict(lane, y1, y2):
            lane += step
        return lane

    def find_horizontal_lane(self, y: float, x1: float, x2: float, step: Optional[float] = None) -> int:
        """Round y and move it by step until the lane is free."""
        step = step or self.shift
        lane = round(y)
        while lane in self.horizontal_lanes or self.is_horizontal_line_conflict(lane, x1, x2):
            lane += step
        return lane

    def claim_vertical(self, x: int) -> None:
        self.vertical_lanes.add(x)

    def claim_horizontal(self, y: int) -> None:
        self.horizontal_lanes.add(y)


def _conflicts(lines: List[ReservedLine], pos: float, a: float, b: float, tolerance: float) -> bool:
    lo, hi = min(a, b), max(a, b)
    for line in lines:
        if abs(line.position - pos) < tolerance and lo <= line.end and hi >= line.start:
            return True
    return False


class PathRouter:
    """
    Routes connections one at a time, sharing a LaneRegistry.

    Processing order matters: earlier connections claim lanes first.

    Args:
        node_map: All computed nodes by id
        lanes: Lane registry of this render
        min_y: Detours never go above this y when set
        trace: Optional trace receiving routing decisions
    """

    def __init__(
        self,
        node_map: Dict[str, ComputedNode],
        lanes: Optional[LaneRegistry] = None,
        min_y: Optional[float] = None,
        trace: Optional[LayoutTrace] = None,
    ):
        self.node_map = node_map
        self.lanes = lanes if lanes is not None else LaneRegistry()
        self.min_y = min_y
        self.trace = trace

    def route(
        self,
        index: int,
        connection: Connection,
        start: Point,
        end: Point,
        exit_side: Side,
        entry_side: Side,
    ) -> RoutedConnection:
        """
        Compute the waypoints of one connection.

        Args:
            index: Declaration index of the connection
            connection: The connection being routed
            start: Source anchor point
            end: Target anchor point
            exit_side: Side of the source the path leaves
            entry_side: Side of the target the path enters

        Returns:
            RoutedConnection whose first and last waypoints are the anchors
        """
        connector = classify_connector(exit_side, entry_side, start, end)
        routed = RoutedConnection(
            index=index,
            source=connection.source,
            target=connection.target,
            exit_side=exit_side,
            entry_side=entry_side,
            connector=connector,
            bidirectional=connection.bidirectional,
        )

        if connection.style == ConnectionStyle.CURVED:
            routed.curved = True
            routed.waypoints = curve_points(start, end, exit_side, entry_side)
            self._record(index, "curved")
            return routed

        obstacles = self.obstacles_for(connection.source, connection.target)
        horizontal = exit_side.is_horizontal

        if connector == ConnectorType.STRAIGHT and (
            start[1] == end[1] if horizontal else start[0] == end[0]
        ):
            points = [start, end]
            if self.collisions(points, obstacles):
                points = self._detour(index, start, end, horizontal, obstacles) or points
        elif connector in (ConnectorType.STRAIGHT, ConnectorType.Z_HORIZONTAL, ConnectorType.Z_VERTICAL):
            points = self._route_jog(index, start, end, horizontal, obstacles)
        elif connector in (ConnectorType.U_HORIZONTAL, ConnectorType.U_VERTICAL):
            points = self._route_u(index, start, end, exit_side)
        else:
            points = basic_waypoints(start, end, exit_side, entry_side, connector)

        routed.waypoints = simplify_waypoints(points)
        routed.collisions = self.collisions(routed.waypoints, obstacles)
        if routed.collisions:
            LOGGER.debug(
                "Connection %s -> %s still crosses %s",
                connection.source,
                connection.target,
                ", ".join(routed.collisions),
            )
            self._record(index, "unresolved_collision", ", ".join(routed.collisions))
        self._record(index, connector.value, f"{len(routed.waypoints)} waypoints")
        return routed

    def obstacles_for(self, source: str, target: str) -> List[ComputedNode]:
        """
        Nodes a connection must not cross.

        Excludes both endpoints, their ancestors and descendants, and group
        nodes (the nodes inside a group are obstacles instead).
        """
        excluded: Set[str] = set()
        for node_id in (source, target):
            node = self.node_map.get(node_id)
            if node is None:
                continue
            excluded.update(n.id for n in node.walk())
            parent_id = node.parent_id
            while parent_id is not None and parent_id not in excluded:
                excluded.add(parent_id)
                parent = self.node_map.get(parent_id)
                parent_id = parent.parent_id if parent else None

        return [
            n
            for n in self.node_map.values()
            if n.id not in excluded and not n.type.is_container
        ]

    def collisions(self, points: List[Point], obstacles: List[ComputedNode]) -> List[str]:
        """Ids of obstacles whose inflated box any segment passes through."""
        hits: List[str] = []
        for obstacle in obstacles:
            box = obstacle.bounds.expanded(OBSTACLE_MARGIN)
            if any(box.intersects_segment(a, b) for a, b in zip(points, points[1:])):
                hits.append(obstacle.id)
        return hits

    def _colliding_boxes(self, points: List[Point], obstacles: List[ComputedNode]) -> List[BoundingBox]:
        hits = set(self.collisions(points, obstacles))
        return [o.bounds for o in obstacles if o.id in hits]

    def _find_lane(self, coord: float, start: Point, end: Point, horizontal: bool, step: Optional[float] = None) -> int:
        # The jog of a horizontal path is a vertical lane and vice versa
        if horizontal:
            return self.lanes.find_vertical_lane(coord, start[1], end[1], step)
        return self.lanes.find_horizontal_lane(coord, start[0], end[0], step)

    def _claim(self, lane: int, horizontal: bool) -> None:
        if horizontal:
            self.lanes.claim_vertical(lane)
        else:
            self.lanes.claim_horizontal(lane)

    def _route_jog(
        self,
        index: int,
        start: Point,
        end: Point,
        horizontal: bool,
        obstacles: List[ComputedNode],
    ) -> List[Point]:
        """Z-shaped route; probe jog positions, then detour, then give up."""
        axis = 0 if horizontal else 1
        preferred = (start[axis] + end[axis]) / 2
        lo, hi = sorted((start[axis], end[axis]))

        first = self._find_lane(preferred, start, end, horizontal)
        points = _jog(start, end, first, horizontal)
        if first != round(preferred):
            self._record(index, "lane_shift", f"{round(preferred)} -> {first}")
        if not self.collisions(points, obstacles):
            self._claim(first, horizontal)
            return points

        candidates: List[float] = []
        for box in self._colliding_boxes(points, obstacles):
            near, far = (box.left, box.right) if horizontal else (box.top, box.bottom)
            candidates.extend([near - OBSTACLE_CLEARANCE, far + OBSTACLE_CLEARANCE])
        candidates = sorted(
            (c for c in candidates if lo < c < hi), key=lambda c: abs(c - preferred)
        )

        for candidate in candidates:
            step = self.lanes.shift if candidate >= preferred else -self.lanes.shift
            lane = self._find_lane(candidate, start, end, horizontal, step)
            probe = _jog(start, end, lane, horizontal)
            if not self.collisions(probe, obstacles):
                self._claim(lane, horizontal)
                self._record(index, "probe_shift", f"jog {round(preferred)} -> {lane}")
                return probe

        detour = self._detour(index, start, end, horizontal, obstacles)
        if detour is not None:
            return detour

        self._claim(first, horizontal)
        return points

    def _detour(
        self,
        index: int,
        start: Point,
        end: Point,
        horizontal: bool,
        obstacles: List[ComputedNode],
    ) -> Optional[List[Point]]:
        """
        Five-segment detour around the boxes a direct path crosses.

        The path leaves along the exit axis, steps aside before the first box,
        runs past all of them on a free lane and steps back before entering
        the target. Returns None when no variant clears every obstacle.
        """
        axis = 0 if horizontal else 1
        if start[1 - axis] == end[1 - axis]:
            direct = [start, end]
        else:
            direct = _jog(start, end, (start[axis] + end[axis]) / 2, horizontal)
        blockers = self._colliding_boxes(direct, obstacles)

        for _ in range(MAX_DETOUR_ATTEMPTS):
            if not blockers:
                return None
            points, hit = self._detour_around(start, end, horizontal, blockers, obstacles)
            if points is not None:
                self._record(index, "detour", f"around {len(blockers)} box(es)")
                return points
            extra = [b for b in hit if b not in blockers]
            if not extra:
                return None
            blockers = blockers + extra
        return None

    def _detour_around(
        self,
        start: Point,
        end: Point,
        horizontal: bool,
        blockers: List[BoundingBox],
        obstacles: List[ComputedNode],
    ) -> Tuple[Optional[List[Point]], List[BoundingBox]]:
        if horizontal:
            near = min(b.left for b in blockers) - OBSTACLE_CLEARANCE
            far = max(b.right for b in blockers) + OBSTACLE_CLEARANCE
            before = min(b.top for b in blockers) - OBSTACLE_CLEARANCE
            after = max(b.bottom for b in blockers) + OBSTACLE_CLEARANCE
            s, e = start[0], end[0]
        else:
            near = min(b.top for b in blockers) - OBSTACLE_CLEARANCE
            far = max(b.bottom for b in blockers) + OBSTACLE_CLEARANCE
            before = min(b.left for b in blockers) - OBSTACLE_CLEARANCE
            after = max(b.right for b in blockers) + OBSTACLE_CLEARANCE
            s, e = start[1], end[1]

        # Step aside after leaving the source and step back before the target
        if s <= e:
            first, second = max(near, s), min(far, e)
        else:
            first, second = min(far, s), max(near, e)
        # Legs move away from the blockers when their lane is taken
        leg_step = -self.lanes.shift if s <= e else self.lanes.shift
        if horizontal:
            find_lane, find_leg = self.lanes.find_horizontal_lane, self.lanes.find_vertical_lane
            start_cross, end_cross = start[1], end[1]
        else:
            find_lane, find_leg = self.lanes.find_vertical_lane, self.lanes.find_horizontal_lane
            start_cross, end_cross = start[0], end[0]

        middle = (start_cross + end_cross) / 2
        options = sorted(
            [(before, -self.lanes.shift), (after, self.lanes.shift)],
            key=lambda o: abs(o[0] - middle),
        )

        hit: List[BoundingBox] = []
        for coord, step in options:
            if horizontal and self.min_y is not None and coord < self.min_y:
                continue
            lane = find_lane(coord, first, second, step)
            first_leg = find_leg(first, start_cross, lane, leg_step)
            second_leg = find_leg(second, end_cross, lane, -leg_step)
            lane = find_lane(lane, first_leg, second_leg, step)
            if horizontal and self.min_y is not None and lane < self.min_y:
                continue
            if (first_leg - s) * (e - s) < 0 or (second_leg - e) * (s - e) < 0:
                continue

            if horizontal:
                points = [
                    start,
                    (first_leg, start[1]),
                    (first_leg, lane),
                    (second_leg, lane),
                    (second_leg, end[1]),
                    end,
                ]
            else:
                points = [
                    start,
                    (start[0], first_leg),
                    (lane, first_leg),
                    (lane, second_leg),
                    (end[0], second_leg),
                    end,
                ]

            boxes = self._colliding_boxes(points, obstacles)
            if not boxes:
                self._claim(lane, not horizontal)
                self._claim(first_leg, horizontal)
                self._claim(second_leg, horizontal)
                return points, []
            hit.extend(boxes)
        return None, hit

    def _route_u(self, index: int, start: Point, end: Point, exit_side: Side) -> List[Point]:
        horizontal = exit_side.is_horizontal
        coord = u_detour_coordinate(exit_side, start, end)
        outward = exit_side in (Side.RIGHT, Side.BOTTOM)
        step = self.lanes.shift if outward else -self.lanes.shift

        if exit_side == Side.TOP and self.min_y is not None and coord < self.min_y:
            coord = self.min_y
            step = self.lanes.shift

        lane = self._find_lane(coord, start, end, horizontal, step)
        if lane != round(coord):
            self._record(index, "lane_shift", f"{round(coord)} -> {lane}")
        self._claim(lane, horizontal)
        return _jog(start, end, lane, horizontal)

    def _record(self, index: int, action: str, detail: str = "") -> None:
        if self.trace is not None:
            self.trace.add_decision(index, action, detail)
