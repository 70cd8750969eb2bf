"""
Data models for diagram layout and routing.

This module contains the enums and dataclasses shared by every stage of the
layout pipeline: the input description of a diagram (nodes, connections),
the geometric primitives used while routing (bounding boxes, sides) and the
computed output records.

Classes:
    Side: One of the four sides of a node's bounding box.
    NodeType: Kind of node, which decides how it is sized and anchored.
    LayoutDirection: How a parent arranges children without explicit positions.
    Orientation: Flow direction used when placing unpositioned nodes.
    ConnectionStyle: How a connection is drawn; only CURVED changes geometry.
    IconRef: One icon inside a composite node.
    Node: Input description of a diagram node.
    Connection: Input description of a directed connection.
    Diagram: Nodes, connections and the layout flags of one diagram.
    BoundingBox: Axis-aligned rectangle used for anchoring and collisions.
    ComputedNode: A node with absolute coordinates, size and bounds.
    AnchorInfo: Resolved sides and anchor slots of one connection.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

Point = Tuple[float, float]


class Side(Enum):
    """Sides of a node, in the fixed order used to enumerate combinations."""

    TOP = "top"
    RIGHT = "right"
    BOTTOM = "bottom"
    LEFT = "left"

    @property
    def is_horizontal(self) -> bool:
        """True if a path leaves this side horizontally (left/right)."""
        return self in (Side.LEFT, Side.RIGHT)

    @property
    def opposite(self) -> "Side":
        return _OPPOSITE_SIDES[self]

    @property
    def direction(self) -> Tuple[int, int]:
        """Unit vector pointing outwards from this side."""
        return _SIDE_DIRECTIONS[self]


_OPPOSITE_SIDES = {
    Side.TOP: Side.BOTTOM,
    Side.BOTTOM: Side.TOP,
    Side.LEFT: Side.RIGHT,
    Side.RIGHT: Side.LEFT,
}

_SIDE_DIRECTIONS = {
    Side.TOP: (0, -1),
    Side.RIGHT: (1, 0),
    Side.BOTTOM: (0, 1),
    Side.LEFT: (-1, 0),
}


class NodeType(Enum):
    """Node kinds understood by the sizer."""

    ICON = "icon"
    GROUP = "group"
    COMPOSITE = "composite"
    TEXT_BOX = "text_box"
    LABEL = "label"
    PERSON = "person"
    PERSON_PC_MOBILE = "person_pc_mobile"
    PC_MOBILE = "pc_mobile"
    PC = "pc"

    @property
    def is_container(self) -> bool:
        """Whether the node holds other nodes that route and collide on their own."""
        return self is NodeType.GROUP

    @property
    def uses_full_bounds(self) -> bool:
        """Whether anchors sit on the whole box rather than the icon square."""
        return self in (NodeType.GROUP, NodeType.COMPOSITE, NodeType.TEXT_BOX)


class LayoutDirection(Enum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"


class Orientation(Enum):
    """Main flow direction for auto-laid nodes."""

    LANDSCAPE = "landscape"  # layers advance along X
    PORTRAIT = "portrait"  # layers advance along Y


class ConnectionStyle(Enum):
    ORTHOGONAL = "orthogonal"
    CURVED = "curved"
    SOLID = "solid"
    DASHED = "dashed"
    DOTTED = "dotted"


@dataclass
class IconRef:
    """An icon drawn inside a composite node."""

    id: str
    label: str = ""


@dataclass
class Node:
    """
    Input description of a diagram node.

    Attributes:
        id: Unique identifier across the whole diagram.
        type: Node kind; decides sizing and anchoring rules.
        label: Display text, used for text box sizing.
        sublabel: Secondary text, makes text boxes taller.
        position: Explicit (x, y). Relative to the parent for children.
        size: Explicit (width, height); always wins over computed sizes.
        children: Nested nodes (groups).
        icons: Icons of a composite node.
        layout: How children without explicit positions are arranged.
        icon: Opaque icon reference, passed through untouched.
    """

    id: str
    type: NodeType = NodeType.ICON
    label: str = ""
    sublabel: Optional[str] = None
    position: Optional[Point] = None
    size: Optional[Tuple[float, float]] = None
    children: List["Node"] = field(default_factory=list)
    icons: List[IconRef] = field(default_factory=list)
    layout: LayoutDirection = LayoutDirection.HORIZONTAL
    icon: Optional[str] = None

    def walk(self):
        """Yield this node and all descendants, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass
class Connection:
    """A directed connection between two nodes."""

    source: str
    target: str
    from_side: Optional[Side] = None
    to_side: Optional[Side] = None
    style: ConnectionStyle = ConnectionStyle.ORTHOGONAL
    bidirectional: bool = False
    label: Optional[str] = None


@dataclass
class Diagram:
    """A diagram: nodes, connections and layout flags."""

    nodes: List[Node] = field(default_factory=list)
    connections: List[Connection] = field(default_factory=list)
    orientation: Orientation = Orientation.LANDSCAPE
    sort_strategy: Optional[str] = None

    def walk(self):
        """Yield every node of the diagram, depth first in declared order."""
        for node in self.nodes:
            yield from node.walk()


@dataclass
class BoundingBox:
    """Axis-aligned rectangle in absolute coordinates."""

    x: float
    y: float
    width: float
    height: float

    @property
    def left(self) -> float:
        return self.x

    @property
    def top(self) -> float:
        return self.y

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2

    @property
    def center_y(self) -> float:
        return self.y + self.height / 2

    @property
    def center(self) -> Point:
        return (self.center_x, self.center_y)

    def anchor(self, side: Side, ratio: float = 0.5) -> Point:
        """
        Point on the given side at a fractional offset along it.

        The ratio runs left to right on top/bottom sides and top to bottom on
        left/right sides.
        """
        if side == Side.TOP:
            return (self.x + self.width * ratio, self.top)
        if side == Side.BOTTOM:
            return (self.x + self.width * ratio, self.bottom)
        if side == Side.LEFT:
            return (self.left, self.y + self.height * ratio)
        return (self.right, self.y + self.height * ratio)

    def expanded(self, margin: float) -> "BoundingBox":
        return BoundingBox(
            self.x - margin,
            self.y - margin,
            self.width + 2 * margin,
            self.height + 2 * margin,
        )

    def contains_point(self, point: Point) -> bool:
        px, py = point
        return self.left <= px <= self.right and self.top <= py <= self.bottom

    def contains_box(self, other: "BoundingBox") -> bool:
        return (
            self.left <= other.left
            and self.top <= other.top
            and other.right <= self.right
            and other.bottom <= self.bottom
        )

    def intersects_box(self, other: "BoundingBox") -> bool:
        """Interior overlap; touching edges do not count."""
        return (
            self.left < other.right
            and other.left < self.right
            and self.top < other.bottom
            and other.top < self.bottom
        )

    def intersects_segment(self, start: Point, end: Point) -> bool:
        """
        Check whether an orthogonal segment passes through the interior.

        Segments running exactly along an edge do not intersect.
        """
        (x1, y1), (x2, y2) = start, end
        if y1 == y2:
            lo, hi = min(x1, x2), max(x1, x2)
            return self.top < y1 < self.bottom and lo < self.right and hi > self.left
        if x1 == x2:
            lo, hi = min(y1, y2), max(y1, y2)
            return self.left < x1 < self.right and lo < self.bottom and hi > self.top
        # Diagonal segments only appear for curves; test their box
        seg = BoundingBox(min(x1, x2), min(y1, y2), abs(x2 - x1), abs(y2 - y1))
        return self.intersects_box(seg)


@dataclass
class ComputedNode:
    """
    A node after sizing and placement.

    Coordinates are absolute. Children are already converted to absolute
    space as well, so a computed tree never needs parent offsets applied.

    Attributes:
        id: Node id.
        type: Node kind.
        x: Absolute x of the top-left corner.
        y: Absolute y of the top-left corner.
        width: Computed width (always > 0).
        height: Computed height (always > 0).
        bounds: Box used for anchoring and collision checks. For icon-like
            nodes this is the icon square, excluding the label band.
        children: Computed children in absolute space.
        parent_id: Id of the enclosing node, None at top level.
        layer: Layer rank for auto-laid nodes, None otherwise.
        label: Label of the source node.
        sublabel: Sublabel of the source node.
        layout: Child layout direction of the source node.
    """

    id: str
    type: NodeType
    x: float
    y: float
    width: float
    height: float
    bounds: BoundingBox
    children: List["ComputedNode"] = field(default_factory=list)
    parent_id: Optional[str] = None
    layer: Optional[int] = None
    label: str = ""
    sublabel: Optional[str] = None
    layout: LayoutDirection = LayoutDirection.HORIZONTAL

    @property
    def center(self) -> Point:
        return self.bounds.center

    def walk(self):
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass
class AnchorInfo:
    """
    Sides and anchor slots resolved for one connection.

    The index/total pairs give this connection's slot among all connections
    that touch the same node side.
    """

    from_side: Side
    to_side: Side
    from_index: int = 0
    from_total: int = 1
    to_index: int = 0
    to_total: int = 1
