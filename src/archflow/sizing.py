"""
Node sizing for the layout engine.

Computes the size of every node and the local offset of every child,
bottom-up. Sizing never mutates the input nodes: every call returns fresh
SizedNode records, and a group emits shifted copies of its children when
it normalizes them.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

from .models import LayoutDirection, Node, NodeType

LOGGER = logging.getLogger(__name__)

# =============================================================================
# SIZING CONFIGURATION
# =============================================================================

# Side of an icon glyph
DEFAULT_ICON_SIZE = 48

# Padding between a group's border and its children
DEFAULT_GROUP_PADDING = 20

# Gap between neighbouring children
DEFAULT_SPACING = 30

# Space reserved below an icon for its label
DEFAULT_LABEL_HEIGHT = 80

# Band at the top of a group holding its title
GROUP_LABEL_BAND = 20

# Vertical child layouts advance by this share of a labelled icon's height
VERTICAL_STEP_RATIO = 0.6

# Composite nodes draw smaller icons with tighter spacing
COMPOSITE_PADDING = 20
COMPOSITE_SPACING = 10
COMPOSITE_ICON_SIZE = 40

# Text boxes
TEXT_CHAR_WIDTH = 8
TEXT_PADDING = 20
TEXT_MIN_WIDTH = 60
TEXT_HEIGHT = 30
TEXT_HEIGHT_WITH_SUBLABEL = 50

# =============================================================================


@dataclass
class SizedNode:
    """
    A node with its computed size and local offset.

    Attributes:
        node: The input node.
        x: Offset relative to the parent (0 for unplaced top-level nodes).
        y: Offset relative to the parent.
        width: Computed width.
        height: Computed height.
        children: Sized children, offsets relative to this node.
    """

    node: Node
    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0
    children: List["SizedNode"] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.node.id

    def moved(self, dx: float, dy: float) -> "SizedNode":
        """Copy of this record shifted by (dx, dy)."""
        return replace(self, x=self.x + dx, y=self.y + dy)


class NodeSizer:
    """
    Recursive node sizer.

    Args:
        icon_size: Side of an icon glyph
        padding: Group padding
        spacing: Gap between children
        label_height: Space reserved for icon labels
    """

    def __init__(
        self,
        icon_size: float = DEFAULT_ICON_SIZE,
        padding: float = DEFAULT_GROUP_PADDING,
        spacing: float = DEFAULT_SPACING,
        label_height: float = DEFAULT_LABEL_HEIGHT,
    ):
        self.icon_size = icon_size
        self.padding = padding
        self.spacing = spacing
        self.label_height = label_height

    def size_all(self, nodes: List[Node]) -> List[SizedNode]:
        """Size a list of top-level nodes."""
        return [self.size(node) for node in nodes]

    def size(
        self, node: Node, index: int = 0, parent: Optional[Node] = None
    ) -> SizedNode:
        """
        Size one node and, recursively, its children.

        Args:
            node: Node to size
            index: Position of the node among its siblings
            parent: Enclosing node, None at top level

        Returns:
            A fresh SizedNode
        """
        x, y = self._offset(node, index, parent)
        children = [
            self.size(child, i, node) for i, child in enumerate(node.children)
        ]

        if node.type == NodeType.GROUP:
            width, height, children = self._group_size(node, children)
        elif node.type == NodeType.COMPOSITE:
            width, height = self._composite_size(node)
        elif node.type == NodeType.TEXT_BOX:
            width, height = self._text_box_size(node)
        else:
            width, height = self._icon_size(node)

        return SizedNode(node, x, y, width, height, children)

    def _offset(
        self, node: Node, index: int, parent: Optional[Node]
    ) -> Tuple[float, float]:
        if node.position is not None:
            return node.position
        if parent is None:
            return (0, 0)

        step = self.icon_size + self.spacing
        top = self.padding + GROUP_LABEL_BAND
        if parent.layout == LayoutDirection.VERTICAL:
            # Zig-zag between two columns
            row_step = (self.icon_size + self.label_height) * VERTICAL_STEP_RATIO
            return (self.padding + (index % 2) * step, top + index * row_step)
        return (self.padding + index * step, top)

    def _explicit_size(self, node: Node) -> Optional[Tuple[float, float]]:
        """The node's own size, or None when unset or not positive."""
        if node.size is None:
            return None
        if node.size[0] <= 0 or node.size[1] <= 0:
            LOGGER.debug("Ignoring non-positive size %s of node %s", node.size, node.id)
            return None
        return node.size

    def _icon_size(self, node: Node) -> Tuple[float, float]:
        size = self._explicit_size(node)
        if size is not None:
            return size
        return (self.icon_size, self.icon_size + self.label_height)

    def _group_size(
        self, node: Node, children: List[SizedNode]
    ) -> Tuple[float, float, List[SizedNode]]:
        size = self._explicit_size(node)
        if size is not None:
            return size[0], size[1], children

        if not children:
            return (
                self.icon_size + 2 * self.padding,
                self.icon_size + self.label_height + 2 * self.padding + self.spacing,
                children,
            )

        min_x = min(c.x for c in children)
        min_y = min(c.y for c in children)
        max_x = max(c.x + c.width for c in children)
        max_y = max(c.y + c.height for c in children)

        # One uniform shift so the tightest child sits on the padding line
        dx = min_x - self.padding
        dy = min_y - self.padding
        shifted = [c.moved(-dx, -dy) for c in children]

        return max_x - dx + self.padding, max_y - dy + self.padding, shifted

    def _composite_size(self, node: Node) -> Tuple[float, float]:
        size = self._explicit_size(node)
        if size is not None:
            return size

        count = len(node.icons)
        extent = count * (COMPOSITE_ICON_SIZE + COMPOSITE_SPACING)
        if node.layout == LayoutDirection.VERTICAL:
            return (
                COMPOSITE_ICON_SIZE + 2 * COMPOSITE_PADDING,
                2 * COMPOSITE_PADDING + extent + self.label_height,
            )
        return (
            2 * COMPOSITE_PADDING + extent,
            COMPOSITE_ICON_SIZE + 2 * COMPOSITE_PADDING + self.label_height,
        )

    def _text_box_size(self, node: Node) -> Tuple[float, float]:
        size = self._explicit_size(node)
        if size is not None:
            return size

        width = max(TEXT_MIN_WIDTH, len(node.label) * TEXT_CHAR_WIDTH + TEXT_PADDING)
        height = TEXT_HEIGHT_WITH_SUBLABEL if node.sublabel else TEXT_HEIGHT
        return width, height


def size_nodes(nodes: List[Node], icon_size: float = DEFAULT_ICON_SIZE) -> List[SizedNode]:
    """Convenience wrapper: size top-level nodes with default settings."""
    return NodeSizer(icon_size=icon_size).size_all(nodes)
