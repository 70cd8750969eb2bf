"""
Layout module using networkx for layered placement of unpositioned nodes.

Uses networkx for:
- Graph representation
- Cycle detection

Pipeline:
- Layer assignment (BFS longest path, synthetic root for cyclic graphs)
- Intra-layer ordering by predecessor barycenter
- Coordinate assignment for landscape and portrait flows
- Conversion of the sized tree to absolute ComputedNode records
"""

import logging
import math
from collections import deque
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple

from .graph import LayoutGraph, build_graph
from .models import BoundingBox, ComputedNode, Connection, Diagram, Orientation
from .sizing import DEFAULT_ICON_SIZE, NodeSizer, SizedNode

LOGGER = logging.getLogger(__name__)

# =============================================================================
# LAYOUT CONFIGURATION
# =============================================================================

# Distance between consecutive layers and between nodes of one layer
DEFAULT_SPACING = (160, 160)

# Top-left offset of the first layer
DEFAULT_START_OFFSET = (100, 100)

# =============================================================================


@dataclass
class LayerAssignment:
    """
    Result of layer assignment.

    Attributes:
        layers: Node id -> layer rank
        has_cycles: Whether the layered graph contains a cycle
        synthetic_root: Node used as root when no node had in-degree 0
        unreached: Nodes placed after the last layer because no root reached them
    """

    layers: Dict[str, int] = field(default_factory=dict)
    has_cycles: bool = False
    synthetic_root: Optional[str] = None
    unreached: List[str] = field(default_factory=list)

    def grouped(self, node_order: List[str]) -> List[Tuple[int, List[str]]]:
        """(layer, ids) pairs in ascending layer order, ids in declared order."""
        by_layer: Dict[int, List[str]] = {}
        for node_id in node_order:
            if node_id in self.layers:
                by_layer.setdefault(self.layers[node_id], []).append(node_id)
        return sorted(by_layer.items())


def assign_layers(graph: LayoutGraph) -> LayerAssignment:
    """
    Assign every node a layer using BFS longest-path relaxation.

    Roots (in-degree 0, declared order) start at layer 0. A successor is
    pushed to one past its predecessor whenever that raises its layer.
    Layers never reach the node count, which bounds relaxation around
    cycles. A graph without roots uses its first declared node as root.
    Nodes no root reaches are placed one past the deepest layer.
    """
    result = LayerAssignment(has_cycles=graph.has_cycle())
    node_ids = graph.node_ids
    if not node_ids:
        return result

    roots = graph.get_roots()
    if not roots:
        roots = [node_ids[0]]
        result.synthetic_root = node_ids[0]
        LOGGER.debug("No root found, using %s as synthetic root", node_ids[0])

    limit = len(node_ids)
    layers = result.layers
    queue = deque()
    for root in roots:
        layers[root] = 0
        queue.append(root)

    while queue:
        current = queue.popleft()
        next_layer = layers[current] + 1
        if next_layer >= limit:
            continue
        for successor in graph.get_successors(current):
            if next_layer > layers.get(successor, -1):
                layers[successor] = next_layer
                queue.append(successor)

    result.unreached = [n for n in node_ids if n not in layers]
    if result.unreached:
        overflow = max(layers.values()) + 1
        for node_id in result.unreached:
            layers[node_id] = overflow

    return result


def order_layer(
    layer: List[str],
    graph: LayoutGraph,
    positioned: Dict[str, Tuple[float, float]],
) -> List[str]:
    """
    Order the nodes of one layer by the mean (x + y) of placed predecessors.

    Nodes without placed predecessors go last. The sort is stable, so ties
    keep declared order.
    """

    def score(node_id: str) -> float:
        coords = [positioned[p] for p in graph.get_predecessors(node_id) if p in positioned]
        if not coords:
            return math.inf
        return sum(x + y for x, y in coords) / len(coords)

    return sorted(layer, key=score)


class AutoLayout:
    """
    Places top-level nodes that have neither an explicit nor a computed position.

    Args:
        orientation: Landscape (layers along X) or portrait (layers along Y)
        spacing: (x, y) distance between layers and between layer members
        start_offset: (x, y) of the first layer
        viewport_width: Centers portrait layers on this width when given
    """

    def __init__(
        self,
        orientation: Orientation = Orientation.LANDSCAPE,
        spacing: Tuple[float, float] = DEFAULT_SPACING,
        start_offset: Tuple[float, float] = DEFAULT_START_OFFSET,
        viewport_width: Optional[float] = None,
    ):
        self.orientation = orientation
        self.spacing = spacing
        self.start_offset = start_offset
        self.viewport_width = viewport_width
        self.assignment = LayerAssignment()

    @staticmethod
    def needs_layout(sized: SizedNode) -> bool:
        return sized.node.position is None and sized.x == 0 and sized.y == 0

    def layout(
        self, nodes: List[SizedNode], connections: List[Connection]
    ) -> List[SizedNode]:
        """
        Compute positions for the unplaced top-level nodes.

        Args:
            nodes: Sized top-level nodes
            connections: All diagram connections

        Returns:
            New list of top-level records; placed ones are fresh copies
        """
        pending = [n for n in nodes if self.needs_layout(n)]
        if not pending:
            self.assignment = LayerAssignment()
            return list(nodes)

        graph = build_graph([n.id for n in pending], connections)
        self.assignment = assign_layers(graph)
        by_id = {n.id: n for n in pending}

        groups = self.assignment.grouped(graph.node_ids)
        widest = max(len(ids) for _, ids in groups)
        positioned: Dict[str, Tuple[float, float]] = {}

        for layer, ids in groups:
            ordered = order_layer(ids, graph, positioned)
            for index, node_id in enumerate(ordered):
                positioned[node_id] = self._place(
                    layer, index, len(ordered), widest, by_id[node_id]
                )

        return [
            replace(n, x=positioned[n.id][0], y=positioned[n.id][1])
            if n.id in positioned
            else n
            for n in nodes
        ]

    def _place(
        self, layer: int, index: int, count: int, widest: int, sized: SizedNode
    ) -> Tuple[float, float]:
        spacing_x, spacing_y = self.spacing
        start_x, start_y = self.start_offset

        if self.orientation == Orientation.PORTRAIT:
            center_x = self.viewport_width / 2 if self.viewport_width else start_x
            offset = index - (count - 1) / 2
            return (center_x + offset * spacing_x - sized.width / 2, start_y + layer * spacing_y)

        # Center each layer against the widest one
        slot = index + (widest - count) / 2
        return (start_x + layer * spacing_x, start_y + slot * spacing_y)


def node_bounds(sized: SizedNode, x: float, y: float, icon_size: float) -> BoundingBox:
    """Anchoring box: the full box for containers and text, the icon square otherwise."""
    if sized.node.type.uses_full_bounds:
        return BoundingBox(x, y, sized.width, sized.height)
    return BoundingBox(x, y, icon_size, icon_size)


def to_computed(
    sized: SizedNode,
    origin: Tuple[float, float] = (0, 0),
    parent_id: Optional[str] = None,
    layers: Optional[Dict[str, int]] = None,
    icon_size: float = DEFAULT_ICON_SIZE,
) -> ComputedNode:
    """Convert a sized tree to ComputedNode records in absolute space."""
    x = origin[0] + sized.x
    y = origin[1] + sized.y
    node = sized.node
    return ComputedNode(
        id=node.id,
        type=node.type,
        x=x,
        y=y,
        width=sized.width,
        height=sized.height,
        bounds=node_bounds(sized, x, y, icon_size),
        children=[
            to_computed(child, (x, y), node.id, None, icon_size)
            for child in sized.children
        ],
        parent_id=parent_id,
        layer=(layers or {}).get(node.id) if parent_id is None else None,
        label=node.label,
        sublabel=node.sublabel,
        layout=node.layout,
    )


def compute_layout(
    diagram: Diagram,
    orientation: Optional[Orientation] = None,
    viewport_width: Optional[float] = None,
    icon_size: float = DEFAULT_ICON_SIZE,
    spacing: Tuple[float, float] = DEFAULT_SPACING,
    start_offset: Tuple[float, float] = DEFAULT_START_OFFSET,
) -> List[ComputedNode]:
    """
    Size and place every node of a diagram.

    Args:
        diagram: Diagram to lay out
        orientation: Overrides the diagram's orientation when given
        viewport_width: Width used to center portrait layers
        icon_size: Side of an icon glyph
        spacing: Auto-layout spacing
        start_offset: Auto-layout start offset

    Returns:
        Top-level ComputedNode records; children are in absolute space
    """
    sized = NodeSizer(icon_size=icon_size).size_all(diagram.nodes)
    auto = AutoLayout(
        orientation or diagram.orientation, spacing, start_offset, viewport_width
    )
    placed = auto.layout(sized, diagram.connections)
    layers = auto.assignment.layers
    return [to_computed(n, layers=layers, icon_size=icon_size) for n in placed]


def flatten(nodes: List[ComputedNode]) -> Dict[str, ComputedNode]:
    """
    Map every node id of a computed tree to its record.

    The first node wins when an id repeats.
    """
    node_map: Dict[str, ComputedNode] = {}
    for top in nodes:
        for node in top.walk():
            if node.id in node_map:
                LOGGER.warning("Duplicate node id %s ignored", node.id)
                continue
            node_map[node.id] = node
    return node_map
