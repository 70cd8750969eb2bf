"""
Main layout engine module.

Combines sizing, layered placement, anchor selection and routing into a
single render of a diagram.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from .anchors import AnchorPlanner
from .layout import DEFAULT_SPACING, DEFAULT_START_OFFSET, AutoLayout, flatten, to_computed
from .models import AnchorInfo, ComputedNode, Diagram, Orientation
from .ordering import SortStrategy, detect_bidirectional_pairs, sort_connections
from .router import LaneRegistry, PathRouter, RoutedConnection
from .sizing import DEFAULT_ICON_SIZE, NodeSizer
from .tracer import LayoutTrace

LOGGER = logging.getLogger(__name__)

# Nodes whose centers are this close share a row or column in grid()
GRID_TOLERANCE = 30


@dataclass
class LayoutResult:
    """
    Result of one render.

    Attributes:
        nodes: Top-level computed nodes; children are in absolute space
        node_map: Every computed node by id
        layers: Layer rank of every auto-laid node
        anchors: Resolved anchors by connection index
        routes: Routed connections in declaration order
        orientation: Orientation used for auto-layout
    """

    nodes: List[ComputedNode] = field(default_factory=list)
    node_map: Dict[str, ComputedNode] = field(default_factory=dict)
    layers: Dict[str, int] = field(default_factory=dict)
    anchors: Dict[int, AnchorInfo] = field(default_factory=dict)
    routes: List[RoutedConnection] = field(default_factory=list)
    orientation: Orientation = Orientation.LANDSCAPE

    def get_route(self, source: str, target: str) -> Optional[RoutedConnection]:
        """First route from source to target, if any."""
        for route in self.routes:
            if route.source == source and route.target == target:
                return route
        return None

    def grid(self, tolerance: float = GRID_TOLERANCE) -> Dict[str, List[dict]]:
        """
        Group nodes into rows and columns by their centers.

        Returns:
            {"rows": [...], "columns": [...]}, each entry holding the rounded
            coordinate and the ids of its nodes, sorted by coordinate
        """
        rows: List[Tuple[float, List[str]]] = []
        columns: List[Tuple[float, List[str]]] = []
        for node in self.node_map.values():
            center_x, center_y = node.center
            _bucket(rows, center_y, node.id, tolerance)
            _bucket(columns, center_x, node.id, tolerance)

        return {
            "rows": [{"y": round(y), "nodes": ids} for y, ids in sorted(rows)],
            "columns": [{"x": round(x), "nodes": ids} for x, ids in sorted(columns)],
        }


def _bucket(buckets: List[Tuple[float, List[str]]], value: float, node_id: str, tolerance: float) -> None:
    for coord, ids in buckets:
        if abs(value - coord) < tolerance:
            ids.append(node_id)
            return
    buckets.append((value, [node_id]))


class DiagramEngine:
    """
    Lay out diagrams and route their connections.

    Example:
        >>> engine = DiagramEngine(orientation="portrait", viewport_width=1200)
        >>> result = engine.layout(diagram)
        >>> result.get_route("@web", "@db").waypoints
    """

    def __init__(
        self,
        orientation: Optional[Union[str, Orientation]] = None,
        viewport_width: Optional[float] = None,
        icon_size: float = DEFAULT_ICON_SIZE,
        spacing: Tuple[float, float] = DEFAULT_SPACING,
        start_offset: Tuple[float, float] = DEFAULT_START_OFFSET,
        min_y: Optional[float] = None,
        sort_strategy: Optional[Union[str, SortStrategy]] = None,
    ):
        """
        Initialize the engine.

        Args:
            orientation: "landscape" or "portrait"; overrides the diagram's
            viewport_width: Centers portrait layers on this width
            icon_size: Side of an icon glyph
            spacing: (x, y) distance between auto-laid layers and members
            start_offset: (x, y) of the first auto-laid layer
            min_y: Routing detours never go above this y
            sort_strategy: Connection processing order; overrides the diagram's
        """
        try:
            self.orientation = Orientation(orientation) if orientation else None
        except ValueError:
            raise ValueError("orientation must be 'landscape' or 'portrait'") from None
        try:
            self.sort_strategy = SortStrategy(sort_strategy) if sort_strategy else None
        except ValueError:
            raise ValueError(f"unknown connection sort strategy: {sort_strategy}") from None

        if icon_size <= 0:
            raise ValueError("icon_size must be positive")
        if min(spacing) <= 0:
            raise ValueError("spacing must be positive")

        self.viewport_width = viewport_width
        self.icon_size = icon_size
        self.spacing = spacing
        self.start_offset = start_offset
        self.min_y = min_y
        self.sizer = NodeSizer(icon_size=icon_size)
        self._trace: Optional[LayoutTrace] = None

    def get_trace(self) -> Optional[LayoutTrace]:
        """Trace of the last layout() call made with debug=True."""
        return self._trace

    def compute_nodes(self, diagram: Diagram) -> Tuple[List[ComputedNode], Dict[str, int]]:
        """Size and place all nodes; returns the computed tree and layer map."""
        orientation = self.orientation or diagram.orientation
        sized = self.sizer.size_all(diagram.nodes)
        if self._trace is not None:
            self._trace.add_stage(
                "sizing", {s.id: (s.width, s.height) for s in sized}
            )

        auto = AutoLayout(orientation, self.spacing, self.start_offset, self.viewport_width)
        placed = auto.layout(sized, diagram.connections)
        assignment = auto.assignment
        if self._trace is not None:
            self._trace.add_stage(
                "layering",
                {
                    "layers": dict(assignment.layers),
                    "has_cycles": assignment.has_cycles,
                    "synthetic_root": assignment.synthetic_root,
                    "unreached": list(assignment.unreached),
                },
            )

        nodes = [
            to_computed(n, layers=assignment.layers, icon_size=self.icon_size)
            for n in placed
        ]
        if self._trace is not None:
            self._trace.add_stage(
                "coordinates", {n.id: (n.x, n.y) for n in nodes}
            )
        return nodes, dict(assignment.layers)

    def layout(self, diagram: Diagram, debug: bool = False) -> LayoutResult:
        """
        Run the full pipeline on a diagram.

        Args:
            diagram: Diagram to lay out
            debug: Record a LayoutTrace, available from get_trace()

        Returns:
            LayoutResult with the node tree, anchors and routes
        """
        orientation = self.orientation or diagram.orientation
        self._trace = LayoutTrace(orientation=orientation.value) if debug else None

        nodes, layers = self.compute_nodes(diagram)
        node_map = flatten(nodes)

        strategy = self.sort_strategy or SortStrategy(diagram.sort_strategy or "original")
        ordered = sort_connections(diagram.connections, strategy, node_map)
        if self._trace is not None:
            self._trace.add_stage(
                "ordering", {"strategy": strategy.value, "order": [i for i, _ in ordered]}
            )

        planner = AnchorPlanner(node_map, self._trace)
        anchors = planner.plan(ordered)
        if self._trace is not None:
            self._trace.add_stage(
                "anchors",
                {i: (a.from_side.value, a.to_side.value) for i, a in anchors.items()},
            )

        lanes = LaneRegistry()
        lanes.register_node_areas(node_map.values())
        router = PathRouter(node_map, lanes, self.min_y, self._trace)

        routed: Dict[int, RoutedConnection] = {}
        for index, connection in ordered:
            info = anchors.get(index)
            if info is None:
                continue
            start, end = planner.anchor_points(connection, info)
            routed[index] = router.route(
                index, connection, start, end, info.from_side, info.to_side
            )

        for first, second in detect_bidirectional_pairs(diagram.connections):
            for index in (first, second):
                if index in routed:
                    routed[index].paired = True

        routes = [routed[i] for i in sorted(routed)]
        if self._trace is not None:
            self._trace.add_stage(
                "routing", {r.index: r.waypoints for r in routes}
            )
        LOGGER.debug(
            "Laid out %d nodes and routed %d of %d connections",
            len(node_map),
            len(routes),
            len(diagram.connections),
        )

        return LayoutResult(
            nodes=nodes,
            node_map=node_map,
            layers=layers,
            anchors=anchors,
            routes=routes,
            orientation=orientation,
        )


def layout_diagram(diagram: Diagram, **options) -> LayoutResult:
    """
    Convenience function: lay out a diagram with a fresh engine.

    Args:
        diagram: Diagram to lay out
        **options: DiagramEngine keyword arguments
    """
    return DiagramEngine(**options).layout(diagram)
