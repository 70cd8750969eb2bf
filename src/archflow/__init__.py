"""
archflow - Automatic layout and connection routing for architecture diagrams

Sizes nested nodes, places the ones without explicit positions on layers,
and routes every connection as an orthogonal polyline that avoids other
nodes and keeps parallel connections on separate lanes.

Example:
    >>> from archflow import DiagramEngine, parse_diagram
    >>> diagram = parse_diagram({
    ...     "nodes": [{"id": "@web"}, {"id": "@db"}],
    ...     "connections": [{"from": "@web", "to": "@db"}],
    ... })
    >>> result = DiagramEngine().layout(diagram)
    >>> result.get_route("@web", "@db").connector
    <ConnectorType.STRAIGHT: 'straight'>

Debug Mode Example:
    >>> engine = DiagramEngine()
    >>> result = engine.layout(diagram, debug=True)
    >>> print(engine.get_trace().summary())
"""

from .anchors import AnchorPlanner, anchor_ratio, best_sides, score_sides
from .debug import LayoutInspector, PreviewRenderer
from .engine import DiagramEngine, LayoutResult, layout_diagram
from .graph import LayoutGraph, build_graph
from .layout import AutoLayout, LayerAssignment, assign_layers, compute_layout, flatten
from .models import (
    AnchorInfo,
    BoundingBox,
    ComputedNode,
    Connection,
    ConnectionStyle,
    Diagram,
    IconRef,
    LayoutDirection,
    Node,
    NodeType,
    Orientation,
    Side,
)
from .ordering import SortStrategy, detect_bidirectional_pairs, sort_connections
from .parser import DuplicateNodeError, ParseError, Parser, parse_diagram
from .router import ConnectorType, LaneRegistry, PathRouter, RoutedConnection
from .sizing import NodeSizer, SizedNode
from .tracer import LayoutTrace, PipelineStage, RoutingDecision

__version__ = "0.1.0"

__all__ = [
    # Main API
    "DiagramEngine",
    "LayoutResult",
    "layout_diagram",
    "compute_layout",
    "flatten",
    "parse_diagram",
    "Parser",
    "ParseError",
    "DuplicateNodeError",
    # Models
    "AnchorInfo",
    "BoundingBox",
    "ComputedNode",
    "Connection",
    "ConnectionStyle",
    "Diagram",
    "IconRef",
    "LayoutDirection",
    "Node",
    "NodeType",
    "Orientation",
    "Side",
    # Layout
    "AutoLayout",
    "LayerAssignment",
    "LayoutGraph",
    "NodeSizer",
    "SizedNode",
    "assign_layers",
    "build_graph",
    # Routing
    "AnchorPlanner",
    "ConnectorType",
    "LaneRegistry",
    "PathRouter",
    "RoutedConnection",
    "SortStrategy",
    "anchor_ratio",
    "best_sides",
    "detect_bidirectional_pairs",
    "score_sides",
    "sort_connections",
    # Debug
    "LayoutInspector",
    "PreviewRenderer",
    "LayoutTrace",
    "PipelineStage",
    "RoutingDecision",
]
