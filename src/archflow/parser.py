"""
Parser module for diagram input.

Turns a diagram definition (a mapping, or JSON text holding one) into the
Diagram model. Only structural problems are reported: missing ids,
duplicate ids, malformed coordinates and unknown enum values. Connections
to unknown nodes are left for the engine, which drops them.
"""

import json
from typing import Any, List, Mapping, Optional, Set, Tuple, Union

from .models import (
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
from .ordering import SortStrategy


class ParseError(ValueError):
    """Raised when diagram input is structurally invalid."""

    pass


class DuplicateNodeError(ParseError):
    """Raised when two nodes share an id."""

    pass


def _enum(enum_cls, value: Any, where: str, field_name: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(repr(e.value) for e in enum_cls)
        raise ParseError(
            f"{where}: Invalid {field_name} {value!r} (expected one of {allowed})"
        ) from None


def _pair(value: Any, where: str, field_name: str, positive: bool = False) -> Optional[Tuple[float, float]]:
    if value is None:
        return None
    if (
        not isinstance(value, (list, tuple))
        or len(value) != 2
        or not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in value)
    ):
        raise ParseError(f"{where}: {field_name} must be a pair of numbers, got {value!r}")
    if positive and (value[0] <= 0 or value[1] <= 0):
        raise ParseError(f"{where}: {field_name} must be positive, got {list(value)!r}")
    return (value[0], value[1])


class Parser:
    """Parses diagram definitions into Diagram objects."""

    def __init__(self):
        self.seen_ids: Set[str] = set()

    def parse(self, data: Union[str, Mapping[str, Any]]) -> Diagram:
        """
        Parse a diagram definition.

        Args:
            data: JSON text or an already decoded mapping with "nodes",
                  "connections", and optionally "layout" (orientation) and
                  "connection_sort_strategy"

        Returns:
            Diagram

        Raises:
            ParseError: If the input is structurally invalid
        """
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError as exc:
                raise ParseError(f"Line {exc.lineno}: Invalid JSON: {exc.msg}") from None

        if not isinstance(data, Mapping):
            raise ParseError("Diagram definition must be a mapping")

        self.seen_ids = set()
        raw_nodes = data.get("nodes") or []
        raw_connections = data.get("connections") or []
        if not isinstance(raw_nodes, list):
            raise ParseError("nodes: Expected a list")
        if not isinstance(raw_connections, list):
            raise ParseError("connections: Expected a list")

        orientation = _enum(Orientation, data.get("layout", "landscape"), "diagram", "layout")
        strategy = data.get("connection_sort_strategy", data.get("connectionSortStrategy"))
        if strategy is not None:
            strategy = _enum(SortStrategy, strategy, "diagram", "connection sort strategy").value

        return Diagram(
            nodes=self._parse_nodes(raw_nodes, "nodes", None),
            connections=[
                self._parse_connection(raw, f"connections[{i}]")
                for i, raw in enumerate(raw_connections)
            ],
            orientation=orientation,
            sort_strategy=strategy,
        )

    def _parse_nodes(self, raw_nodes: List[Any], where: str, parent_id: Optional[str]) -> List[Node]:
        return [
            self._parse_node(raw, f"{where}[{i}]", parent_id)
            for i, raw in enumerate(raw_nodes)
        ]

    def _parse_node(self, raw: Any, where: str, parent_id: Optional[str]) -> Node:
        if not isinstance(raw, Mapping):
            raise ParseError(f"{where}: Expected a mapping")

        node_id = raw.get("id")
        if not node_id or not isinstance(node_id, str):
            raise ParseError(f"{where}: Node is missing an id")
        if node_id in self.seen_ids:
            raise DuplicateNodeError(f'{where}: Duplicate node id "{node_id}"')
        self.seen_ids.add(node_id)

        declared_parent = raw.get("parent_id", raw.get("parentId"))
        if declared_parent is not None and declared_parent != parent_id:
            if parent_id is None:
                raise ParseError(f'{where}: Top-level node "{node_id}" should not have a parent_id')
            raise ParseError(
                f'{where}: Node "{node_id}" has parent_id "{declared_parent}", '
                f'expected "{parent_id}"'
            )

        children = raw.get("children") or []
        if not isinstance(children, list):
            raise ParseError(f"{where}.children: Expected a list")

        icons = []
        for i, icon in enumerate(raw.get("icons") or []):
            if not isinstance(icon, Mapping) or "id" not in icon:
                raise ParseError(f"{where}.icons[{i}]: Icon is missing an id")
            icons.append(IconRef(id=icon["id"], label=icon.get("label") or ""))

        return Node(
            id=node_id,
            type=_enum(NodeType, raw.get("type", "icon"), where, "node type"),
            label=raw.get("label") or "",
            sublabel=raw.get("sublabel") or None,
            position=_pair(raw.get("position"), where, "position"),
            size=_pair(raw.get("size"), where, "size", positive=True),
            children=self._parse_nodes(children, f"{where}.children", node_id),
            icons=icons,
            layout=_enum(LayoutDirection, raw.get("layout", "horizontal"), where, "layout"),
            icon=raw.get("icon"),
        )

    def _parse_connection(self, raw: Any, where: str) -> Connection:
        if not isinstance(raw, Mapping):
            raise ParseError(f"{where}: Expected a mapping")

        source, target = raw.get("from"), raw.get("to")
        if not source:
            raise ParseError(f"{where}: Empty source node")
        if not target:
            raise ParseError(f"{where}: Empty target node")

        from_side = raw.get("from_side", raw.get("fromSide"))
        to_side = raw.get("to_side", raw.get("toSide"))
        return Connection(
            source=source,
            target=target,
            from_side=_enum(Side, from_side, where, "from_side") if from_side else None,
            to_side=_enum(Side, to_side, where, "to_side") if to_side else None,
            style=_enum(ConnectionStyle, raw.get("style", "orthogonal"), where, "style"),
            bidirectional=bool(raw.get("bidirectional", False)),
            label=raw.get("label") or None,
        )


def parse_diagram(data: Union[str, Mapping[str, Any]]) -> Diagram:
    """Convenience function to parse a diagram definition."""
    return Parser().parse(data)
