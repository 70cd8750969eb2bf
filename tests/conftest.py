"""Pytest configuration and shared fixtures for archflow tests."""

import pytest

from archflow import (
    BoundingBox,
    ComputedNode,
    Connection,
    Diagram,
    DiagramEngine,
    Node,
    NodeType,
    Parser,
)


def _computed(node_id, x, y, width=48, height=48, node_type=NodeType.ICON, parent_id=None, children=None):
    return ComputedNode(
        id=node_id,
        type=node_type,
        x=x,
        y=y,
        width=width,
        height=height,
        bounds=BoundingBox(x, y, width, height),
        children=children or [],
        parent_id=parent_id,
    )


@pytest.fixture
def make_computed():
    """Factory for ComputedNode records whose bounds cover the whole box."""
    return _computed


@pytest.fixture
def simple_diagram():
    """Two unpositioned icons, a -> b."""
    return Diagram(
        nodes=[Node("a"), Node("b")],
        connections=[Connection("a", "b")],
    )


@pytest.fixture
def fan_out_diagram():
    """One source feeding three targets, all unpositioned."""
    return Diagram(
        nodes=[Node("a"), Node("b"), Node("c"), Node("d")],
        connections=[Connection("a", "b"), Connection("a", "c"), Connection("a", "d")],
    )


@pytest.fixture
def cyclic_diagram():
    """Diagram whose graph is a single cycle."""
    return Diagram(
        nodes=[Node("a"), Node("b"), Node("c")],
        connections=[Connection("a", "b"), Connection("b", "c"), Connection("c", "a")],
    )


@pytest.fixture
def obstacle_diagram():
    """Three aligned icons; the a -> b connection runs through c."""
    return Diagram(
        nodes=[
            Node("a", position=(100, 100)),
            Node("c", position=(300, 100)),
            Node("b", position=(500, 100)),
        ],
        connections=[Connection("a", "b")],
    )


@pytest.fixture
def group_diagram():
    """A sized group holding two icons, plus an outside target."""
    return Diagram(
        nodes=[
            Node(
                "vpc",
                type=NodeType.GROUP,
                position=(100, 100),
                size=(400, 300),
                children=[Node("web"), Node("app")],
            ),
            Node("users", position=(700, 160)),
        ],
        connections=[Connection("web", "users"), Connection("app", "users")],
    )


@pytest.fixture
def parser():
    """Fresh Parser instance."""
    return Parser()


@pytest.fixture
def engine():
    """Default DiagramEngine instance."""
    return DiagramEngine()
