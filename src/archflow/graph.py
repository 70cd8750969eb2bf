"""
Graph module for the layout engine.

Wraps a networkx DiGraph built from the nodes that take part in
auto-layout, keeping their declared order for deterministic traversal.
"""

import logging
from typing import Iterable, List

import networkx as nx

from .models import Connection

LOGGER = logging.getLogger(__name__)


class LayoutGraph:
    """Directed graph over the auto-laid nodes of a diagram."""

    def __init__(self, node_ids: Iterable[str]):
        self.graph = nx.DiGraph()
        # networkx keeps insertion order for nodes and adjacency
        self.graph.add_nodes_from(node_ids)
        self.dropped: List[Connection] = []

    def add_connection(self, connection: Connection) -> bool:
        """
        Add the edge of a connection if both endpoints are known.

        Returns False (and remembers the connection) when it was dropped.
        """
        if connection.source not in self.graph or connection.target not in self.graph:
            self.dropped.append(connection)
            LOGGER.debug(
                "Dropping connection %s -> %s from layering: unknown endpoint",
                connection.source,
                connection.target,
            )
            return False
        self.graph.add_edge(connection.source, connection.target)
        return True

    @property
    def node_ids(self) -> List[str]:
        return list(self.graph.nodes)

    def __len__(self) -> int:
        return self.graph.number_of_nodes()

    def __contains__(self, node_id: str) -> bool:
        return node_id in self.graph

    def get_successors(self, node_id: str) -> List[str]:
        """Get all nodes that this node points to."""
        return list(self.graph.successors(node_id))

    def get_predecessors(self, node_id: str) -> List[str]:
        """Get all nodes that point to this node."""
        return list(self.graph.predecessors(node_id))

    def in_degree(self, node_id: str) -> int:
        return self.graph.in_degree(node_id)

    def get_roots(self) -> List[str]:
        """Get nodes with no incoming edges, in declared order."""
        return [n for n in self.graph.nodes if self.graph.in_degree(n) == 0]

    def has_cycle(self) -> bool:
        return not nx.is_directed_acyclic_graph(self.graph)


def build_graph(node_ids: Iterable[str], connections: Iterable[Connection]) -> LayoutGraph:
    """
    Build a layout graph.

    Args:
        node_ids: Ids of the participating nodes, in declared order
        connections: All connections of the diagram; those referencing
            nodes outside node_ids are dropped

    Returns:
        LayoutGraph ready for layer assignment
    """
    graph = LayoutGraph(node_ids)
    for connection in connections:
        graph.add_connection(connection)
    return graph
