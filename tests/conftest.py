from __future__ import annotations

from typing import Iterable

import pytest
from PySide6.QtCore import QCoreApplication

from netlayout.model.graph import Edge, Graph, Node


@pytest.fixture(scope="session", autouse=True)
def qt_core_app():
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


def build_graph(nodes: Iterable, edges: Iterable) -> Graph:
    """Nodes as ids, (id, x, y) tuples or Node objects; edges as (id, from, to) tuples."""
    graph = Graph()
    for item in nodes:
        if isinstance(item, Node):
            graph.add_node(item)
        elif isinstance(item, tuple):
            node_id, x, y = item
            graph.add_node(Node(id=node_id, x=x, y=y))
        else:
            graph.add_node(Node(id=item))
    for edge_id, from_id, to_id in edges:
        graph.add_edge(Edge(from_id=from_id, to_id=to_id, id=edge_id))
    return graph


@pytest.fixture
def make_graph():
    return build_graph


@pytest.fixture
def quiet_options() -> dict:
    """Network options with stabilization off and a fixed seed."""
    return {"physics": {"stabilization": {"enabled": False}}, "layout": {"randomSeed": 3}}


@pytest.fixture
def square_graph() -> Graph:
    """Nodes 1-4 on a 10x10 square; edges a=1-2, b=1-3, c=2-3, d=3-4, e=4-1."""
    return build_graph(
        [(1, 0.0, 0.0), (2, 10.0, 0.0), (3, 10.0, 10.0), (4, 0.0, 10.0)],
        [("a", 1, 2), ("b", 1, 3), ("c", 2, 3), ("d", 3, 4), ("e", 4, 1)],
    )
