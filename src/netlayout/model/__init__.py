"""
The MODEL layer contains pure data structures: the graph store and the option
structs. It has NO knowledge of Qt signals or of any drawing surface.
"""
from netlayout.model.graph import Edge, Graph, Node
from netlayout.model.options import (
    BarnesHutOptions,
    HierarchicalOptions,
    LayoutOptions,
    PhysicsOptions,
    StabilizationOptions,
    Wind,
)

__all__ = [
    "Edge",
    "Graph",
    "Node",
    "BarnesHutOptions",
    "HierarchicalOptions",
    "LayoutOptions",
    "PhysicsOptions",
    "StabilizationOptions",
    "Wind",
]
