"""
Graph Model
===========
In-memory node/edge store shared by the physics, layout and clustering code.

Why is this file needed?
------------------------
1. State Management: Positions, velocities and flags of every node live here,
   in one place. Solvers read from this object and write back to it.
2. Topology Hook: Derived data (level maps, distance tables) and the
   stabilization run must be invalidated when nodes or edges change. The graph
   notifies registered listeners after every topology change.
3. Tick Safety: While a physics tick holds the lock, mutations are queued and
   applied after the tick, so the solvers always see a fixed node set.

Classes:
    Node: A graph vertex with its kinematic state.
    Edge: A directed connection, acting as a spring in the physics model.
    Graph: The container class.
"""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
import logging
import uuid
from typing import Any, Callable, Dict, Hashable, Iterator, List, Mapping, Optional

logger = logging.getLogger(__name__)

TopologyListener = Callable[[str, Optional[Hashable]], None]

_NODE_KEYS = {"id", "x", "y", "mass", "fixed", "level", "physics"}
_EDGE_KEYS = {"id", "from", "to", "length", "spring_constant", "springConstant", "weight"}


@dataclass(eq=False)
class Node:
    """
    Represents a node of the simulated graph.

    Coordinates stay None until the node is placed, either by the caller or by
    the layout engine.
    """
    id: Hashable
    x: Optional[float] = None
    y: Optional[float] = None
    vx: float = 0.0
    vy: float = 0.0
    mass: float = 1.0
    fixed_x: bool = False
    fixed_y: bool = False
    level: Optional[int] = None
    cluster_id: Optional[Hashable] = None
    is_cluster: bool = False
    predefined_position: bool = False
    selected: bool = False
    options: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.mass <= 0:
            raise ValueError(f"Node {self.id!r}: mass must be > 0, got {self.mass}.")
        if self.x is not None:
            self.x = float(self.x)
        if self.y is not None:
            self.y = float(self.y)
        if self.x is not None and self.y is not None:
            self.predefined_position = True

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Node:
        """
        Create a node from a caller-supplied mapping.

        `fixed` may be a bool (both axes) or a mapping `{"x": bool, "y": bool}`.
        Keys the core does not interpret are kept in `options`.
        """
        if "id" not in data:
            raise ValueError(f"Node data without 'id': {dict(data)!r}")

        fixed = data.get("fixed", False)
        if isinstance(fixed, Mapping):
            fixed_x, fixed_y = bool(fixed.get("x", False)), bool(fixed.get("y", False))
        else:
            fixed_x = fixed_y = bool(fixed)

        return cls(
            id=data["id"],
            x=data.get("x"),
            y=data.get("y"),
            mass=data.get("mass", 1.0),
            fixed_x=fixed_x,
            fixed_y=fixed_y,
            level=data.get("level"),
            options={k: v for k, v in data.items() if k not in _NODE_KEYS},
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.id!r}, x={self.x}, y={self.y})"

    @property
    def hidden(self) -> bool:
        """True while the node is swallowed by a cluster surrogate."""
        return self.cluster_id is not None

    @property
    def placed(self) -> bool:
        return self.x is not None and self.y is not None

    def select(self) -> None:
        self.selected = True

    def unselect(self) -> None:
        self.selected = False


@dataclass(eq=False)
class Edge:
    """
    A directed edge. `length` and `spring_constant` fall back to the global
    physics options when None.
    """
    from_id: Hashable
    to_id: Hashable
    id: Optional[Hashable] = None
    length: Optional[float] = None
    spring_constant: Optional[float] = None
    weight: float = 1.0
    connected: bool = False
    hidden: bool = False
    selected: bool = False
    options: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.id is None:
            self.id = str(uuid.uuid4())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Edge:
        if "from" not in data or "to" not in data:
            raise ValueError(f"Edge data needs 'from' and 'to': {dict(data)!r}")
        return cls(
            from_id=data["from"],
            to_id=data["to"],
            id=data.get("id"),
            length=data.get("length"),
            spring_constant=data.get("springConstant", data.get("spring_constant")),
            weight=data.get("weight", 1.0),
            options={k: v for k, v in data.items() if k not in _EDGE_KEYS},
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.id!r}, {self.from_id!r} -> {self.to_id!r})"

    def other_end(self, node_id: Hashable) -> Hashable:
        return self.to_id if self.from_id == node_id else self.from_id

    def select(self) -> None:
        self.selected = True

    def unselect(self) -> None:
        self.selected = False


class Graph:
    """
    Node/edge store with topology notifications.

    Edges whose endpoint is missing are kept with `connected=False` and become
    connected again when the endpoint is (re-)added.
    """

    def __init__(self) -> None:
        self.nodes: Dict[Hashable, Node] = {}
        self.edges: Dict[Hashable, Edge] = {}

        # endpoint id -> edge ids (kept even while the endpoint node is missing)
        self._edges_by_node: Dict[Hashable, Dict[Hashable, None]] = {}

        self._listeners: List[TopologyListener] = []
        self._lock_depth = 0
        self._pending: List[Callable[[], None]] = []
        self._batch_depth = 0
        self._batch_dirty = False

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(nodes={len(self.nodes)}, edges={len(self.edges)})"

    # ------------------------------------------------------------------
    # Listeners & locking
    # ------------------------------------------------------------------
    def add_topology_listener(self, callback: TopologyListener) -> None:
        self._listeners.append(callback)

    def remove_topology_listener(self, callback: TopologyListener) -> None:
        self._listeners.remove(callback)

    def _notify(self, event: str, item_id: Optional[Hashable]) -> None:
        if self._batch_depth > 0:
            self._batch_dirty = True
            return
        for callback in list(self._listeners):
            callback(event, item_id)

    @property
    def locked(self) -> bool:
        return self._lock_depth > 0

    @contextmanager
    def tick_lock(self) -> Iterator[None]:
        """Hold the graph for one tick. Mutations requested meanwhile are deferred."""
        self._lock_depth += 1
        try:
            yield
        finally:
            self._lock_depth -= 1
            if self._lock_depth == 0 and self._pending:
                pending, self._pending = self._pending, []
                logger.debug(f"Applying {len(pending)} deferred graph mutation(s).")
                for mutation in pending:
                    mutation()

    @contextmanager
    def batch(self) -> Iterator[None]:
        """Coalesce the notifications of several mutations into a single 'batch' event."""
        self._batch_depth += 1
        try:
            yield
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._batch_dirty:
                self._batch_dirty = False
                self._notify("batch", None)

    def defer_if_locked(self, mutation: Callable[[], None]) -> bool:
        """Queue `mutation` until the tick ends; returns False (nothing queued) when unlocked."""
        if self._lock_depth > 0:
            self._pending.append(mutation)
            return True
        return False

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def add_node(self, node: Node) -> Node:
        if node.id in self.nodes:
            raise ValueError(f"Node with id {node.id!r} already exists.")
        if self.defer_if_locked(lambda: self.add_node(node)):
            return node

        self.nodes[node.id] = node
        for edge_id in self._edges_by_node.get(node.id, {}):
            self._refresh_connection(self.edges[edge_id])
        self._notify("add_node", node.id)
        return node

    def add_edge(self, edge: Edge) -> Edge:
        if edge.id in self.edges:
            raise ValueError(f"Edge with id {edge.id!r} already exists.")
        if self.defer_if_locked(lambda: self.add_edge(edge)):
            return edge

        self.edges[edge.id] = edge
        self._edges_by_node.setdefault(edge.from_id, {})[edge.id] = None
        self._edges_by_node.setdefault(edge.to_id, {})[edge.id] = None
        self._refresh_connection(edge)
        if not edge.connected:
            logger.debug(f"Edge {edge.id!r} references a missing node and stays disconnected.")
        self._notify("add_edge", edge.id)
        return edge

    def remove_node(self, node_id: Hashable) -> Node:
        if node_id not in self.nodes:
            raise KeyError(f"Node with id {node_id!r} not found.")
        node = self.nodes[node_id]
        if self.defer_if_locked(lambda: self.remove_node(node_id)):
            return node

        del self.nodes[node_id]
        for edge_id in self._edges_by_node.get(node_id, {}):
            self.edges[edge_id].connected = False
        self._notify("remove_node", node_id)
        return node

    def remove_edge(self, edge_id: Hashable) -> Edge:
        if edge_id not in self.edges:
            raise KeyError(f"Edge with id {edge_id!r} not found.")
        edge = self.edges[edge_id]
        if self.defer_if_locked(lambda: self.remove_edge(edge_id)):
            return edge

        del self.edges[edge_id]
        for endpoint in (edge.from_id, edge.to_id):
            bucket = self._edges_by_node.get(endpoint)
            if bucket is not None:
                bucket.pop(edge_id, None)
                if not bucket:
                    del self._edges_by_node[endpoint]
        self._notify("remove_edge", edge_id)
        return edge

    def update_node(self, node_id: Hashable, **fields: Any) -> Node:
        """Set kinematic fields (x, y, vx, vy, mass, fixed_x, fixed_y, level) or options."""
        if node_id not in self.nodes:
            raise KeyError(f"Node with id {node_id!r} not found.")
        node = self.nodes[node_id]
        if self.defer_if_locked(lambda: self.update_node(node_id, **fields)):
            return node

        for name, value in fields.items():
            if name in ("x", "y", "vx", "vy"):
                setattr(node, name, None if value is None else float(value))
            elif name == "mass":
                if value <= 0:
                    raise ValueError(f"Node {node_id!r}: mass must be > 0, got {value}.")
                node.mass = value
            elif name in ("fixed_x", "fixed_y", "level"):
                setattr(node, name, value)
            else:
                node.options[name] = value
        if node.placed and ("x" in fields or "y" in fields):
            node.predefined_position = True
        return node

    def clear(self) -> None:
        if self.defer_if_locked(self.clear):
            return
        self.nodes.clear()
        self.edges.clear()
        self._edges_by_node.clear()
        self._notify("clear", None)

    def _refresh_connection(self, edge: Edge) -> None:
        edge.connected = edge.from_id in self.nodes and edge.to_id in self.nodes

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def is_visible_edge(self, edge: Edge) -> bool:
        """Connected, not swallowed by a cluster, and both endpoints visible."""
        if not edge.connected or edge.hidden:
            return False
        return not (self.nodes[edge.from_id].hidden or self.nodes[edge.to_id].hidden)

    def visible_node_ids(self) -> List[Hashable]:
        return [node_id for node_id, node in self.nodes.items() if not node.hidden]

    def physics_edge_ids(self) -> List[Hashable]:
        return [edge_id for edge_id, edge in self.edges.items() if self.is_visible_edge(edge)]

    def edge_ids_of(self, node_id: Hashable) -> List[Hashable]:
        """All edges touching `node_id`, including hidden and disconnected ones."""
        return list(self._edges_by_node.get(node_id, {}))

    def connected_edges(self, node_id: Hashable) -> List[Edge]:
        return [
            self.edges[edge_id]
            for edge_id in self._edges_by_node.get(node_id, {})
            if self.is_visible_edge(self.edges[edge_id])
        ]

    def neighbours(self, node_id: Hashable) -> List[Hashable]:
        seen: Dict[Hashable, None] = {}
        for edge in self.connected_edges(node_id):
            other = edge.other_end(node_id)
            if other != node_id:
                seen[other] = None
        return list(seen)

    def degree(self, node_id: Hashable) -> int:
        """Number of visible edges touching the node; self loops are ignored."""
        return sum(1 for edge in self.connected_edges(node_id) if edge.from_id != edge.to_id)
