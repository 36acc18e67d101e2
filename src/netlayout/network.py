"""
Network Facade
==============
The public entry point: owns the graph model and wires together the physics
engine, the stabilization controller, the layout and clustering engines and
the selection accumulator.

Why is this file needed?
------------------------
1. One Object: Callers load data, set options and read positions through a
   single class without knowing how the components depend on each other.
2. Option Bags: External collaborators speak camelCase dictionaries. They are
   converted to option dataclasses here and pushed to every component.
3. Events: Stabilization events are exposed under their camelCase names via
   `on`/`off`.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Union

from netlayout.clustering.distances import DistanceMatrix
from netlayout.clustering.engine import ClusteringEngine
from netlayout.controller.stabilization import Scheduler, StabilizationController, StabilizationState
from netlayout.layout.engine import LayoutEngine
from netlayout.layout.levels import LevelMap
from netlayout.model.graph import Edge, Graph, Node
from netlayout.model.options import LayoutOptions, PhysicsOptions
from netlayout.selection.accumulator import CommitHandler, SelectionAccumulator
from netlayout.solvers.engine import PhysicsEngine
from netlayout.view import FitResult, compute_fit, normalize_fit_options

logger = logging.getLogger(__name__)

NodeData = Union[Node, Mapping[str, Any]]
EdgeData = Union[Edge, Mapping[str, Any]]

EVENTS = {
    "startStabilizing": "start_stabilizing",
    "stabilizationProgress": "stabilization_progress",
    "stabilizationIterationsDone": "stabilization_iterations_done",
    "stabilized": "stabilized",
}


class Network:
    """
    Graph layout by physics simulation.

    Args:
        nodes: Initial nodes (`Node` objects or mappings with at least `id`).
        edges: Initial edges (`Edge` objects or mappings with `from`/`to`).
        options: Option bag with `physics` and/or `layout` sections.
        scheduler: Optional callable receiving the next tick callback. Without
            it stabilization runs synchronously.
        selection_handler: Called on every selection commit.
    """

    def __init__(
        self,
        nodes: Optional[Iterable[NodeData]] = None,
        edges: Optional[Iterable[EdgeData]] = None,
        options: Optional[Mapping[str, Any]] = None,
        scheduler: Optional[Scheduler] = None,
        selection_handler: Optional[CommitHandler] = None,
    ) -> None:
        self.graph = Graph()
        self.physics_options = PhysicsOptions()
        self.layout_options = LayoutOptions()
        self.scheduler = scheduler

        self.clustering = ClusteringEngine(self.graph)
        self.layout = LayoutEngine(self.graph, self.layout_options, self.clustering,
                                   self.physics_options.barnes_hut)
        self.engine = PhysicsEngine(self.graph, self.physics_options)
        self.controller = StabilizationController(self.engine, self.physics_options, scheduler)
        if selection_handler is None:
            self.selection = SelectionAccumulator()
        else:
            self.selection = SelectionAccumulator(selection_handler)

        if options:
            self.set_options(options)
        if nodes is not None or edges is not None:
            self.set_data(nodes or [], edges or [])

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.graph!r}, state={self.controller.state.name})"

    # ------------------------------------------------------------------
    # Options
    # ------------------------------------------------------------------
    def set_options(self, options: Mapping[str, Any]) -> None:
        """
        Apply an option bag such as `{"physics": {"barnesHut": {"theta": 0.8}}}`.

        Raises:
            ValueError: On unknown keys or invalid values. Nothing is applied then.
        """
        unknown = set(options) - {"physics", "layout"}
        if unknown:
            raise ValueError(f"Unknown option section(s): {sorted(unknown)}")

        physics = self.physics_options
        layout = self.layout_options
        if "physics" in options:
            section = options["physics"]
            if isinstance(section, bool):
                section = {"enabled": section}
            physics = PhysicsOptions.from_dict(section, physics)
        if "layout" in options:
            layout = LayoutOptions.from_dict(options["layout"], layout)

        self.physics_options = physics
        self.layout_options = layout
        self.engine.set_options(physics)
        self.controller.set_options(physics)
        self.layout.forces = physics.barnes_hut
        self.layout.set_options(layout)
        logger.info(f"Options updated: {sorted(options)}")

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------
    @staticmethod
    def _as_node(data: NodeData) -> Node:
        return data if isinstance(data, Node) else Node.from_dict(data)

    @staticmethod
    def _as_edge(data: EdgeData) -> Edge:
        return data if isinstance(data, Edge) else Edge.from_dict(data)

    def set_data(self, nodes: Iterable[NodeData], edges: Iterable[EdgeData]) -> None:
        """Replace the whole graph, lay it out and stabilize it (when enabled)."""
        self.controller.cancel()
        self.clustering.reset()
        with self.graph.batch():
            self.graph.clear()
            for data in nodes:
                self.graph.add_node(self._as_node(data))
            for data in edges:
                self.graph.add_edge(self._as_edge(data))
        logger.info(f"Loaded {len(self.graph.nodes)} node(s) and {len(self.graph.edges)} edge(s).")

        if self.layout_options.hierarchical.enabled:
            self.layout.position_hierarchically()
        else:
            self.layout.layout_network()
        self.layout.position_initially()

        stabilization = self.physics_options.stabilization
        if self.physics_options.enabled and stabilization.enabled:
            self.stabilize()

    def add_node(self, data: NodeData) -> Node:
        node = self.graph.add_node(self._as_node(data))
        if not self.graph.locked:
            if not node.placed:
                self.layout.position_initially([node])
            # edges left behind by an earlier removal reconnect here
            for edge_id in self.graph.edge_ids_of(node.id):
                self.clustering.route_edge(edge_id)
        return node

    def add_edge(self, data: EdgeData) -> Edge:
        edge = self.graph.add_edge(self._as_edge(data))
        if not self.graph.locked:
            self.clustering.route_edge(edge.id)
        return edge

    def remove_node(self, node_id: Hashable) -> Node:
        return self.clustering.remove_node(node_id)

    def remove_edge(self, edge_id: Hashable) -> Edge:
        return self.clustering.remove_edge(edge_id)

    def update_node(self, node_id: Hashable, **fields: Any) -> Node:
        return self.graph.update_node(node_id, **fields)

    def get_positions(self, node_ids: Optional[Iterable[Hashable]] = None) -> Dict[Hashable, Dict[str, Optional[float]]]:
        """Coordinates of the given nodes (default: all visible nodes)."""
        if node_ids is None:
            node_ids = self.graph.visible_node_ids()
        positions = {}
        for node_id in node_ids:
            if node_id not in self.graph.nodes:
                raise KeyError(f"Node with id {node_id!r} not found.")
            node = self.graph.nodes[node_id]
            positions[node_id] = {"x": node.x, "y": node.y}
        return positions

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------
    def _signal(self, event: str):
        if event not in EVENTS:
            raise ValueError(f"Unknown event {event!r}; expected one of {sorted(EVENTS)}.")
        return getattr(self.controller, EVENTS[event])

    def on(self, event: str, callback: Callable[..., Any]) -> None:
        self._signal(event).connect(callback)

    def off(self, event: str, callback: Callable[..., Any]) -> None:
        self._signal(event).disconnect(callback)

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------
    def stabilize(self, iterations: Optional[int] = None) -> StabilizationState:
        """
        Run the simulation until it comes to rest or hits the iteration cap.

        A run still moving at the cap keeps settling for at most
        `stabilization.settle_iterations` ticks; `stabilized` is emitted once,
        when it ends. Without a scheduler the run completes before this call
        returns. With physics disabled nothing happens.
        """
        if not self.physics_options.enabled:
            logger.info("Physics is disabled; stabilize() ignored.")
            return self.controller.state
        self.layout.position_initially()
        self.controller.start(iterations)
        if self.scheduler is None:
            self.controller.run()
        return self.controller.state

    def start_simulation(self) -> None:
        """Start a run; the caller (or the scheduler) drives it with `tick()`."""
        if not self.physics_options.enabled:
            logger.info("Physics is disabled; start_simulation() ignored.")
            return
        self.layout.position_initially()
        self.controller.start()

    def tick(self) -> bool:
        return self.controller.tick()

    def stop_simulation(self) -> None:
        self.controller.cancel()

    # ------------------------------------------------------------------
    # View
    # ------------------------------------------------------------------
    def fit(self, options: Optional[Mapping[str, Any]] = None, width: float = 600.0,
            height: float = 600.0) -> FitResult:
        fit_options = normalize_fit_options(options, self.graph.visible_node_ids())
        positions = []
        for node_id in fit_options.nodes:
            node = self.graph.nodes.get(node_id)
            if node is not None and node.placed:
                positions.append((node.x, node.y))
        return compute_fit(positions, fit_options, width, height)

    # ------------------------------------------------------------------
    # Clustering
    # ------------------------------------------------------------------
    def cluster(self, join_condition=None, cluster_node_options=None, candidates=None,
                cluster_edge_options=None, process_properties=None,
                allow_single_node_cluster: bool = False) -> Optional[Hashable]:
        return self.clustering.cluster(join_condition, cluster_node_options, candidates,
                                       cluster_edge_options, process_properties,
                                       allow_single_node_cluster)

    def cluster_by_connection(self, node_id: Hashable, **kwargs: Any) -> Optional[Hashable]:
        return self.clustering.cluster_by_connection(node_id, **kwargs)

    def cluster_outliers(self, **kwargs: Any) -> List[Hashable]:
        return self.clustering.cluster_outliers(**kwargs)

    def cluster_by_hubsize(self, hubsize: Optional[int] = None, **kwargs: Any) -> List[Hashable]:
        return self.clustering.cluster_by_hubsize(hubsize, **kwargs)

    def is_cluster(self, node_id: Hashable) -> bool:
        return self.clustering.is_cluster(node_id)

    def open_cluster(self, cluster_id: Hashable) -> None:
        self.clustering.open_cluster(cluster_id)

    def get_nodes_in_cluster(self, cluster_id: Hashable) -> List[Hashable]:
        return self.clustering.get_nodes_in_cluster(cluster_id)

    def find_node(self, node_id: Hashable) -> List[Hashable]:
        return self.clustering.find_node(node_id)

    def get_base_edges(self, edge_id: Hashable) -> List[Hashable]:
        return self.clustering.get_base_edges(edge_id)

    def get_clustered_edges(self, edge_id: Hashable) -> List[Hashable]:
        return self.clustering.get_clustered_edges(edge_id)

    def update_clustered_node(self, cluster_id: Hashable, **options: Any) -> Node:
        return self.clustering.update_clustered_node(cluster_id, **options)

    def update_edge(self, edge_id: Hashable, **options: Any) -> List[Hashable]:
        return self.clustering.update_edge(edge_id, **options)

    def get_distances(self, node_ids: Optional[Iterable[Hashable]] = None) -> DistanceMatrix:
        return self.clustering.get_distances(node_ids)

    # ------------------------------------------------------------------
    # Hierarchy
    # ------------------------------------------------------------------
    def get_levels(self) -> LevelMap:
        return self.layout.levels()

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------
    def select_nodes(self, node_ids: Iterable[Hashable], highlight_edges: bool = True) -> None:
        """Replace the selection with the given nodes (and their visible edges)."""
        self.selection.clear()
        for node_id in node_ids:
            if node_id not in self.graph.nodes:
                raise KeyError(f"Node with id {node_id!r} not found.")
            self.selection.add_nodes(self.graph.nodes[node_id])
            if highlight_edges:
                self.selection.add_edges(*self.graph.connected_edges(node_id))
        self.selection.commit()

    def select_edges(self, edge_ids: Iterable[Hashable]) -> None:
        self.selection.clear()
        for edge_id in edge_ids:
            if edge_id not in self.graph.edges:
                raise KeyError(f"Edge with id {edge_id!r} not found.")
            self.selection.add_edges(self.graph.edges[edge_id])
        self.selection.commit()

    def unselect_all(self) -> None:
        self.selection.clear()
        self.selection.commit()

    def get_selection(self) -> Dict[str, List[Hashable]]:
        return {
            "nodes": [node.id for node in self.selection.get_nodes()],
            "edges": [edge.id for edge in self.selection.get_edges()],
        }
