"""
Layout Engine
=============
Places nodes before the physics simulation starts.

Why is this file needed?
------------------------
1. Initial Positions: Nodes without coordinates are scattered on a circle
   (seeded, so layouts are reproducible).
2. Improved Layout: A Kamada-Kawai pass on the (possibly clustered) graph
   gives the simulation a good starting point.
3. Hierarchy: Level maps are cached per topology and used to place nodes on
   layers for the hierarchical layout.
"""
from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Dict, Hashable, Iterable, List, Optional

import numpy as np

from netlayout.config import INITIAL_RADIUS_OFFSET, MAX_CLUSTER_LEVELS, PERTURBATION_OFFSET
from netlayout.layout.kamada_kawai import KamadaKawai
from netlayout.layout.levels import LevelMap, assign_levels_leaves, assign_levels_roots
from netlayout.utils import timer

if TYPE_CHECKING:
    from netlayout.clustering.engine import ClusteringEngine
    from netlayout.model.graph import Graph, Node
    from netlayout.model.options import BarnesHutOptions, LayoutOptions

logger = logging.getLogger(__name__)


class LayoutEngine:
    """
    Initial and hierarchical positioning.

    Args:
        graph: The graph model.
        options: Layout options.
        clustering: Clustering engine used to reduce large graphs.
        forces: Spring settings shared with Kamada-Kawai.
    """

    def __init__(
        self,
        graph: Graph,
        options: LayoutOptions,
        clustering: ClusteringEngine,
        forces: BarnesHutOptions,
    ) -> None:
        self.graph = graph
        self.clustering = clustering
        self.forces = forces
        self._levels: Optional[LevelMap] = None
        self.set_options(options)
        self.graph.add_topology_listener(self._on_topology_changed)

    def set_options(self, options: LayoutOptions) -> None:
        self.options = options
        self.rng = np.random.default_rng(options.random_seed)
        self._levels = None

    def _on_topology_changed(self, event: str, item_id: Optional[Hashable]) -> None:
        self._levels = None

    def position_initially(self, nodes: Optional[Iterable[Node]] = None) -> None:
        """
        Put every node without coordinates on a circle of radius `n + 50`
        at a random angle. Existing coordinates are kept.
        """
        if nodes is None:
            nodes = [self.graph.nodes[i] for i in self.graph.visible_node_ids()]
        nodes = list(nodes)

        self.rng = np.random.default_rng(self.options.random_seed)
        radius = len(nodes) + INITIAL_RADIUS_OFFSET
        angles = 2.0 * math.pi * self.rng.random(len(nodes))
        for node, angle in zip(nodes, angles):
            if node.x is None:
                node.x = radius * math.cos(angle)
            if node.y is None:
                node.y = radius * math.sin(angle)

    # ------------------------------------------------------------------
    # Hierarchy
    # ------------------------------------------------------------------
    def levels(self) -> LevelMap:
        """Level of every visible node, cached until the topology changes."""
        if self._levels is None:
            node_ids = self.graph.visible_node_ids()
            pairs = [
                (self.graph.edges[e].from_id, self.graph.edges[e].to_id)
                for e in self.graph.physics_edge_ids()
            ]
            if self.options.hierarchical.shake_towards == "leaves":
                levels = assign_levels_leaves(node_ids, pairs)
            else:
                levels = assign_levels_roots(node_ids, pairs)

            # a level given on the node wins
            for node_id in node_ids:
                level = self.graph.nodes[node_id].level
                if level is not None:
                    levels[node_id] = level
            self._levels = levels
        return dict(self._levels)

    def position_hierarchically(self) -> None:
        """Place visible nodes on layers `level * level_separation` apart."""
        hierarchical = self.options.hierarchical
        if not hierarchical.enabled:
            return

        levels = self.levels()
        layers: Dict[int, List[Hashable]] = {}
        for node_id, level in levels.items():
            layers.setdefault(level, []).append(node_id)

        sign = -1.0 if hierarchical.is_inverted else 1.0
        for level, members in sorted(layers.items()):
            offset = 0.5 * (len(members) - 1) * hierarchical.node_spacing
            for i, node_id in enumerate(members):
                node = self.graph.nodes[node_id]
                depth = sign * level * hierarchical.level_separation
                spread = i * hierarchical.node_spacing - offset
                if hierarchical.is_vertical:
                    node.x, node.y = spread, depth
                else:
                    node.x, node.y = depth, spread
        logger.info(f"Hierarchical layout ({hierarchical.direction}): {len(layers)} level(s).")

    # ------------------------------------------------------------------
    # Improved layout
    # ------------------------------------------------------------------
    @timer
    def layout_network(self) -> bool:
        """
        Kamada-Kawai initial layout, clustering large graphs first.

        Returns:
            False when the graph could not be reduced below the cluster
            threshold (positions are left as they were), True otherwise.
        """
        if self.options.hierarchical.enabled or not self.options.improved_layout:
            return True

        node_ids = self.graph.visible_node_ids()
        predefined = sum(1 for i in node_ids if self.graph.nodes[i].predefined_position)
        if predefined >= 0.5 * len(node_ids):
            return True

        self.position_initially()
        kamada_kawai = KamadaKawai(self.forces.spring_length, self.forces.spring_constant)
        threshold = self.options.cluster_threshold
        start_length = len(node_ids)
        level = 0

        if start_length > threshold:
            while len(self.graph.visible_node_ids()) > threshold and level <= MAX_CLUSTER_LEVELS:
                level += 1
                before = len(self.graph.visible_node_ids())
                self.clustering.cluster_outliers()
                if len(self.graph.visible_node_ids()) == before:
                    self.clustering.open_all()
                    logger.info("The network could not be reduced for the improved layout; "
                                "disable improved_layout for better performance.")
                    return False
            kamada_kawai.spring_length = max(150.0, 2.0 * start_length)

        if level > MAX_CLUSTER_LEVELS:
            logger.info("Clustering did not reach the threshold; continuing with a partial reduction.")

        visible = [self.graph.nodes[i] for i in self.graph.visible_node_ids()]
        positions = np.array([(node.x, node.y) for node in visible], dtype=np.float64).reshape(-1, 2)
        movable = np.array([not (node.fixed_x and node.fixed_y) for node in visible], dtype=bool)
        distances = self.clustering.get_distances([node.id for node in visible])

        kamada_kawai.solve(positions, distances.matrix, movable)

        # shift to the centre of the bounding box, unless pinned nodes anchor the layout
        if len(visible) and movable.all():
            centre = 0.5 * (positions.min(axis=0) + positions.max(axis=0))
            positions -= centre

        for i, node in enumerate(visible):
            node.x, node.y = float(positions[i, 0]), float(positions[i, 1])
            if not node.predefined_position:
                node.x += (0.5 - self.rng.random()) * PERTURBATION_OFFSET
                node.y += (0.5 - self.rng.random()) * PERTURBATION_OFFSET

        self.clustering.open_all()
        logger.info(f"Improved layout placed {len(node_ids)} node(s) using {len(visible)} after clustering.")
        return True
