"""
Clustering Engine
=================
Reversible graph reduction: groups of nodes are replaced by a single
surrogate node, and the edges leaving the group are rerouted onto surrogate
edges.

Why is this file needed?
------------------------
1. Scale: The initial Kamada-Kawai layout is O(n^2) per iteration. Large
   graphs are reduced first and expanded again afterwards.
2. Reversibility: Every rewrite is recorded in a `Cluster` so that opening it
   restores exactly the original nodes and edges.

Routing:
    An edge with a hidden endpoint belongs to the cluster that directly
    contains that endpoint. If both endpoints are members, the edge is an
    intra-cluster edge. Otherwise it is mapped onto a surrogate edge of that
    cluster, which is itself routed the same way. Boundary edges sharing the
    same (from, to) pair after substitution collapse onto one surrogate edge
    whose weight is their sum.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
import uuid
from typing import (
    TYPE_CHECKING, Any, Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Set, Tuple,
)

import numpy as np

from netlayout.clustering.distances import DistanceMatrix, get_distances
from netlayout.model.graph import Edge, Node

if TYPE_CHECKING:
    from netlayout.model.graph import Graph

logger = logging.getLogger(__name__)

JoinCondition = Callable[[Node], Any]
ProcessProperties = Callable[[Dict[str, Any], List[Node], List[Edge]], Mapping[str, Any]]

_EDGE_FIELDS = {"length": "length", "spring_constant": "spring_constant",
                "springConstant": "spring_constant", "weight": "weight"}


@dataclass
class Cluster:
    """Record of one clustering rewrite."""
    id: Hashable
    member_node_ids: Set[Hashable]
    member_edge_ids: Set[Hashable] = field(default_factory=set)
    boundary_edge_map: Dict[Hashable, Hashable] = field(default_factory=dict)
    surrogate_edge_ids: Set[Hashable] = field(default_factory=set)
    creation_centroid: Optional[Tuple[float, float]] = None
    edge_options: Dict[str, Any] = field(default_factory=dict)


class ClusteringEngine:
    """
    Creates and opens clusters on a `Graph`.

    Args:
        graph: The graph model to rewrite.
    """

    def __init__(self, graph: Graph) -> None:
        self.graph = graph
        self.clusters: Dict[Hashable, Cluster] = {}
        # surrogate edge id -> edges mapped onto it
        self._inverse: Dict[Hashable, Set[Hashable]] = {}
        # hidden edge id -> cluster that hides it
        self._edge_owner: Dict[Hashable, Hashable] = {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(clusters={len(self.clusters)})"

    def reset(self) -> None:
        """Forget all clusters without touching the graph (used when the graph is replaced)."""
        self.clusters.clear()
        self._inverse.clear()
        self._edge_owner.clear()

    def _check_unlocked(self) -> None:
        if self.graph.locked:
            raise RuntimeError("Clusters cannot be changed while a physics tick is running.")

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------
    def cluster(
        self,
        join_condition: Optional[JoinCondition] = None,
        cluster_node_options: Optional[Mapping[str, Any]] = None,
        candidates: Optional[Iterable[Hashable]] = None,
        cluster_edge_options: Optional[Mapping[str, Any]] = None,
        process_properties: Optional[ProcessProperties] = None,
        allow_single_node_cluster: bool = False,
    ) -> Optional[Hashable]:
        """
        Replace the nodes matching `join_condition` by one surrogate node.

        Args:
            join_condition: Predicate evaluated on every candidate `Node`; all
                candidates join when None. Its exceptions propagate unchanged.
            cluster_node_options: Options of the surrogate node; may carry `id`.
            candidates: Node ids to test (defaults to all visible nodes).
            cluster_edge_options: Options copied onto every surrogate edge.
            process_properties: Callback `(options, member_nodes, member_edges)`
                returning the final surrogate node options.
            allow_single_node_cluster: Accept a cluster with a single member.

        Returns:
            The new cluster id, or None when too few nodes matched.
        """
        self._check_unlocked()

        if candidates is None:
            candidate_ids = self.graph.visible_node_ids()
        else:
            candidate_ids = list(candidates)
            for node_id in candidate_ids:
                if node_id not in self.graph.nodes:
                    raise KeyError(f"Node with id {node_id!r} not found.")
                if self.graph.nodes[node_id].hidden:
                    raise ValueError(f"Node {node_id!r} already belongs to cluster "
                                     f"{self.graph.nodes[node_id].cluster_id!r}.")

        members = [
            node_id for node_id in candidate_ids
            if join_condition is None or join_condition(self.graph.nodes[node_id])
        ]
        return self._create(members, cluster_node_options, cluster_edge_options,
                            process_properties, allow_single_node_cluster)

    def _create(
        self,
        member_ids: List[Hashable],
        cluster_node_options: Optional[Mapping[str, Any]],
        cluster_edge_options: Optional[Mapping[str, Any]],
        process_properties: Optional[ProcessProperties],
        allow_single_node_cluster: bool,
    ) -> Optional[Hashable]:
        minimum = 1 if allow_single_node_cluster else 2
        if len(member_ids) < minimum:
            logger.debug(f"Cluster not created: {len(member_ids)} matching node(s), need {minimum}.")
            return None

        options = dict(cluster_node_options or {})
        cluster_id = options.pop("id", None)
        if cluster_id is None:
            cluster_id = f"cluster:{uuid.uuid4()}"
        if cluster_id in self.graph.nodes:
            raise ValueError(f"Cluster id {cluster_id!r} collides with an existing node.")

        member_nodes = [self.graph.nodes[node_id] for node_id in member_ids]
        member_set = set(member_ids)
        touching: Dict[Hashable, Edge] = {}
        for node_id in member_ids:
            for edge in self.graph.connected_edges(node_id):
                touching[edge.id] = edge

        if process_properties is not None:
            inner = [e for e in touching.values() if e.from_id in member_set and e.to_id in member_set]
            options = dict(process_properties(options, member_nodes, inner))
            options.pop("id", None)

        placed = [node for node in member_nodes if node.placed]
        centroid: Optional[Tuple[float, float]] = None
        if placed:
            centroid = (
                float(np.mean([node.x for node in placed])),
                float(np.mean([node.y for node in placed])),
            )

        surrogate = Node(
            id=cluster_id,
            x=None if centroid is None else centroid[0],
            y=None if centroid is None else centroid[1],
            mass=float(sum(node.mass for node in member_nodes)),
            is_cluster=True,
            options=options,
        )
        # surrogate coordinates are derived, not supplied by the caller
        surrogate.predefined_position = False

        cluster = Cluster(
            id=cluster_id,
            member_node_ids=member_set,
            creation_centroid=centroid,
            edge_options=dict(cluster_edge_options or {}),
        )

        with self.graph.batch():
            self.graph.add_node(surrogate)
            self.clusters[cluster_id] = cluster
            for node in member_nodes:
                node.cluster_id = cluster_id
            for edge in touching.values():
                self._route(edge)

        logger.info(f"Created cluster {cluster_id!r} with {len(member_set)} node(s), "
                    f"{len(cluster.member_edge_ids)} inner edge(s), "
                    f"{len(cluster.surrogate_edge_ids)} surrogate edge(s).")
        return cluster_id

    def cluster_by_connection(
        self,
        node_id: Hashable,
        join_condition: Optional[Callable[[Node, Node], Any]] = None,
        cluster_node_options: Optional[Mapping[str, Any]] = None,
        cluster_edge_options: Optional[Mapping[str, Any]] = None,
        process_properties: Optional[ProcessProperties] = None,
    ) -> Optional[Hashable]:
        """Cluster a node together with its visible neighbours."""
        self._check_unlocked()
        if node_id not in self.graph.nodes:
            raise KeyError(f"Node with id {node_id!r} not found.")
        parent = self.graph.nodes[node_id]
        if parent.hidden:
            raise ValueError(f"Node {node_id!r} already belongs to cluster {parent.cluster_id!r}.")

        members = [node_id]
        for other in self.graph.neighbours(node_id):
            if join_condition is None or join_condition(parent, self.graph.nodes[other]):
                members.append(other)
        return self._create(members, cluster_node_options, cluster_edge_options,
                            process_properties, allow_single_node_cluster=False)

    def cluster_outliers(
        self,
        join_condition: Optional[JoinCondition] = None,
        cluster_node_options: Optional[Mapping[str, Any]] = None,
        cluster_edge_options: Optional[Mapping[str, Any]] = None,
    ) -> List[Hashable]:
        """
        Fold every degree-1 node into its neighbour.

        All outliers hanging off the same neighbour end up in one cluster with
        it. `join_condition` filters the outliers; the neighbour always joins.

        Returns:
            Ids of the created clusters.
        """
        self._check_unlocked()
        groups: Dict[Hashable, List[Hashable]] = {}
        grouped: Set[Hashable] = set()

        for node_id in self.graph.visible_node_ids():
            if node_id in grouped or self.graph.degree(node_id) != 1:
                continue
            if join_condition is not None and not join_condition(self.graph.nodes[node_id]):
                continue
            hub = self.graph.neighbours(node_id)[0]
            if hub in grouped and hub not in groups:
                # hub is itself an outlier already grouped with its own neighbour
                continue
            groups.setdefault(hub, [hub]).append(node_id)
            grouped.update((hub, node_id))

        created = []
        for hub, members in groups.items():
            options = dict(cluster_node_options or {})
            options.pop("id", None)
            cluster_id = self._create(members, options, cluster_edge_options, None, False)
            if cluster_id is not None:
                created.append(cluster_id)
        return created

    def hub_size(self) -> int:
        """Default hub threshold: mean degree plus two standard deviations, capped at the largest degree."""
        degrees = np.array([self.graph.degree(i) for i in self.graph.visible_node_ids()], dtype=np.float64)
        if degrees.size == 0:
            return 0
        threshold = int(np.floor(degrees.mean() + 2.0 * degrees.std()))
        return min(threshold, int(degrees.max()))

    def cluster_by_hubsize(
        self,
        hubsize: Optional[int] = None,
        cluster_node_options: Optional[Mapping[str, Any]] = None,
        cluster_edge_options: Optional[Mapping[str, Any]] = None,
    ) -> List[Hashable]:
        """Cluster every node with degree >= `hubsize` together with its neighbours."""
        self._check_unlocked()
        if hubsize is None:
            hubsize = self.hub_size()

        created = []
        for node_id in self.graph.visible_node_ids():
            node = self.graph.nodes.get(node_id)
            if node is None or node.hidden or self.graph.degree(node_id) < hubsize:
                continue
            options = dict(cluster_node_options or {})
            options.pop("id", None)
            cluster_id = self.cluster_by_connection(node_id, cluster_node_options=options,
                                                    cluster_edge_options=cluster_edge_options)
            if cluster_id is not None:
                created.append(cluster_id)
        return created

    # ------------------------------------------------------------------
    # Edge routing
    # ------------------------------------------------------------------
    def _depth(self, node_id: Hashable) -> int:
        depth = 0
        node = self.graph.nodes[node_id]
        while node.cluster_id is not None:
            depth += 1
            node = self.graph.nodes[node.cluster_id]
        return depth

    def _add_weight(self, edge_id: Optional[Hashable], delta: float) -> None:
        while edge_id is not None:
            self.graph.edges[edge_id].weight += delta
            owner = self._edge_owner.get(edge_id)
            edge_id = None if owner is None else self.clusters[owner].boundary_edge_map.get(edge_id)

    def _route(self, edge: Edge) -> None:
        """Hide `edge` inside the cluster holding its deeper endpoint, or show it."""
        if not edge.connected:
            return

        from_depth, to_depth = self._depth(edge.from_id), self._depth(edge.to_id)
        if from_depth == 0 and to_depth == 0:
            edge.hidden = False
            return

        holder_end = edge.from_id if from_depth >= to_depth else edge.to_id
        holder_id = self.graph.nodes[holder_end].cluster_id
        cluster = self.clusters[holder_id]

        edge.hidden = True
        self._edge_owner[edge.id] = holder_id

        new_from = holder_id if edge.from_id in cluster.member_node_ids else edge.from_id
        new_to = holder_id if edge.to_id in cluster.member_node_ids else edge.to_id
        if new_from == holder_id and new_to == holder_id:
            cluster.member_edge_ids.add(edge.id)
            return

        for surrogate_id in cluster.surrogate_edge_ids:
            surrogate = self.graph.edges[surrogate_id]
            if surrogate.from_id == new_from and surrogate.to_id == new_to:
                cluster.boundary_edge_map[edge.id] = surrogate_id
                self._inverse[surrogate_id].add(edge.id)
                self._add_weight(surrogate_id, edge.weight)
                return

        edge_options = dict(cluster.edge_options)
        fields = {
            _EDGE_FIELDS[key]: edge_options.pop(key)
            for key in list(edge_options) if key in _EDGE_FIELDS
        }
        fields.setdefault("weight", edge.weight)
        surrogate = Edge(
            from_id=new_from,
            to_id=new_to,
            id=f"clusterEdge:{uuid.uuid4()}",
            options=edge_options,
            **fields,
        )
        self.graph.add_edge(surrogate)
        cluster.surrogate_edge_ids.add(surrogate.id)
        cluster.boundary_edge_map[edge.id] = surrogate.id
        self._inverse[surrogate.id] = {edge.id}
        self._route(surrogate)

    def _release(self, edge_id: Hashable) -> None:
        """Drop `edge_id` from the bookkeeping of the cluster hiding it."""
        owner_id = self._edge_owner.pop(edge_id, None)
        if owner_id is None:
            return
        owner = self.clusters[owner_id]
        owner.member_edge_ids.discard(edge_id)
        target = owner.boundary_edge_map.pop(edge_id, None)
        if target is None:
            return

        self._inverse[target].discard(edge_id)
        self._add_weight(target, -self.graph.edges[edge_id].weight)
        if not self._inverse[target]:
            self._drop_surrogate_edge(owner, target)

    def _drop_surrogate_edge(self, cluster: Cluster, surrogate_id: Hashable) -> None:
        self._release(surrogate_id)
        for edge_id in self._inverse.pop(surrogate_id, set()):
            cluster.boundary_edge_map.pop(edge_id, None)
        cluster.surrogate_edge_ids.discard(surrogate_id)
        if surrogate_id in self.graph.edges:
            self.graph.remove_edge(surrogate_id)

    def remove_edge(self, edge_id: Hashable) -> Edge:
        """
        Remove an original edge, dropping it from the cluster that hides it.

        Raises:
            KeyError: If the edge does not exist.
            ValueError: If it is a surrogate edge (removed with its cluster).
        """
        if edge_id not in self.graph.edges:
            raise KeyError(f"Edge with id {edge_id!r} not found.")
        if self.is_surrogate_edge(edge_id):
            raise ValueError(f"{edge_id!r} is a cluster edge and is removed with its cluster.")
        edge = self.graph.edges[edge_id]
        if self.graph.defer_if_locked(lambda: self.remove_edge(edge_id)):
            return edge

        self._release(edge_id)
        return self.graph.remove_edge(edge_id)

    def remove_node(self, node_id: Hashable) -> Node:
        """
        Remove an original node. A clustered node leaves its cluster: its
        edges are released and its mass is taken off the enclosing surrogates.

        Raises:
            KeyError: If the node does not exist.
            ValueError: If it is a cluster (use `open_cluster`) or the last
                member of one.
        """
        if node_id not in self.graph.nodes:
            raise KeyError(f"Node with id {node_id!r} not found.")
        if self.is_cluster(node_id):
            raise ValueError(f"{node_id!r} is a cluster; use open_cluster() instead.")
        node = self.graph.nodes[node_id]
        if node.cluster_id is not None and len(self.clusters[node.cluster_id].member_node_ids) == 1:
            raise ValueError(f"{node_id!r} is the last member of cluster {node.cluster_id!r}; open it first.")
        if self.graph.defer_if_locked(lambda: self.remove_node(node_id)):
            return node

        # the edges become disconnected; they are routed again if the node returns
        for edge_id in self.graph.edge_ids_of(node_id):
            self._release(edge_id)
            self.graph.edges[edge_id].hidden = False

        owner_id = node.cluster_id
        if owner_id is not None:
            self.clusters[owner_id].member_node_ids.discard(node_id)
        while owner_id is not None:
            surrogate = self.graph.nodes[owner_id]
            surrogate.mass -= node.mass
            owner_id = surrogate.cluster_id
        node.cluster_id = None
        return self.graph.remove_node(node_id)

    def route_edge(self, edge_id: Hashable) -> None:
        """Attach an edge added after clustering to the clusters hiding its endpoints."""
        self._check_unlocked()
        self._route(self.graph.edges[edge_id])

    # ------------------------------------------------------------------
    # Opening
    # ------------------------------------------------------------------
    def open_cluster(self, cluster_id: Hashable) -> None:
        """
        Restore the members of a cluster and remove its surrogate.

        Members are shifted by the displacement of the surrogate since the
        cluster was created. Nested clusters are opened one level only.

        Raises:
            KeyError: If `cluster_id` is not a cluster.
            ValueError: If the cluster is itself hidden inside another cluster.
        """
        self._check_unlocked()
        if cluster_id not in self.clusters:
            raise KeyError(f"{cluster_id!r} is not a cluster.")
        surrogate = self.graph.nodes[cluster_id]
        if surrogate.hidden:
            raise ValueError(f"Cluster {cluster_id!r} is inside cluster {surrogate.cluster_id!r}; open that first.")

        cluster = self.clusters[cluster_id]
        offset_x = offset_y = 0.0
        if cluster.creation_centroid is not None and surrogate.placed:
            offset_x = surrogate.x - cluster.creation_centroid[0]
            offset_y = surrogate.y - cluster.creation_centroid[1]

        with self.graph.batch():
            for node_id in cluster.member_node_ids:
                node = self.graph.nodes.get(node_id)
                if node is None:
                    continue
                node.cluster_id = None
                if node.placed:
                    node.x += offset_x
                    node.y += offset_y
                elif surrogate.placed:
                    node.x, node.y = surrogate.x, surrogate.y
                node.vx, node.vy = surrogate.vx, surrogate.vy

            restored = list(cluster.member_edge_ids) + list(cluster.boundary_edge_map)
            for edge_id in restored:
                self._edge_owner.pop(edge_id, None)
            cluster.member_edge_ids.clear()
            cluster.boundary_edge_map.clear()

            for surrogate_id in list(cluster.surrogate_edge_ids):
                self._release(surrogate_id)
                self._inverse.pop(surrogate_id, None)
                cluster.surrogate_edge_ids.discard(surrogate_id)
                self.graph.remove_edge(surrogate_id)

            self.graph.remove_node(cluster_id)
            del self.clusters[cluster_id]

            for edge_id in restored:
                if edge_id in self.graph.edges:
                    self._route(self.graph.edges[edge_id])

        logger.info(f"Opened cluster {cluster_id!r} ({len(cluster.member_node_ids)} node(s) restored).")

    def open_all(self) -> None:
        """Open every cluster, outermost first."""
        while self.clusters:
            outermost = [cid for cid in self.clusters if not self.graph.nodes[cid].hidden]
            for cluster_id in outermost:
                self.open_cluster(cluster_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def is_cluster(self, node_id: Hashable) -> bool:
        return node_id in self.clusters

    def get_nodes_in_cluster(self, cluster_id: Hashable) -> List[Hashable]:
        if cluster_id not in self.clusters:
            raise KeyError(f"{cluster_id!r} is not a cluster.")
        return list(self.clusters[cluster_id].member_node_ids)

    def find_node(self, node_id: Hashable) -> List[Hashable]:
        """Chain of cluster ids from the outermost cluster down to `node_id` itself."""
        if node_id not in self.graph.nodes:
            raise KeyError(f"Node with id {node_id!r} not found.")
        chain = [node_id]
        node = self.graph.nodes[node_id]
        while node.cluster_id is not None:
            chain.append(node.cluster_id)
            node = self.graph.nodes[node.cluster_id]
        chain.reverse()
        return chain

    def is_surrogate_edge(self, edge_id: Hashable) -> bool:
        return edge_id in self._inverse

    def get_base_edges(self, edge_id: Hashable) -> List[Hashable]:
        """Original edges behind a (possibly nested) surrogate edge."""
        if edge_id not in self.graph.edges:
            raise KeyError(f"Edge with id {edge_id!r} not found.")
        if edge_id not in self._inverse:
            return [edge_id]

        base: List[Hashable] = []
        stack = [edge_id]
        while stack:
            current = stack.pop()
            if current in self._inverse:
                stack.extend(self._inverse[current])
            else:
                base.append(current)
        return base

    def get_clustered_edges(self, edge_id: Hashable) -> List[Hashable]:
        """Chain from `edge_id` up to the surrogate edge that currently represents it."""
        if edge_id not in self.graph.edges:
            raise KeyError(f"Edge with id {edge_id!r} not found.")
        chain = [edge_id]
        current = edge_id
        while current in self._edge_owner:
            target = self.clusters[self._edge_owner[current]].boundary_edge_map.get(current)
            if target is None:
                break
            chain.append(target)
            current = target
        return chain

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------
    def update_clustered_node(self, cluster_id: Hashable, **options: Any) -> Node:
        """Update the options of a surrogate node."""
        if cluster_id not in self.clusters:
            raise ValueError(f"{cluster_id!r} is not a cluster; use update_node for ordinary nodes.")
        return self.graph.update_node(cluster_id, **options)

    def update_edge(self, edge_id: Hashable, **options: Any) -> List[Hashable]:
        """
        Apply options to the edge that currently represents `edge_id`.

        Hidden edges are never modified; when the edge is folded into a
        cluster the visible surrogate at the end of its chain is updated.

        Returns:
            Ids of the updated edges (empty if nothing is visible).
        """
        visible_id = self.get_clustered_edges(edge_id)[-1]
        edge = self.graph.edges[visible_id]
        if not self.graph.is_visible_edge(edge):
            logger.debug(f"Edge {edge_id!r} has no visible representative; nothing updated.")
            return []

        for key, value in options.items():
            if key in _EDGE_FIELDS:
                setattr(edge, _EDGE_FIELDS[key], value)
            else:
                edge.options[key] = value
        return [visible_id]

    # ------------------------------------------------------------------
    # Distances
    # ------------------------------------------------------------------
    def get_distances(self, node_ids: Optional[Iterable[Hashable]] = None) -> DistanceMatrix:
        """Hop distances between visible nodes over the visible edges."""
        if node_ids is None:
            node_ids = self.graph.visible_node_ids()
        pairs = [
            (self.graph.edges[edge_id].from_id, self.graph.edges[edge_id].to_id)
            for edge_id in self.graph.physics_edge_ids()
        ]
        return get_distances(list(node_ids), pairs)
