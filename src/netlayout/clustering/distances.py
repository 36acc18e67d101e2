"""
All-Pairs Hop Distances
=======================
Shortest path lengths (in edges) between every pair of nodes.

Why is this file needed?
------------------------
1. Kamada-Kawai: The initial layout needs the graph-theoretic distance of
   every node pair to derive its spring lengths.
2. Clustering: Callers inspect the reduced graph through the same table.

The adjacency is assembled as a SciPy sparse matrix; the O(n^3) relaxation is
a Numba kernel that only visits the upper triangle and mirrors each update.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, Dict, Hashable, Iterable, List, Sequence, Tuple

import numpy as np
import numba as nb

from netlayout.config import UNREACHABLE
from netlayout.utils import assemble_adjacency, index_ids, timer

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)


@nb.njit(cache=True)
def floyd_warshall_symmetric(dist: npt.NDArray[np.int64]) -> None:
    """
    In-place symmetric Floyd-Warshall relaxation.

    `dist[i, j] = min(dist[i, j], dist[i, k] + dist[k, j])` for `i < j`,
    mirrored to `dist[j, i]`.
    """
    n = dist.shape[0]
    for k in range(n):
        for i in range(n - 1):
            d_ik = dist[i, k]
            for j in range(i + 1, n):
                candidate = d_ik + dist[k, j]
                if candidate < dist[i, j]:
                    dist[i, j] = candidate
                    dist[j, i] = candidate


@dataclass
class DistanceMatrix:
    """
    Symmetric hop-count table keyed by node id.

    Unreachable pairs hold `config.UNREACHABLE`; the diagonal is zero.
    """
    node_ids: List[Hashable]
    index: Dict[Hashable, int]
    matrix: npt.NDArray[np.int64]

    def __len__(self) -> int:
        return len(self.node_ids)

    def __getitem__(self, pair: Tuple[Hashable, Hashable]) -> int:
        a, b = pair
        return int(self.matrix[self.index[a], self.index[b]])

    def reachable(self, a: Hashable, b: Hashable) -> bool:
        return self[a, b] < UNREACHABLE

    def to_dict(self) -> Dict[Hashable, Dict[Hashable, int]]:
        return {
            a: {b: int(self.matrix[i, j]) for j, b in enumerate(self.node_ids)}
            for i, a in enumerate(self.node_ids)
        }


@timer
def get_distances(
    node_ids: Sequence[Hashable],
    edges: Iterable[Tuple[Hashable, Hashable]],
) -> DistanceMatrix:
    """
    Compute all-pairs hop distances. Edges are treated as undirected.

    Args:
        node_ids: Nodes to include (rows/columns in this order).
        edges: (from, to) pairs; pairs touching other nodes are ignored.

    Returns:
        The distance table.
    """
    node_ids = list(node_ids)
    index = index_ids(node_ids)
    n = len(node_ids)

    rows, cols = [], []
    for from_id, to_id in edges:
        if from_id in index and to_id in index:
            rows.append(index[from_id])
            cols.append(index[to_id])

    dist = np.full((n, n), UNREACHABLE, dtype=np.int64)
    if n:
        adjacency = assemble_adjacency(n, np.array(rows, dtype=np.int64), np.array(cols, dtype=np.int64))
        dist[adjacency.nonzero()] = 1
        np.fill_diagonal(dist, 0)
        floyd_warshall_symmetric(dist)

    logger.debug(f"Computed hop distances for {n} nodes and {len(rows)} edges.")
    return DistanceMatrix(node_ids=node_ids, index=index, matrix=dist)
