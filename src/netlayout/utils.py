from __future__ import annotations

import functools
import logging
import re
import time
from typing import TYPE_CHECKING, Any, Callable, Hashable, Iterable, TypeVar

import numpy as np
import scipy as sp

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def timer(func: F) -> F:
    """Log the wall-clock duration of a call at DEBUG level."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed = time.perf_counter() - start
            logger.debug(f"{func.__qualname__} took {elapsed:.4f} s")
    return wrapper  # type: ignore[return-value]


def camel_to_snake(name: str) -> str:
    """Convert an option key such as 'gravitationalConstant' to 'gravitational_constant'."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def index_ids(ids: Iterable[Hashable]) -> dict[Hashable, int]:
    """Deterministic id -> row index mapping (insertion order)."""
    return {node_id: i for i, node_id in enumerate(ids)}


def assemble_adjacency(
    n: int,
    rows: npt.NDArray[np.int64],
    cols: npt.NDArray[np.int64],
) -> sp.sparse.csr_matrix:
    """
    Assemble a symmetric 0/1 adjacency matrix in CSR form.

    Both (i, j) and (j, i) are inserted, duplicate pairs are summed by the COO → CSR
    conversion and then clipped back to 1. Self loops are dropped.

    Args:
        n: Number of rows/columns.
        rows: Row indices of the pairs.
        cols: Column indices of the pairs.

    Returns:
        The adjacency matrix as int64 CSR.
    """
    rows = np.asarray(rows, dtype=np.int64)
    cols = np.asarray(cols, dtype=np.int64)
    keep = rows != cols
    rows, cols = rows[keep], cols[keep]

    r = np.concatenate((rows, cols))
    c = np.concatenate((cols, rows))
    data = np.ones_like(r, dtype=np.int64)

    adjacency = sp.sparse.coo_matrix((data, (r, c)), shape=(n, n)).tocsr()
    adjacency.data[:] = 1
    return adjacency
