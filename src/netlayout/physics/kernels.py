# kernels.py
from __future__ import annotations

import numpy as np
import numpy.typing as npt
import numba as nb

from netlayout.config import MIN_DISTANCE


@nb.njit(cache=True, fastmath=True)
def pair_force(distance: float, dx: float, dy: float, mass_a: float, mass_b: float,
               gravitational_constant: float) -> tuple[float, float]:
    """
    Force on node `a` from a point mass `b` located at (a + (dx, dy)).

    Negative `gravitational_constant` pushes `a` away from `b`.
    """
    if distance == 0.0:
        distance = MIN_DISTANCE
        dx = distance
    magnitude = gravitational_constant * mass_a * mass_b / (distance * distance * distance)
    return dx * magnitude, dy * magnitude


@nb.njit(cache=True, fastmath=True)
def exact_repulsion(
    positions: npt.NDArray[np.float64],
    masses: npt.NDArray[np.float64],
    gravitational_constant: float,
) -> npt.NDArray[np.float64]:
    """
    Exact O(n^2) repulsion with the same force law as the Barnes-Hut solver.

    Args:
        positions: (n, 2) node coordinates.
        masses: (n,) node masses.
        gravitational_constant: Negative for repulsion.

    Returns:
        (n, 2) net force per node.
    """
    n = positions.shape[0]
    forces = np.zeros((n, 2), dtype=np.float64)
    if gravitational_constant == 0.0:
        return forces

    for i in range(n):
        for j in range(n):
            if i == j:
                continue
            dx = positions[j, 0] - positions[i, 0]
            dy = positions[j, 1] - positions[i, 1]
            distance = np.sqrt(dx * dx + dy * dy)
            fx, fy = pair_force(distance, dx, dy, masses[i], masses[j], gravitational_constant)
            forces[i, 0] += fx
            forces[i, 1] += fy
    return forces
