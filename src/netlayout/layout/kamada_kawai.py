from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

import numpy as np

from netlayout.config import MIN_SPRING_DISTANCE

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)


class KamadaKawai:
    """
    Energy-minimising initial placement after Kamada & Kawai (1989),
    "An algorithm for drawing general undirected graphs".

    Every node pair (i, j) is joined by a virtual spring of rest length
    `spring_length * d_ij` and stiffness `spring_constant / d_ij^2`, where
    `d_ij` is the hop distance. The node with the largest energy gradient is
    moved by a Newton-Raphson step until all gradients fall below `threshold`.
    """

    def __init__(self, spring_length: float = 95.0, spring_constant: float = 0.04) -> None:
        self.spring_length = spring_length
        self.spring_constant = spring_constant
        self.threshold = 0.01
        self.inner_threshold = 1.0
        self.max_inner_iterations = 5

    def _gradient(
        self,
        m: int,
        positions: npt.NDArray[np.float64],
        lengths: npt.NDArray[np.float64],
        stiffness: npt.NDArray[np.float64],
    ) -> tuple[float, float]:
        delta = positions[m] - positions
        distance = np.maximum(np.hypot(delta[:, 0], delta[:, 1]), MIN_SPRING_DISTANCE)
        factor = stiffness[m] * (1.0 - lengths[m] / distance)
        factor[m] = 0.0
        return float(factor @ delta[:, 0]), float(factor @ delta[:, 1])

    def _gradients(
        self,
        positions: npt.NDArray[np.float64],
        lengths: npt.NDArray[np.float64],
        stiffness: npt.NDArray[np.float64],
    ) -> npt.NDArray[np.float64]:
        delta = positions[:, None, :] - positions[None, :, :]
        distance = np.maximum(np.hypot(delta[..., 0], delta[..., 1]), MIN_SPRING_DISTANCE)
        factor = stiffness * (1.0 - lengths / distance)
        np.fill_diagonal(factor, 0.0)
        return np.einsum("ij,ijk->ik", factor, delta)

    def _newton_step(
        self,
        m: int,
        gradient: tuple[float, float],
        positions: npt.NDArray[np.float64],
        lengths: npt.NDArray[np.float64],
        stiffness: npt.NDArray[np.float64],
    ) -> bool:
        delta = positions[m] - positions
        distance = np.maximum(np.hypot(delta[:, 0], delta[:, 1]), MIN_SPRING_DISTANCE)
        inv_cube = 1.0 / distance ** 3
        k, rest = stiffness[m].copy(), lengths[m]
        k[m] = 0.0

        d2_xx = float(np.sum(k * (1.0 - rest * delta[:, 1] ** 2 * inv_cube)))
        d2_xy = float(np.sum(k * rest * delta[:, 0] * delta[:, 1] * inv_cube))
        d2_yy = float(np.sum(k * (1.0 - rest * delta[:, 0] ** 2 * inv_cube)))

        hessian = np.array([[d2_xx, d2_xy], [d2_xy, d2_yy]])
        try:
            step = np.linalg.solve(hessian, -np.asarray(gradient))
        except np.linalg.LinAlgError:
            return False
        if not np.all(np.isfinite(step)):
            return False
        positions[m] += step
        return True

    def solve(
        self,
        positions: npt.NDArray[np.float64],
        distances: npt.NDArray[np.float64],
        movable: Optional[npt.NDArray[np.bool_]] = None,
    ) -> npt.NDArray[np.float64]:
        """
        Minimise the layout energy.

        Args:
            positions: (n, 2) starting coordinates; updated in place.
            distances: (n, n) hop distances (unreachable pairs hold a large sentinel).
            movable: (n,) mask of nodes allowed to move; all when None.

        Returns:
            The updated positions.
        """
        n = positions.shape[0]
        if n < 2:
            return positions
        if movable is None:
            movable = np.ones(n, dtype=bool)

        hops = distances.astype(np.float64)
        np.fill_diagonal(hops, 1.0)
        lengths = self.spring_length * hops
        stiffness = self.spring_constant * hops ** -2.0
        np.fill_diagonal(lengths, 0.0)
        np.fill_diagonal(stiffness, 0.0)

        max_iterations = max(1000, min(10 * n, 6000))
        iterations = 0
        max_energy = np.inf

        while max_energy > self.threshold and iterations < max_iterations:
            iterations += 1
            gradients = self._gradients(positions, lengths, stiffness)
            energy = np.hypot(gradients[:, 0], gradients[:, 1])
            energy[~movable] = 0.0
            m = int(np.argmax(energy))
            max_energy = float(energy[m])
            if max_energy <= self.threshold:
                break

            gradient = (float(gradients[m, 0]), float(gradients[m, 1]))
            delta_m = max_energy
            inner = 0
            moved = False
            while delta_m > self.inner_threshold and inner < self.max_inner_iterations:
                inner += 1
                if not self._newton_step(m, gradient, positions, lengths, stiffness):
                    break
                moved = True
                gradient = self._gradient(m, positions, lengths, stiffness)
                delta_m = float(np.hypot(*gradient))
            if not moved:
                # nothing moved, the next pass would pick the same node again
                break

        logger.debug(f"Kamada-Kawai finished after {iterations} iterations (max energy {max_energy:.4f}).")
        return positions
