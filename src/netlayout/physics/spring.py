from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from netlayout.config import MIN_SPRING_DISTANCE

if TYPE_CHECKING:
    import numpy.typing as npt

    from netlayout.model.options import BarnesHutOptions


class SpringSolver:
    """
    Hooke springs along the edges.

    Each edge pushes its endpoints towards the rest length `L`:
    `f = k * (L - d) / d`, applied as `dx * f` to the `from` node and
    `-dx * f` to the `to` node with `dx = pos(from) - pos(to)`.
    """

    def __init__(self, options: BarnesHutOptions) -> None:
        self.options = options

    def solve(
        self,
        positions: npt.NDArray[np.float64],
        from_index: npt.NDArray[np.int64],
        to_index: npt.NDArray[np.int64],
        lengths: npt.NDArray[np.float64],
        constants: npt.NDArray[np.float64],
        forces: npt.NDArray[np.float64],
    ) -> None:
        """
        Accumulate spring forces into `forces` in place.

        Args:
            positions: (n, 2) node coordinates.
            from_index: (m,) row index of each edge's `from` node.
            to_index: (m,) row index of each edge's `to` node.
            lengths: (m,) rest lengths; NaN entries use the global spring length.
            constants: (m,) spring constants; NaN entries use the global value.
            forces: (n, 2) force buffer.
        """
        if from_index.size == 0:
            return

        lengths = np.where(np.isnan(lengths), self.options.spring_length, lengths)
        constants = np.where(np.isnan(constants), self.options.spring_constant, constants)

        delta = positions[from_index] - positions[to_index]
        distance = np.maximum(np.hypot(delta[:, 0], delta[:, 1]), MIN_SPRING_DISTANCE)
        factor = constants * (lengths - distance) / distance
        contribution = delta * factor[:, None]

        # np.add.at accumulates repeated indices (nodes with several edges)
        np.add.at(forces, from_index, contribution)
        np.add.at(forces, to_index, -contribution)
