from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    import numpy.typing as npt

    from netlayout.model.options import BarnesHutOptions


class CentralGravitySolver:
    """Constant-magnitude pull of every node towards the origin."""

    def __init__(self, options: BarnesHutOptions) -> None:
        self.options = options

    def solve(self, positions: npt.NDArray[np.float64], forces: npt.NDArray[np.float64]) -> None:
        """Accumulate `-pos * central_gravity / |pos|` into `forces`; zero at the origin."""
        strength = self.options.central_gravity
        if strength == 0.0 or positions.shape[0] == 0:
            return

        distance = np.hypot(positions[:, 0], positions[:, 1])
        scale = np.zeros_like(distance)
        np.divide(strength, distance, out=scale, where=distance > 0.0)
        forces -= positions * scale[:, None]
