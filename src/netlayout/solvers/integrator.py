from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    import numpy.typing as npt

    from netlayout.model.options import PhysicsOptions


class Integrator:
    """
    Damped explicit Euler step.

    For every free axis `a = (F - damping * v) / mass`, `v += a * dt`, the
    velocity vector is clamped to `max_velocity` and `x += v * dt`. Fixed axes
    keep their position and carry neither force nor velocity.
    """

    def __init__(self, options: PhysicsOptions) -> None:
        self.options = options

    def step(
        self,
        positions: npt.NDArray[np.float64],
        velocities: npt.NDArray[np.float64],
        forces: npt.NDArray[np.float64],
        masses: npt.NDArray[np.float64],
        fixed: npt.NDArray[np.bool_],
    ) -> npt.NDArray[np.float64]:
        """
        Advance positions and velocities in place by one timestep.

        Args:
            positions: (n, 2) coordinates.
            velocities: (n, 2) velocities.
            forces: (n, 2) total force (repulsion, springs, gravity and wind).
            masses: (n,) masses.
            fixed: (n, 2) True where an axis is pinned.

        Returns:
            (n,) displacement magnitude of every node.
        """
        dt = self.options.timestep
        damping = self.options.barnes_hut.damping
        max_velocity = self.options.max_velocity

        forces[fixed] = 0.0
        velocities[fixed] = 0.0

        acceleration = (forces - damping * velocities) / masses[:, None]
        velocities += acceleration * dt
        velocities[fixed] = 0.0

        speed = np.hypot(velocities[:, 0], velocities[:, 1])
        too_fast = speed > max_velocity
        if np.any(too_fast):
            velocities[too_fast] *= (max_velocity / speed[too_fast])[:, None]

        step = velocities * dt
        positions += step
        return np.hypot(step[:, 0], step[:, 1])
