"""
Force Solvers
=============
Per-tick force computation for the layout simulation.

Why is this file needed?
------------------------
1. Physics: It implements the force laws (n-body repulsion, Hooke springs,
   central gravity) on flat NumPy arrays.
2. Speed: The repulsion is approximated with a Barnes-Hut quadtree; the exact
   O(n^2) sum is kept as a Numba kernel for small graphs and verification.

Note: This package should be pure Python/NumPy and should NOT import PySide6.
"""
from netlayout.physics.barnes_hut import BarnesHutSolver
from netlayout.physics.central_gravity import CentralGravitySolver
from netlayout.physics.kernels import exact_repulsion
from netlayout.physics.spring import SpringSolver

__all__ = ["BarnesHutSolver", "CentralGravitySolver", "SpringSolver", "exact_repulsion"]
