"""
Global Constants
================
This module is the central registry for the numeric constants shared by the
physics, layout and clustering code.

Why is this file needed?
------------------------
1. Consistency: The same floors and sentinels are used by the force solvers,
   the distance table and the tests. Keeping them here avoids drift.
2. Tuning: Values that are not caller options (they never appear in an option
   bag) can still be adjusted in one place.

Exports:
    UNREACHABLE (int): Hop count used for node pairs without a path.
    MIN_CELL_SIZE (float): Smallest Barnes-Hut cell edge before subdivision stops.
    MIN_DISTANCE (float): Distance floor for coincident repulsion partners.
    MIN_SPRING_DISTANCE (float): Distance floor for spring endpoints.
"""
import math

# Distance table sentinel for unreachable pairs
UNREACHABLE: int = 1_000_000_000

# Barnes-Hut
MINIMUM_TREE_SIZE: float = 1e-5
MIN_CELL_SIZE: float = 1e-3
MIN_DISTANCE: float = 0.1

# Springs
MIN_SPRING_DISTANCE: float = 0.01

# Initial placement: nodes are scattered on a circle of radius n + offset
INITIAL_RADIUS_OFFSET: float = 50.0

# Improved layout (Kamada-Kawai on a reduced graph)
MAX_CLUSTER_LEVELS: int = 10
PERTURBATION_OFFSET: float = 70.0

# View
# smallest positive float (subnormal)
SMALLEST_ZOOM_LEVEL: float = math.ulp(0.0)
FIT_MARGIN: float = 1.1
