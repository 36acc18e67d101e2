"""
The CONTROLLER layer drives the simulation and reports its progress through
Qt signals. It is the only layer that imports PySide6.
"""
from netlayout.controller.stabilization import StabilizationController, StabilizationState

__all__ = ["StabilizationController", "StabilizationState"]
