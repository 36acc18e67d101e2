from netlayout.solvers.engine import PhysicsEngine, SimulationArrays
from netlayout.solvers.integrator import Integrator

__all__ = ["Integrator", "PhysicsEngine", "SimulationArrays"]
