"""
Physics Engine
==============
Runs one simulation tick over the graph model.

Why is this file needed?
------------------------
1. Gathering: Node state lives on `Node` objects; the solvers work on flat
   arrays. The engine packs the visible, placed nodes into NumPy arrays, runs
   the solvers and writes the results back.
2. Tick Safety: The graph's tick lock is held for the whole tick so that
   mutations requested by listeners are applied only afterwards.

Note: This module should be pure Python/NumPy and should NOT import PySide6.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, Hashable, List

import numpy as np

from netlayout.physics.barnes_hut import BarnesHutSolver
from netlayout.physics.central_gravity import CentralGravitySolver
from netlayout.physics.kernels import exact_repulsion
from netlayout.physics.spring import SpringSolver
from netlayout.solvers.integrator import Integrator
from netlayout.utils import index_ids

if TYPE_CHECKING:
    import numpy.typing as npt

    from netlayout.model.graph import Graph
    from netlayout.model.options import PhysicsOptions

logger = logging.getLogger(__name__)


@dataclass
class SimulationArrays:
    """Flat per-tick view of the simulated nodes and springs."""
    node_ids: List[Hashable]
    positions: npt.NDArray[np.float64]
    velocities: npt.NDArray[np.float64]
    masses: npt.NDArray[np.float64]
    fixed: npt.NDArray[np.bool_]
    from_index: npt.NDArray[np.int64]
    to_index: npt.NDArray[np.int64]
    lengths: npt.NDArray[np.float64]
    constants: npt.NDArray[np.float64]


class PhysicsEngine:
    """
    Combines the force solvers and the integrator.

    Args:
        graph: The graph model to simulate.
        options: Physics configuration.
        exact: Use the exact O(n^2) repulsion instead of Barnes-Hut.
    """

    def __init__(self, graph: Graph, options: PhysicsOptions, exact: bool = False) -> None:
        self.graph = graph
        self.exact = exact
        self.iterations = 0
        self.set_options(options)

    def set_options(self, options: PhysicsOptions) -> None:
        self.options = options
        self.repulsion = BarnesHutSolver(options.barnes_hut)
        self.springs = SpringSolver(options.barnes_hut)
        self.central_gravity = CentralGravitySolver(options.barnes_hut)
        self.integrator = Integrator(options)

    def gather(self) -> SimulationArrays:
        """Pack visible, placed nodes and their physics edges into arrays."""
        nodes = [self.graph.nodes[i] for i in self.graph.visible_node_ids()]
        nodes = [node for node in nodes if node.placed]
        index = index_ids(node.id for node in nodes)
        n = len(nodes)

        positions = np.array([(node.x, node.y) for node in nodes], dtype=np.float64).reshape(n, 2)
        velocities = np.array([(node.vx, node.vy) for node in nodes], dtype=np.float64).reshape(n, 2)
        masses = np.array([node.mass for node in nodes], dtype=np.float64)
        fixed = np.array([(node.fixed_x, node.fixed_y) for node in nodes], dtype=bool).reshape(n, 2)

        from_index, to_index, lengths, constants = [], [], [], []
        for edge_id in self.graph.physics_edge_ids():
            edge = self.graph.edges[edge_id]
            if edge.from_id == edge.to_id:
                continue
            if edge.from_id not in index or edge.to_id not in index:
                continue
            from_index.append(index[edge.from_id])
            to_index.append(index[edge.to_id])
            lengths.append(np.nan if edge.length is None else edge.length)
            constants.append(np.nan if edge.spring_constant is None else edge.spring_constant)

        return SimulationArrays(
            node_ids=[node.id for node in nodes],
            positions=positions,
            velocities=velocities,
            masses=masses,
            fixed=fixed,
            from_index=np.array(from_index, dtype=np.int64),
            to_index=np.array(to_index, dtype=np.int64),
            lengths=np.array(lengths, dtype=np.float64),
            constants=np.array(constants, dtype=np.float64),
        )

    def compute_forces(self, state: SimulationArrays) -> npt.NDArray[np.float64]:
        """Total force per node: repulsion, springs, central gravity and wind."""
        if self.exact:
            forces = exact_repulsion(state.positions, state.masses,
                                     float(self.options.barnes_hut.gravitational_constant))
        else:
            forces = self.repulsion.solve(state.positions, state.masses)

        self.springs.solve(state.positions, state.from_index, state.to_index,
                           state.lengths, state.constants, forces)
        self.central_gravity.solve(state.positions, forces)

        wind = self.options.wind
        forces[:, 0] += wind.x
        forces[:, 1] += wind.y
        return forces

    def tick(self) -> float:
        """
        Run one physics tick under the graph's tick lock.

        Returns:
            The largest node displacement of the tick (0.0 for an empty graph).
        """
        with self.graph.tick_lock():
            state = self.gather()
            if not state.node_ids:
                return 0.0

            forces = self.compute_forces(state)
            displacement = self.integrator.step(
                state.positions, state.velocities, forces, state.masses, state.fixed
            )

            for i, node_id in enumerate(state.node_ids):
                node = self.graph.nodes[node_id]
                node.x, node.y = float(state.positions[i, 0]), float(state.positions[i, 1])
                node.vx, node.vy = float(state.velocities[i, 0]), float(state.velocities[i, 1])

        self.iterations += 1
        max_displacement = float(displacement.max())
        logger.debug(f"Tick {self.iterations}: max displacement {max_displacement:.4f}")
        return max_displacement
