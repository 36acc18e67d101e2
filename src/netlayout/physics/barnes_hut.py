from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, List, Optional

import numpy as np

from netlayout.config import MIN_CELL_SIZE, MINIMUM_TREE_SIZE
from netlayout.physics.kernels import pair_force

if TYPE_CHECKING:
    import numpy.typing as npt

    from netlayout.model.options import BarnesHutOptions

logger = logging.getLogger(__name__)


class Branch:
    """
    A square cell of the quadtree.

    A cell is either split (four children) or a leaf holding node indices.
    Leaves hold at most one node, unless the cell has reached the minimum size,
    in which case coincident nodes share it.
    """
    __slots__ = (
        "min_x", "max_x", "min_y", "max_y", "center_x", "center_y",
        "size", "calc_size", "mass", "com_x", "com_y", "children", "members",
    )

    def __init__(self, min_x: float, min_y: float, size: float) -> None:
        self.min_x = min_x
        self.min_y = min_y
        self.max_x = min_x + size
        self.max_y = min_y + size
        self.center_x = min_x + 0.5 * size
        self.center_y = min_y + 0.5 * size
        self.size = size
        self.calc_size = 1.0 / size
        self.mass = 0.0
        self.com_x = 0.0
        self.com_y = 0.0
        self.children: Optional[List[Branch]] = None
        self.members: List[int] = []

    def __repr__(self) -> str:
        return (f"{self.__class__.__name__}(min=({self.min_x:.3g}, {self.min_y:.3g}), "
                f"size={self.size:.3g}, mass={self.mass:.3g})")

    def contains(self, x: float, y: float) -> bool:
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y

    def add_mass(self, x: float, y: float, mass: float) -> None:
        total = self.mass + mass
        self.com_x = (self.com_x * self.mass + x * mass) / total
        self.com_y = (self.com_y * self.mass + y * mass) / total
        self.mass = total

    def child_for(self, x: float, y: float) -> Branch:
        assert self.children is not None
        column = 1 if x >= self.center_x else 0
        row = 1 if y >= self.center_y else 0
        return self.children[2 * row + column]

    def split(self) -> None:
        half = 0.5 * self.size
        self.children = [
            Branch(self.min_x, self.min_y, half),
            Branch(self.center_x, self.min_y, half),
            Branch(self.min_x, self.center_y, half),
            Branch(self.center_x, self.center_y, half),
        ]


class BarnesHutSolver:
    """
    Approximate n-body repulsion using a Barnes-Hut quadtree.

    A cell whose `size / distance` is below `theta` is treated as a single
    point mass at its centre of mass. Cells that contain the node itself are
    always opened, so a node never interacts with its own mass.
    """

    def __init__(self, options: BarnesHutOptions) -> None:
        self.options = options
        self.root: Optional[Branch] = None

    def build_tree(
        self,
        positions: npt.NDArray[np.float64],
        masses: npt.NDArray[np.float64],
    ) -> Branch:
        """
        Build the quadtree over the bounding square of all nodes.

        Args:
            positions: (n, 2) node coordinates, n >= 1.
            masses: (n,) node masses.

        Returns:
            The root branch.
        """
        min_x, min_y = positions.min(axis=0)
        max_x, max_y = positions.max(axis=0)

        # make the bounding box square around its centre
        size = max(float(max_x - min_x), float(max_y - min_y), MINIMUM_TREE_SIZE)
        center_x = 0.5 * (min_x + max_x)
        center_y = 0.5 * (min_y + max_y)
        root = Branch(float(center_x - 0.5 * size), float(center_y - 0.5 * size), size)

        for i in range(positions.shape[0]):
            self._insert(root, i, float(positions[i, 0]), float(positions[i, 1]),
                         positions, masses)
        return root

    def _insert(
        self,
        branch: Branch,
        index: int,
        x: float,
        y: float,
        positions: npt.NDArray[np.float64],
        masses: npt.NDArray[np.float64],
    ) -> None:
        while True:
            branch.add_mass(x, y, float(masses[index]))

            if branch.children is not None:
                branch = branch.child_for(x, y)
                continue

            if not branch.members or branch.size <= MIN_CELL_SIZE:
                branch.members.append(index)
                return

            # occupied leaf: split and push the previous occupants one level down
            occupants, branch.members = branch.members, []
            branch.split()
            for other in occupants:
                ox, oy = float(positions[other, 0]), float(positions[other, 1])
                self._insert(branch.child_for(ox, oy), other, ox, oy, positions, masses)
            branch = branch.child_for(x, y)

    def solve(
        self,
        positions: npt.NDArray[np.float64],
        masses: npt.NDArray[np.float64],
    ) -> npt.NDArray[np.float64]:
        """
        Compute the repulsion force on every node.

        Args:
            positions: (n, 2) node coordinates.
            masses: (n,) node masses.

        Returns:
            (n, 2) force array.
        """
        n = positions.shape[0]
        forces = np.zeros((n, 2), dtype=np.float64)
        g = self.options.gravitational_constant
        if n < 2 or g == 0.0:
            self.root = None
            return forces

        self.root = root = self.build_tree(positions, masses)
        inverse_theta = 1.0 / self.options.theta

        for i in range(n):
            xi, yi = float(positions[i, 0]), float(positions[i, 1])
            mi = float(masses[i])
            fx = fy = 0.0

            stack = [root]
            while stack:
                branch = stack.pop()
                if branch.mass == 0.0:
                    continue

                if branch.children is not None:
                    dx = branch.com_x - xi
                    dy = branch.com_y - yi
                    distance = math.sqrt(dx * dx + dy * dy)
                    if distance * branch.calc_size > inverse_theta and not branch.contains(xi, yi):
                        px, py = pair_force(distance, dx, dy, mi, branch.mass, g)
                        fx += px
                        fy += py
                    else:
                        stack.extend(branch.children)
                    continue

                for j in branch.members:
                    if j == i:
                        continue
                    dx = float(positions[j, 0]) - xi
                    dy = float(positions[j, 1]) - yi
                    distance = math.sqrt(dx * dx + dy * dy)
                    px, py = pair_force(distance, dx, dy, mi, float(masses[j]), g)
                    fx += px
                    fy += py

            forces[i, 0] = fx
            forces[i, 1] = fy

        return forces
