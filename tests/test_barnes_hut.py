import numpy as np
import pytest

from netlayout.model.options import BarnesHutOptions
from netlayout.physics import BarnesHutSolver, exact_repulsion


def _random_layout(n, seed=11):
    rng = np.random.default_rng(seed)
    positions = rng.uniform(-500.0, 500.0, size=(n, 2))
    masses = rng.uniform(1.0, 3.0, size=n)
    return positions, masses


def test_two_nodes_repel():
    positions = np.array([[0.0, 0.0], [10.0, 0.0]])
    masses = np.ones(2)
    forces = BarnesHutSolver(BarnesHutOptions()).solve(positions, masses)
    np.testing.assert_allclose(forces, [[-20.0, 0.0], [20.0, 0.0]])


def test_no_force_without_partners_or_gravity():
    solver = BarnesHutSolver(BarnesHutOptions())
    assert solver.solve(np.zeros((0, 2)), np.zeros(0)).shape == (0, 2)
    np.testing.assert_array_equal(solver.solve(np.array([[3.0, 4.0]]), np.ones(1)), [[0.0, 0.0]])

    positions, masses = _random_layout(10)
    no_gravity = BarnesHutSolver(BarnesHutOptions(gravitational_constant=0.0))
    np.testing.assert_array_equal(no_gravity.solve(positions, masses), np.zeros((10, 2)))
    np.testing.assert_array_equal(exact_repulsion(positions, masses, 0.0), np.zeros((10, 2)))


def test_coincident_nodes_use_minimum_distance():
    positions = np.zeros((2, 2))
    masses = np.ones(2)
    forces = BarnesHutSolver(BarnesHutOptions()).solve(positions, masses)
    assert np.all(np.isfinite(forces))
    np.testing.assert_allclose(forces, exact_repulsion(positions, masses, -2000.0))
    assert forces[0, 0] != 0.0


def test_tree_aggregates_mass():
    positions, masses = _random_layout(25)
    root = BarnesHutSolver(BarnesHutOptions()).build_tree(positions, masses)
    assert root.mass == pytest.approx(masses.sum())
    centre = (positions * masses[:, None]).sum(axis=0) / masses.sum()
    assert (root.com_x, root.com_y) == pytest.approx(tuple(centre))
    for x, y in positions:
        assert root.contains(x, y)


def test_tiny_theta_matches_exact_solution():
    positions, masses = _random_layout(50)
    solver = BarnesHutSolver(BarnesHutOptions(theta=1e-6))
    approximate = solver.solve(positions, masses)
    exact = exact_repulsion(positions, masses, -2000.0)
    np.testing.assert_allclose(approximate, exact, rtol=1e-7, atol=1e-9 * np.abs(exact).max())


def test_default_theta_stays_close_to_exact_solution():
    positions, masses = _random_layout(200, seed=5)
    approximate = BarnesHutSolver(BarnesHutOptions(theta=0.5)).solve(positions, masses)
    exact = exact_repulsion(positions, masses, -2000.0)
    error = np.linalg.norm(approximate - exact) / np.linalg.norm(exact)
    assert error < 0.1
