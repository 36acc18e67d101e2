import numpy as np
import pytest

from netlayout.model.options import BarnesHutOptions
from netlayout.physics import CentralGravitySolver, SpringSolver


def _solve_springs(positions, edges, lengths=None, constants=None, options=None):
    positions = np.asarray(positions, dtype=np.float64)
    from_index = np.array([e[0] for e in edges], dtype=np.int64)
    to_index = np.array([e[1] for e in edges], dtype=np.int64)
    m = len(edges)
    lengths = np.full(m, np.nan) if lengths is None else np.asarray(lengths, dtype=np.float64)
    constants = np.full(m, np.nan) if constants is None else np.asarray(constants, dtype=np.float64)
    forces = np.zeros_like(positions)
    SpringSolver(options or BarnesHutOptions()).solve(positions, from_index, to_index, lengths, constants, forces)
    return forces


def test_stretched_spring_pulls_together():
    forces = _solve_springs([[0.0, 0.0], [100.0, 0.0]], [(0, 1)])
    # k * (L - d) / d * dx = 0.04 * (95 - 100) / 100 * -100
    np.testing.assert_allclose(forces, [[0.2, 0.0], [-0.2, 0.0]])


def test_compressed_spring_pushes_apart():
    forces = _solve_springs([[0.0, 0.0], [0.0, 50.0]], [(0, 1)])
    assert forces[0, 1] < 0.0 < forces[1, 1]
    assert forces[0, 0] == 0.0


def test_per_edge_length_and_constant():
    forces = _solve_springs([[0.0, 0.0], [100.0, 0.0]], [(0, 1)], lengths=[100.0])
    np.testing.assert_allclose(forces, np.zeros((2, 2)), atol=1e-12)

    forces = _solve_springs([[0.0, 0.0], [100.0, 0.0]], [(0, 1)], lengths=[50.0], constants=[1.0])
    np.testing.assert_allclose(forces, [[50.0, 0.0], [-50.0, 0.0]])


def test_forces_accumulate_for_shared_endpoints():
    positions = [[0.0, 0.0], [100.0, 0.0], [-100.0, 0.0], [0.0, 100.0]]
    forces = _solve_springs(positions, [(0, 1), (0, 2), (0, 3)])
    np.testing.assert_allclose(forces[0], [0.0, 0.2], atol=1e-12)
    np.testing.assert_allclose(forces.sum(axis=0), [0.0, 0.0], atol=1e-12)


def test_coincident_endpoints_stay_finite():
    forces = _solve_springs([[5.0, 5.0], [5.0, 5.0]], [(0, 1)])
    assert np.all(np.isfinite(forces))


def test_no_edges_is_a_no_op():
    forces = _solve_springs([[1.0, 2.0]], [])
    np.testing.assert_array_equal(forces, [[0.0, 0.0]])


def test_central_gravity_pulls_towards_origin():
    positions = np.array([[3.0, 4.0], [0.0, 0.0], [-10.0, 0.0]])
    forces = np.zeros_like(positions)
    CentralGravitySolver(BarnesHutOptions(central_gravity=0.3)).solve(positions, forces)
    np.testing.assert_allclose(forces[0], [-0.18, -0.24])
    np.testing.assert_array_equal(forces[1], [0.0, 0.0])
    np.testing.assert_allclose(forces[2], [0.3, 0.0])


def test_central_gravity_disabled():
    positions = np.array([[3.0, 4.0]])
    forces = np.ones_like(positions)
    CentralGravitySolver(BarnesHutOptions(central_gravity=0.0)).solve(positions, forces)
    assert forces.tolist() == [[1.0, 1.0]]


@pytest.mark.parametrize("length", [0.0, 95.0, 300.0])
def test_spring_forces_are_balanced(length):
    positions = np.random.default_rng(2).uniform(-200, 200, size=(6, 2))
    edges = [(0, 1), (1, 2), (2, 3), (3, 4), (4, 5), (5, 0), (0, 3)]
    forces = _solve_springs(positions, edges, lengths=[length] * len(edges))
    np.testing.assert_allclose(forces.sum(axis=0), [0.0, 0.0], atol=1e-9)
