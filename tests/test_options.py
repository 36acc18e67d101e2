import pytest

from netlayout.model.options import (
    BarnesHutOptions,
    HierarchicalOptions,
    LayoutOptions,
    PhysicsOptions,
    StabilizationOptions,
)


def test_defaults():
    options = PhysicsOptions()
    assert options.barnes_hut.theta == 0.5
    assert options.barnes_hut.gravitational_constant == -2000.0
    assert options.stabilization.iterations == 1000
    assert options.epsilon == pytest.approx(0.05)


def test_camel_case_keys_are_parsed():
    options = PhysicsOptions.from_dict({
        "barnesHut": {"gravitationalConstant": -1000, "springLength": 120},
        "maxVelocity": 20,
        "stabilization": {"updateInterval": 10},
    })
    assert options.barnes_hut.gravitational_constant == -1000
    assert options.barnes_hut.spring_length == 120
    assert options.barnes_hut.theta == 0.5
    assert options.max_velocity == 20
    assert options.stabilization.update_interval == 10


def test_base_values_are_kept():
    base = PhysicsOptions(max_velocity=10.0)
    options = PhysicsOptions.from_dict({"wind": {"x": 1}}, base)
    assert options.max_velocity == 10.0
    assert options.wind.x == 1
    assert options.wind.y == 0.0


def test_damping_alias():
    options = PhysicsOptions.from_dict({"damping": 0.5})
    assert options.barnes_hut.damping == 0.5


def test_explicit_epsilon_wins():
    options = PhysicsOptions.from_dict({"stabilization": {"epsilon": 0.2}})
    assert options.epsilon == 0.2


@pytest.mark.parametrize("data", [
    {"unknownKey": 1},
    {"barnesHut": {"thetaa": 1}},
    {"barnesHut": 5},
    {"barnesHut": {"theta": 0}},
    {"barnesHut": {"theta": "fast"}},
    {"damping": 2},
    {"maxVelocity": 0},
    {"enabled": "yes"},
    {"stabilization": {"iterations": -1}},
    {"stabilization": {"updateInterval": 0}},
    {"stabilization": {"iterations": 1.5}},
])
def test_invalid_physics_options(data):
    with pytest.raises(ValueError):
        PhysicsOptions.from_dict(data)


def test_direct_construction_is_validated():
    with pytest.raises(ValueError):
        BarnesHutOptions(central_gravity=-1)
    with pytest.raises(ValueError):
        StabilizationOptions(epsilon=0)


def test_layout_hierarchical_shorthand():
    options = LayoutOptions.from_dict({"hierarchical": True, "randomSeed": 7})
    assert options.hierarchical.enabled
    assert options.hierarchical.direction == "UD"
    assert options.random_seed == 7


def test_hierarchical_directions():
    assert HierarchicalOptions(direction="LR").is_vertical is False
    assert HierarchicalOptions(direction="DU").is_inverted is True
    assert HierarchicalOptions(direction="UD").is_inverted is False
    with pytest.raises(ValueError):
        LayoutOptions.from_dict({"hierarchical": {"direction": "up"}})
    with pytest.raises(ValueError):
        LayoutOptions.from_dict({"hierarchical": {"shakeTowards": "middle"}})


@pytest.mark.parametrize("data", [{"clusterThreshold": 0}, {"randomSeed": -3}, {"improved": True}])
def test_invalid_layout_options(data):
    with pytest.raises(ValueError):
        LayoutOptions.from_dict(data)
