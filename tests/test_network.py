import logging

import pytest

import netlayout
from netlayout import Network
from netlayout.controller import StabilizationState
from netlayout.main import build_tree, main

NODES = [{"id": i} for i in range(1, 6)]
EDGES = [{"from": 1, "to": 2}, {"from": 1, "to": 3}, {"from": 2, "to": 4}, {"from": 2, "to": 5}]


def test_version_is_exposed():
    assert isinstance(netlayout.__version__, str)


def test_set_data_places_nodes(quiet_options):
    network = Network(NODES, EDGES, quiet_options)
    positions = network.get_positions()
    assert sorted(positions) == [1, 2, 3, 4, 5]
    assert all(p["x"] is not None and p["y"] is not None for p in positions.values())
    assert network.controller.state == StabilizationState.IDLE
    with pytest.raises(KeyError):
        network.get_positions(["missing"])


def test_same_seed_gives_same_layout(quiet_options):
    first = Network(NODES, EDGES, quiet_options).get_positions()
    second = Network(NODES, EDGES, quiet_options).get_positions()
    assert first == second


def test_constructor_stabilizes_when_enabled():
    options = {"physics": {"stabilization": {"iterations": 20, "settleIterations": 0}}}
    network = Network(NODES, EDGES, options)
    assert network.controller.state in (StabilizationState.CONVERGED, StabilizationState.TIMED_OUT)
    assert network.controller.iterations <= 20


def test_timed_out_run_keeps_settling_until_at_rest(quiet_options):
    network = Network(NODES, EDGES, quiet_options)
    results = []
    done = []
    network.on("stabilized", results.append)
    network.on("stabilizationIterationsDone", lambda: done.append(network.controller.iterations))

    state = network.stabilize(iterations=1)
    assert done == [1]
    assert len(results) == 1
    assert results[0]["iterations"] > 1
    assert state in (StabilizationState.CONVERGED, StabilizationState.TIMED_OUT)
    assert not network.controller.is_running


def test_wind_pushes_chain_past_fixed_node():
    nodes = [{"id": 1, "fixed": True, "x": 0, "y": 0}, {"id": 2}, {"id": 3}, {"id": 4}]
    edges = [{"from": 1, "to": 2}, {"from": 2, "to": 3}, {"from": 3, "to": 4}]
    network = Network(options={"physics": {"wind": {"x": 10, "y": 0}, "stabilization": {"iterations": 10}}})
    results = []
    network.on("stabilized", results.append)
    network.set_data(nodes, edges)

    assert len(results) == 1
    positions = results[0]["positions"]
    assert positions[1] == {"x": 0.0, "y": 0.0}
    assert positions[2]["x"] > 0
    assert positions[3]["x"] > 0
    assert positions[4]["x"] > 0


def test_stabilize_emits_events(quiet_options):
    network = Network(NODES, EDGES, quiet_options)
    events = []
    network.on("startStabilizing", lambda: events.append("start"))
    network.on("stabilizationIterationsDone", lambda: events.append("done"))
    network.on("stabilized", lambda result: events.append(result))

    state = network.stabilize(iterations=5)
    assert state in (StabilizationState.CONVERGED, StabilizationState.TIMED_OUT)
    assert events[:2] == ["start", "done"]
    assert len(events) == 3
    assert sorted(events[2]["positions"]) == [1, 2, 3, 4, 5]


def test_off_removes_listener(quiet_options):
    network = Network(NODES, EDGES, quiet_options)
    calls = []

    def on_stabilized(result):
        calls.append(result)

    network.on("stabilized", on_stabilized)
    network.off("stabilized", on_stabilized)
    network.stabilize(iterations=2)
    assert calls == []

    with pytest.raises(ValueError):
        network.on("afterDrawing", on_stabilized)


def test_stabilize_with_physics_disabled(quiet_options):
    network = Network(NODES, EDGES, quiet_options)
    events = []
    network.on("startStabilizing", lambda: events.append("start"))
    network.set_options({"physics": False})
    assert network.physics_options.enabled is False
    assert network.stabilize() == StabilizationState.IDLE
    network.start_simulation()
    assert events == []


def test_set_options_validation(quiet_options):
    network = Network(options=quiet_options)
    physics = network.physics_options
    with pytest.raises(ValueError):
        network.set_options({"interaction": {}})
    with pytest.raises(ValueError):
        network.set_options({"physics": {"barnesHut": {"theta": -1}}})
    with pytest.raises(ValueError):
        network.set_options({"physics": {"maxVelocity": 5}, "layout": {"clusterThreshold": 0}})
    assert network.physics_options is physics

    network.set_options({"physics": {"barnesHut": {"springLength": 120}}})
    assert network.engine.options.barnes_hut.spring_length == 120
    assert network.layout.forces.spring_length == 120
    assert network.controller.options is network.physics_options


def test_hierarchical_layout(quiet_options):
    options = {**quiet_options, "layout": {"hierarchical": True}}
    network = Network(NODES, EDGES, options)
    assert network.get_levels() == {1: 0, 2: 1, 3: 1, 4: 2, 5: 2}
    positions = network.get_positions()
    assert positions[1] == {"x": 0.0, "y": 0.0}
    assert positions[4]["y"] == positions[5]["y"] == 300.0


def test_manual_simulation(quiet_options):
    network = Network(NODES, EDGES, quiet_options)
    network.start_simulation()
    assert network.controller.is_running
    assert network.tick() is True
    network.stop_simulation()
    assert network.controller.state == StabilizationState.IDLE
    assert network.tick() is False


def test_set_data_cancels_running_simulation(quiet_options):
    network = Network(NODES, EDGES, quiet_options)
    network.start_simulation()
    network.set_data([{"id": "a"}, {"id": "b"}], [{"from": "a", "to": "b"}])
    assert network.controller.state == StabilizationState.IDLE
    assert sorted(network.get_positions()) == ["a", "b"]


def test_scheduled_stabilization(quiet_options):
    queue = []
    network = Network(NODES, EDGES, quiet_options, scheduler=queue.append)
    assert network.stabilize(iterations=3) == StabilizationState.RUNNING
    while queue:
        queue.pop(0)()
    assert network.controller.state in (StabilizationState.CONVERGED, StabilizationState.TIMED_OUT)


def test_incremental_updates(quiet_options):
    network = Network(NODES, EDGES, quiet_options)
    node = network.add_node({"id": 6, "label": "late"})
    assert node.placed and node.options == {"label": "late"}
    network.add_edge({"from": 5, "to": 6, "id": "e56"})
    assert "e56" in network.graph.physics_edge_ids()

    network.update_node(6, x=1, y=2)
    assert network.get_positions([6]) == {6: {"x": 1.0, "y": 2.0}}
    network.remove_edge("e56")
    network.remove_node(6)
    assert 6 not in network.get_positions()


def test_cluster_passthrough(quiet_options):
    network = Network(NODES, EDGES, quiet_options)
    cluster_id = network.cluster(lambda node: node.id in (2, 4, 5), {"id": "c"})
    assert network.is_cluster("c")
    assert network.find_node(4) == ["c", 4]
    assert sorted(network.get_nodes_in_cluster("c")) == [2, 4, 5]

    surrogate_id = network.get_clustered_edges(network.graph.edge_ids_of(1)[0])[-1]
    with pytest.raises(ValueError):
        network.remove_node(cluster_id)
    with pytest.raises(ValueError):
        network.remove_edge(surrogate_id)

    edge = network.add_edge({"from": 4, "to": 3, "id": "late"})
    assert edge.hidden
    assert network.get_base_edges(network.get_clustered_edges("late")[-1]) == ["late"]
    assert network.get_distances()["c", 3] == 1

    network.open_cluster("c")
    assert not network.graph.edges["late"].hidden
    assert network.cluster_outliers() != []
    assert network.cluster_by_hubsize(10) == []


def test_removals_keep_cluster_records_in_sync(quiet_options):
    network = Network(NODES, EDGES, quiet_options)
    network.cluster(lambda node: node.id in (2, 4, 5), {"id": "c"})
    edge_24 = next(e.id for e in network.graph.edges.values() if (e.from_id, e.to_id) == (2, 4))
    edge_12 = next(e.id for e in network.graph.edges.values() if (e.from_id, e.to_id) == (1, 2))
    surrogate_id = network.get_clustered_edges(edge_12)[-1]

    network.remove_edge(edge_12)
    assert surrogate_id not in network.graph.edges
    assert network.get_distances()["c", 1] > 2

    network.remove_node(4)
    assert edge_24 in network.graph.edges
    assert sorted(network.get_nodes_in_cluster("c")) == [2, 5]
    network.add_node({"id": 4})
    assert network.graph.edges[edge_24].hidden
    network.open_cluster("c")
    assert not network.graph.edges[edge_24].hidden


def test_selection(quiet_options):
    commits = []
    network = Network(NODES, EDGES, quiet_options, selection_handler=lambda summary: commits.append(summary))
    network.select_nodes([1])
    selection = network.get_selection()
    assert selection["nodes"] == [1]
    assert len(selection["edges"]) == 2
    assert network.graph.nodes[1].selected

    network.select_nodes([2], highlight_edges=False)
    assert network.get_selection() == {"nodes": [2], "edges": []}
    assert not network.graph.nodes[1].selected

    network.unselect_all()
    assert network.get_selection() == {"nodes": [], "edges": []}
    assert len(commits) == 3
    with pytest.raises(KeyError):
        network.select_edges(["missing"])


def test_fit(quiet_options):
    network = Network([{"id": 1, "x": 0, "y": 0}, {"id": 2, "x": 100, "y": 50}], [], quiet_options)
    result = network.fit({"maxZoomLevel": 10}, width=800, height=600)
    assert result.center == (50.0, 25.0)
    assert result.zoom_level == pytest.approx(800 / 110)
    assert network.fit({"nodes": [1]}).center == (0.0, 0.0)


def test_build_tree():
    nodes, edges = build_tree(10, seed=3)
    assert [n["id"] for n in nodes] == list(range(10))
    assert len(edges) == 9
    assert all(e["from"] < e["to"] for e in edges)


def test_demo_entry_point(capsys):
    try:
        assert main(["6"]) == 0
    finally:
        package_logger = logging.getLogger("netlayout")
        package_logger.handlers.clear()
        package_logger.setLevel(logging.NOTSET)
        package_logger.propagate = True
    lines = capsys.readouterr().out.strip().splitlines()
    assert len([line for line in lines if "x=" in line]) == 6
