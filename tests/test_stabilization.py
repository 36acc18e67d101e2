import pytest

from netlayout.controller import StabilizationController, StabilizationState
from netlayout.model.graph import Graph, Node
from netlayout.model.options import PhysicsOptions


class FakeEngine:
    """Returns scripted displacements; `on_tick` runs inside the tick lock."""

    def __init__(self, displacements, on_tick=None):
        self.graph = Graph()
        self.graph.add_node(Node(id="n", x=1.0, y=2.0))
        self.displacements = list(displacements)
        self.on_tick = on_tick
        self.calls = 0

    def tick(self):
        with self.graph.tick_lock():
            self.calls += 1
            if self.on_tick is not None:
                self.on_tick(self.calls)
            index = min(self.calls, len(self.displacements)) - 1
            return self.displacements[index]


def _controller(engine, scheduler=None, **stabilization):
    stabilization.setdefault("settleIterations", 0)
    options = PhysicsOptions.from_dict({"stabilization": stabilization})
    controller = StabilizationController(engine, options, scheduler)
    events = []
    controller.start_stabilizing.connect(lambda: events.append(("start", None)))
    controller.stabilization_progress.connect(lambda data: events.append(("progress", data)))
    controller.stabilization_iterations_done.connect(lambda: events.append(("done", None)))
    controller.stabilized.connect(lambda data: events.append(("stabilized", data)))
    return controller, events


def test_converges_after_consecutive_quiet_ticks():
    controller, events = _controller(FakeEngine([1.0, 1.0, 0.01, 0.01, 0.01]))
    assert controller.run() == StabilizationState.CONVERGED
    assert controller.iterations == 5
    assert [name for name, _ in events] == ["start", "done", "stabilized"]
    result = events[-1][1]
    assert result["converged"] is True
    assert result["iterations"] == 5
    assert result["positions"] == {"n": {"x": 1.0, "y": 2.0}}


def test_quiet_streak_is_reset_by_movement():
    controller, _ = _controller(FakeEngine([0.01, 0.01, 1.0, 0.01, 0.01, 0.01]))
    controller.run()
    assert controller.iterations == 6


def test_times_out_at_iteration_cap():
    controller, events = _controller(FakeEngine([1.0]), iterations=4)
    assert controller.run() == StabilizationState.TIMED_OUT
    assert controller.iterations == 4
    assert events[-1][1]["converged"] is False


def test_convergence_wins_on_the_last_iteration():
    controller, _ = _controller(FakeEngine([0.01]), iterations=3)
    assert controller.run() == StabilizationState.CONVERGED


def test_progress_every_update_interval():
    controller, events = _controller(FakeEngine([1.0]), iterations=6, updateInterval=2)
    controller.run()
    progress = [data for name, data in events if name == "progress"]
    assert progress == [
        {"iterations": 2, "total": 6},
        {"iterations": 4, "total": 6},
        {"iterations": 6, "total": 6},
    ]
    assert [name for name, _ in events][-2:] == ["done", "stabilized"]


def test_zero_iterations_times_out_immediately():
    engine = FakeEngine([1.0])
    controller, events = _controller(engine)
    controller.start(0)
    assert controller.state == StabilizationState.TIMED_OUT
    assert engine.calls == 0
    assert [name for name, _ in events] == ["start", "done", "stabilized"]


@pytest.mark.parametrize("iterations", [-1, 2.5, True])
def test_invalid_iteration_count(iterations):
    controller, _ = _controller(FakeEngine([1.0]))
    with pytest.raises(ValueError):
        controller.start(iterations)


def test_cancel_between_ticks():
    controller, events = _controller(FakeEngine([1.0]))
    controller.start(10)
    assert controller.tick() is True
    controller.cancel()
    assert controller.state == StabilizationState.IDLE
    assert controller.tick() is False
    assert [name for name, _ in events] == ["start"]


def test_cancel_requested_inside_a_tick():
    controller = None

    def cancel_on_second(call):
        if call == 2:
            controller.cancel()

    controller, events = _controller(FakeEngine([1.0], on_tick=cancel_on_second), updateInterval=1)
    controller.start(10)
    assert controller.tick() is True
    assert controller.tick() is False
    assert controller.state == StabilizationState.IDLE
    assert controller.iterations == 2
    assert [name for name, _ in events] == ["start", "progress"]


def test_topology_change_cancels_the_run():
    def add_node(call):
        engine.graph.add_node(Node(id=f"new{call}"))

    engine = FakeEngine([1.0], on_tick=add_node)
    controller, events = _controller(engine)
    assert controller.run(10) == StabilizationState.IDLE
    assert engine.calls == 1
    assert "new1" in engine.graph.nodes
    assert "stabilized" not in [name for name, _ in events]


def test_reentrant_tick_is_rejected():
    controller = None
    engine = FakeEngine([1.0], on_tick=lambda call: controller.tick())
    controller, _ = _controller(engine)
    controller.start(5)
    with pytest.raises(RuntimeError):
        controller.tick()
    # the guard is released again
    engine.on_tick = None
    assert controller.tick() is True


def test_restart_resets_counters():
    controller, _ = _controller(FakeEngine([1.0]))
    controller.start(10)
    controller.tick()
    controller.tick()
    controller.start(3)
    assert controller.iterations == 0
    assert controller.total == 3
    assert controller.run() == StabilizationState.TIMED_OUT
    assert controller.iterations == 3


def test_scheduler_drives_the_run():
    queue = []
    controller, events = _controller(FakeEngine([1.0]), scheduler=queue.append, iterations=5)
    controller.start()
    assert controller.state == StabilizationState.RUNNING
    assert len(queue) == 1
    while queue:
        queue.pop(0)()
    assert controller.state == StabilizationState.TIMED_OUT
    assert controller.iterations == 5
    assert events[-1][0] == "stabilized"


def test_settles_past_the_cap_with_one_terminal_event():
    engine = FakeEngine([1.0, 1.0, 1.0, 1.0, 0.01])
    controller, events = _controller(engine, iterations=2, settleIterations=10, updateInterval=100)
    controller.start()
    controller.tick()
    controller.tick()
    assert controller.is_settling
    assert controller.total == 12

    assert controller.run() == StabilizationState.CONVERGED
    assert controller.iterations == 7
    assert [name for name, _ in events] == ["start", "done", "stabilized"]
    assert events[-1][1]["converged"] is True


def test_settling_times_out_at_the_extended_cap():
    controller, events = _controller(FakeEngine([1.0]), iterations=2, settleIterations=3)
    assert controller.run() == StabilizationState.TIMED_OUT
    assert controller.iterations == 5
    assert not controller.is_settling
    assert [name for name, _ in events] == ["start", "done", "stabilized"]
    assert events[-1][1]["converged"] is False


def _run_frame(queue):
    pending, queue[:] = list(queue), []
    for callback in pending:
        callback()


def test_restart_drops_the_pending_scheduled_tick():
    queue = []
    engine = FakeEngine([1.0])
    controller, _ = _controller(engine, scheduler=queue.append)
    controller.start(100)
    controller.start(100)
    assert len(queue) == 2

    _run_frame(queue)
    assert len(queue) == 1
    assert controller.iterations == 1
    assert engine.calls == 1


def test_cancel_then_start_drops_the_pending_scheduled_tick():
    queue = []
    engine = FakeEngine([1.0])
    controller, _ = _controller(engine, scheduler=queue.append)
    controller.start(100)
    controller.cancel()
    _run_frame(queue)
    assert queue == []
    assert engine.calls == 0

    controller.start(100)
    controller.cancel()
    controller.start(100)
    _run_frame(queue)
    _run_frame(queue)
    assert len(queue) == 1
    assert controller.iterations == 2


def test_topology_cancel_then_restart_ticks_once_per_frame():
    queue = []
    engine = FakeEngine([1.0])
    controller, _ = _controller(engine, scheduler=queue.append)
    controller.start(100)
    engine.graph.add_node(Node(id="late"))
    assert controller.state == StabilizationState.IDLE

    controller.start(100)
    _run_frame(queue)
    assert len(queue) == 1
    assert controller.iterations == 1
