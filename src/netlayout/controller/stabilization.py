"""
Stabilization Controller
========================
Runs the physics engine until the layout comes to rest.

Why is this file needed?
------------------------
1. Convergence: It decides when a run is finished, either because every node
   moved less than `epsilon` for `stable_ticks` consecutive ticks (CONVERGED)
   or because the iteration cap was reached (TIMED_OUT). A run still moving at
   the cap settles for a bounded number of extra ticks before it times out.
2. Signals: Progress and completion are reported with Qt signals, so a GUI or
   any other listener can follow the run without polling.
3. Cancellation: A run can be cancelled cooperatively. A request made while a
   tick is executing takes effect at the tick boundary.

Classes:
    StabilizationState: The run state machine.
    StabilizationController: Ticks the engine and emits the events.
"""
from __future__ import annotations

from enum import IntEnum
import functools
import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, Hashable, Optional

from PySide6.QtCore import QObject, Signal

if TYPE_CHECKING:
    from netlayout.model.options import PhysicsOptions
    from netlayout.solvers.engine import PhysicsEngine

logger = logging.getLogger(__name__)

Scheduler = Callable[[Callable[[], None]], Any]


class StabilizationState(IntEnum):
    """States of a stabilization run."""
    IDLE = 0
    RUNNING = 1
    CONVERGED = 2
    TIMED_OUT = 3


class StabilizationController(QObject):
    """
    Drives `PhysicsEngine.tick` and emits the stabilization events.

    Args:
        engine: The physics engine to tick.
        options: Physics options (convergence threshold and iteration cap).
        scheduler: Optional callable receiving the next tick callback. When
            None, `run()` ticks synchronously.
    """
    start_stabilizing = Signal()
    stabilization_progress = Signal(object)  # {"iterations": int, "total": int}
    stabilization_iterations_done = Signal()
    stabilized = Signal(object)  # {"iterations": int, "converged": bool, "positions": dict}

    def __init__(
        self,
        engine: PhysicsEngine,
        options: PhysicsOptions,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        super().__init__()
        self.engine = engine
        self.options = options
        self.scheduler = scheduler

        self.state = StabilizationState.IDLE
        self.iterations = 0
        self.total = options.stabilization.iterations
        self._stable_count = 0
        self._settling = False
        self._in_tick = False
        self._cancel_requested = False
        # bumped on every start and cancel; scheduled ticks of older runs are dropped
        self._generation = 0

        self.engine.graph.add_topology_listener(self._on_topology_changed)

    @property
    def is_running(self) -> bool:
        return self.state == StabilizationState.RUNNING

    @property
    def is_settling(self) -> bool:
        return self.is_running and self._settling

    def set_options(self, options: PhysicsOptions) -> None:
        self.options = options

    def start(self, iterations: Optional[int] = None) -> None:
        """
        Begin a new run, cancelling the one in flight.

        A run that reaches its cap before the layout is at rest emits
        `stabilization_iterations_done` and keeps ticking for at most
        `stabilization.settle_iterations` more ticks. `stabilized` is emitted
        once, when the run ends.

        Args:
            iterations: Iteration cap for this run; defaults to
                `stabilization.iterations`.
        """
        if iterations is None:
            iterations = self.options.stabilization.iterations
        if not isinstance(iterations, int) or isinstance(iterations, bool) or iterations < 0:
            raise ValueError(f"iterations must be an integer >= 0, got {iterations!r}.")

        if self.is_running:
            self.cancel()

        self._generation += 1
        self.iterations = 0
        self.total = iterations
        self._stable_count = 0
        self._settling = False
        self._cancel_requested = False
        self.state = StabilizationState.RUNNING

        logger.info(f"Stabilization started (max {self.total} iterations).")
        self.start_stabilizing.emit()

        if self.total == 0:
            self._finish(StabilizationState.TIMED_OUT)
            return
        if self.scheduler is not None:
            self.scheduler(functools.partial(self._scheduled_tick, self._generation))

    def tick(self) -> bool:
        """
        Run one tick of the current run.

        Returns:
            True if another tick should be scheduled.

        Raises:
            RuntimeError: When called from a listener while a tick is executing.
        """
        if self._in_tick:
            raise RuntimeError("StabilizationController.tick() called while a tick is in progress.")
        if not self.is_running:
            return False

        self._in_tick = True
        try:
            displacement = self.engine.tick()
            self.iterations += 1

            if displacement < self.options.epsilon:
                self._stable_count += 1
            else:
                self._stable_count = 0

            update_interval = self.options.stabilization.update_interval
            if not self._cancel_requested and self.iterations % update_interval == 0:
                self.stabilization_progress.emit({"iterations": self.iterations, "total": self.total})
        finally:
            self._in_tick = False

        if self._cancel_requested:
            self._reset_to_idle()
            return False

        if self._stable_count >= self.options.stabilization.stable_ticks:
            self._finish(StabilizationState.CONVERGED)
            return False
        if self.iterations >= self.total:
            settle = self.options.stabilization.settle_iterations
            if self._settling or settle == 0:
                self._finish(StabilizationState.TIMED_OUT)
                return False
            self._begin_settling(settle)
        return self.is_running

    def _begin_settling(self, settle: int) -> None:
        logger.info(f"Layout not at rest after {self.iterations} iterations; settling.")
        self._settling = True
        self.total += settle
        self.stabilization_iterations_done.emit()

    def run(self, iterations: Optional[int] = None) -> StabilizationState:
        """
        Synchronous driver: start a run (unless one is active) and tick until
        it ends or is cancelled.

        Returns:
            The final state.
        """
        if not self.is_running:
            self.start(iterations)
        while self.tick():
            pass
        return self.state

    def cancel(self) -> None:
        """Stop the current run without emitting a terminal event."""
        if self._in_tick:
            self._cancel_requested = True
            return
        if self.is_running:
            self._reset_to_idle()

    def _scheduled_tick(self, generation: int) -> None:
        if generation != self._generation:
            return
        if self.tick() and self.scheduler is not None and generation == self._generation:
            self.scheduler(functools.partial(self._scheduled_tick, generation))

    def _reset_to_idle(self) -> None:
        self._generation += 1
        self._cancel_requested = False
        self._settling = False
        self.state = StabilizationState.IDLE
        logger.info(f"Stabilization cancelled after {self.iterations} iterations.")

    def _finish(self, state: StabilizationState) -> None:
        self.state = state
        converged = state == StabilizationState.CONVERGED
        logger.info(
            f"Stabilization {'converged' if converged else 'timed out'} after {self.iterations} iterations."
        )
        if not self._settling:
            self.stabilization_iterations_done.emit()
        self._settling = False
        self.stabilized.emit({
            "iterations": self.iterations,
            "converged": converged,
            "positions": self.positions(),
        })

    def positions(self) -> Dict[Hashable, Dict[str, float]]:
        graph = self.engine.graph
        return {
            node_id: {"x": graph.nodes[node_id].x, "y": graph.nodes[node_id].y}
            for node_id in graph.visible_node_ids()
            if graph.nodes[node_id].placed
        }

    def _on_topology_changed(self, event: str, item_id: Optional[Hashable]) -> None:
        if self.is_running:
            logger.debug(f"Topology changed ({event}); cancelling stabilization.")
            self.cancel()
