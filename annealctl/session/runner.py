"""
Session runner: hardware lifetime, scheduling and orderly shutdown.

The SessionRunner owns every resource a session needs. Hardware handles are
acquired on entry and released on every exit path through shutdown(), which
is idempotent because it can be reached from several places (explicit
exit, fatal tick fault, signal handler, context-manager exit).

Example usage:
    >>> from annealctl.config import ControllerConfig, RunConfig
    >>> from annealctl.hardware import SimulatedRig, SimulatedPowerSupply, SimulatedThermometer
    >>> from annealctl.session.runner import SessionRunner
    >>>
    >>> rig = SimulatedRig()
    >>> run_cfg = RunConfig.from_args(name="demo", out_dir=None, duration_s=60)
    >>> with SessionRunner(run_cfg, ControllerConfig(),
    ...                    SimulatedThermometer(rig), SimulatedPowerSupply(rig)) as runner:
    ...     runner.controller.set_target(50.0)
    ...     result = runner.run()

Shutdown sequence:
    1. stop the scheduler
    2. command 0 V and switch the supply output off
    3. release the power supply and thermometer
    4. close the CSV trace
    5. write metrics.json / trace.json
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Iterable

from ..config import ControllerConfig, RunConfig
from ..hardware.guarded import GuardedActuator, GuardedTemperatureSource
from ..hardware.interfaces import Actuator, TemperatureSource
from .artifacts import write_session_artifacts
from .controller import AnnealController
from .interfaces import Command, SessionMetrics, SessionResult, TickStatus
from .recorder import ProcessRecorder, TraceLog
from .scheduler import PeriodicScheduler

logger = logging.getLogger(__name__)

# Scripted operator: sees every tick's status, returns commands to stage
Operator = Callable[[TickStatus], Iterable[Command]]

TRACE_FILENAME = "trace.csv"


class SessionRunner:
    """
    Runs one controller session against a temperature source and actuator.

    Attributes:
        run_config: Session name, output directory and optional duration.
        controller: The AnnealController (available after __enter__).
        scheduler: The PeriodicScheduler (available after __enter__).
        result: SessionResult (available after shutdown()).
    """

    def __init__(
        self,
        run_config: RunConfig,
        controller_config: ControllerConfig,
        source: TemperatureSource,
        actuator: Actuator,
        *,
        operator: Operator | None = None,
        on_status: Callable[[TickStatus], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] | None = None,
        guard_io: bool = True,
        max_ticks: int | None = None,
    ) -> None:
        """
        Args:
            run_config: Session configuration
            controller_config: Control configuration
            source: Temperature source (opened on __enter__)
            actuator: Power supply (opened on __enter__)
            operator: Optional scripted operator fed every TickStatus
            on_status: Optional display callback fed every TickStatus
            clock: Monotonic time source shared by controller and scheduler
            sleep: Sleep function for the scheduler (None = real, interruptible)
            guard_io: Wrap hardware calls with per-call timeouts
            max_ticks: Stop after this many ticks (tests, demos)
        """
        self.run_config = run_config
        self.controller_config = controller_config.validate()
        if guard_io:
            source = GuardedTemperatureSource(source, controller_config.io_timeout_s)
            actuator = GuardedActuator(actuator, controller_config.io_timeout_s)
        self.source = source
        self.actuator = actuator

        self._operator = operator
        self._on_status = on_status
        self._clock = clock
        self._sleep = sleep
        self._max_ticks = max_ticks

        self.controller: AnnealController | None = None
        self.scheduler: PeriodicScheduler | None = None
        self.result: SessionResult | None = None

        self._trace: TraceLog | None = None
        self._start_time: str | None = None
        self._fault: str | None = None
        self._shutdown_lock = threading.Lock()
        self._shut_down = False
        self._actuator_open = False
        self._source_open = False

    # ─────────────────────────────────────────────────────────────────
    # Resource acquisition
    # ─────────────────────────────────────────────────────────────────

    def __enter__(self) -> "SessionRunner":
        self._start_time = datetime.now(timezone.utc).isoformat()
        try:
            self.actuator.open()
            self._actuator_open = True
            self.source.open()
            self._source_open = True

            out_dir = self.run_config.out_dir
            self._trace = TraceLog(out_dir / TRACE_FILENAME)
            recorder = ProcessRecorder(self.controller_config.recorder_capacity, sink=self._trace)
            self.controller = AnnealController(
                self.controller_config,
                self.source,
                self.actuator,
                recorder=recorder,
                clock=self._clock,
            )
            self.scheduler = PeriodicScheduler(
                self.controller_config.tick_period_s, clock=self._clock, sleep=self._sleep
            )
        except BaseException:
            self.shutdown()
            raise
        logger.info("Session '%s' ready, trace -> %s", self.run_config.name, self._trace.path)
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.shutdown()
        return False

    # ─────────────────────────────────────────────────────────────────
    # Running
    # ─────────────────────────────────────────────────────────────────

    def run(self) -> SessionResult:
        """
        Run the control loop until exit, stop(), duration or a fatal fault.

        A fatal fault (any exception out of a tick) is logged with its
        traceback and recorded in the session metrics; the session is then
        shut down. Returns the SessionResult.
        """
        if self.controller is None or self.scheduler is None:
            raise RuntimeError("SessionRunner.run() called outside its context")
        try:
            self.scheduler.run(
                self.controller.tick,
                on_status=self._handle_status,
                max_ticks=self._max_ticks,
                duration_s=self.run_config.duration_s,
            )
        except Exception as e:
            self._fault = f"{type(e).__name__}: {e}"
            logger.exception("Fatal fault in control loop; aborting session")
        finally:
            self.shutdown()
        return self.result

    def stop(self) -> None:
        """Stop the loop before its next tick. Safe from signal handlers and threads."""
        if self.scheduler is not None:
            self.scheduler.stop()

    def _handle_status(self, status: TickStatus) -> None:
        if self._on_status is not None:
            self._on_status(status)
        if self._operator is not None:
            for command in self._operator(status):
                self.controller.submit(command)

    # ─────────────────────────────────────────────────────────────────
    # Shutdown
    # ─────────────────────────────────────────────────────────────────

    def shutdown(self) -> None:
        """Orderly, idempotent shutdown. See module docstring for the sequence."""
        with self._shutdown_lock:
            if self._shut_down:
                return
            self._shut_down = True

        logger.info("--- Initiating shutdown sequence ---")
        if self.scheduler is not None:
            self.scheduler.stop()

        if self._actuator_open:
            if not self.actuator.set_voltage(0.0):
                logger.warning("Could not command 0 V during shutdown")
            if not self.actuator.output_off():
                logger.warning("Could not switch power supply output off")
            if self.controller is not None:
                self.controller.session.voltage_v = 0.0
        self._release("power supply", self.actuator, self._actuator_open)
        self._release("thermometer", self.source, self._source_open)
        self._actuator_open = self._source_open = False

        if self._trace is not None:
            self._trace.close()

        self.result = self._build_result()
        if self.controller is not None:
            write_session_artifacts(out_path=self.run_config.out_dir, result=self.result)
        logger.info("--- Shutdown complete ---")

    def _release(self, name: str, handle, is_open: bool) -> None:
        if not is_open:
            return
        try:
            handle.close()
        except Exception:
            logger.exception("Error releasing %s", name)

    def _build_result(self) -> SessionResult:
        c = self.controller
        recorder = c.recorder if c is not None else None
        metrics = SessionMetrics(
            session_name=self.run_config.name,
            start_time=self._start_time or datetime.now(timezone.utc).isoformat(),
            finish_time=datetime.now(timezone.utc).isoformat(),
            total_ticks=c.ticks if c is not None else 0,
            degraded_ticks=c.degraded_ticks if c is not None else 0,
            final_state=c.session.state.name if c is not None else "NOT_STARTED",
            fault=self._fault,
            samples_recorded=recorder.total_appended if recorder is not None else 0,
            samples_retained=len(recorder) if recorder is not None else 0,
            truncations=recorder.truncations if recorder is not None else 0,
        )
        return SessionResult(
            metrics=metrics,
            samples=recorder.samples if recorder is not None else [],
            trace_path=str(self._trace.path) if self._trace is not None else None,
        )
