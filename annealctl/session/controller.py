"""
Anneal controller: the state machine that sequences a session.

Architecture:
```
    AnnealController.tick()
        |
        +-- drain staged commands (SetTarget / StartAnneal / RequestExit)
        |
        +-- TemperatureSource.read_averaged_temperature()
        |       None -> degraded tick: no record, no command, no transition
        |
        +-- ProcessRecorder.append(Sample)  (once a target exists)
        |
        +-- [FINDING / CHECKING / STABLE]
        |       regulate() -> apply_delta() -> Actuator.set_voltage()
        |
        +-- state handler
        |       FINDING   -> CHECKING when |error| < tolerance
        |       CHECKING  -> STABLE / FINDING via is_stable()
        |       STABLE    -> FINDING on drift
        |       ANNEALING -> evaluate_anneal(): step or finish
        |
        v
    TickStatus (title + status line for the operator surface)
```

The controller owns the ControlSession exclusively. Operator commands may
be submitted from any thread; they are staged on a queue and applied at
the top of the next tick, so a tick never observes a half-applied command.

Time comes from an injectable clock so the state machine can be driven
deterministically in tests.
"""

from __future__ import annotations

import logging
import math
import queue
import time
from typing import Callable

from ..config import ControllerConfig
from ..control.anneal import AnnealMode, AnnealPlan, evaluate_anneal
from ..control.guess import initial_voltage_guess
from ..control.pid import apply_delta, clamp_voltage, regulate
from ..control.stability import is_stable
from ..errors import InvalidCommandError
from ..hardware.interfaces import Actuator, TemperatureSource
from .interfaces import (
    REGULATED_STATES,
    Command,
    ControlSession,
    ControlState,
    RequestExit,
    Sample,
    SetTarget,
    StartAnneal,
    TickStatus,
)
from .recorder import ProcessRecorder

logger = logging.getLogger(__name__)


class AnnealController:
    """
    Finite-state controller for one annealing session.

    Attributes:
        config: Control configuration (gains, ceiling, stability settings).
        session: Mutable process state. Read it between ticks only.
        recorder: Process trace.
        ticks: Number of ticks executed.
        degraded_ticks: Ticks skipped because the temperature read failed.
    """

    def __init__(
        self,
        config: ControllerConfig,
        source: TemperatureSource,
        actuator: Actuator,
        recorder: ProcessRecorder | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the controller.

        Args:
            config: Control configuration, validated on entry
            source: Temperature source (already opened by the caller)
            actuator: Power supply (already opened by the caller)
            recorder: Process recorder; a memory-only recorder sized from
                      config.recorder_capacity if None
            clock: Monotonic time source (seconds)
        """
        self.config = config.validate()
        self.source = source
        self.actuator = actuator
        self.recorder = recorder or ProcessRecorder(config.recorder_capacity)
        self.session = ControlSession()
        self.ticks = 0
        self.degraded_ticks = 0

        self._clock = clock
        self._gains = config.gains
        self._commands: queue.Queue[Command] = queue.Queue()
        self._started_at: float | None = None

        self._handlers: dict[ControlState, Callable[[float, float, float], None]] = {
            ControlState.WAITING_FOR_INITIAL_TARGET: self._on_idle,
            ControlState.FINDING_TEMPERATURE: self._on_finding_temperature,
            ControlState.CHECKING_STABILITY: self._on_checking_stability,
            ControlState.STABLE: self._on_stable,
            ControlState.ANNEALING: self._on_annealing,
            ControlState.IDLE_AFTER_ANNEAL: self._on_idle,
        }
        missing = set(ControlState) - set(self._handlers)
        if missing:
            raise RuntimeError(f"no handler for state(s): {sorted(s.name for s in missing)}")

    # ─────────────────────────────────────────────────────────────────
    # Operator commands
    # ─────────────────────────────────────────────────────────────────

    def submit(self, command: Command) -> None:
        """Stage a command for the next tick. Thread-safe."""
        self._commands.put(command)

    def set_target(self, temp_c: float) -> None:
        self.submit(SetTarget(temp_c))

    def start_anneal(
        self,
        mode: AnnealMode | str,
        end_value: float,
        step_size_v: float,
        step_period_min: float,
    ) -> None:
        self.submit(StartAnneal(mode, end_value, step_size_v, step_period_min))

    def request_exit(self) -> None:
        self.submit(RequestExit())

    # ─────────────────────────────────────────────────────────────────
    # Tick
    # ─────────────────────────────────────────────────────────────────

    def tick(self) -> TickStatus:
        """
        Run one control period.

        Returns:
            TickStatus describing the state after this tick

        Raises:
            Any unexpected exception; the caller must abort the session.
        """
        now = self._clock()
        if self._started_at is None:
            self._started_at = now
        self.ticks += 1

        self._drain_commands(now)
        s = self.session
        if s.exit_requested:
            return self._status(now, s.last_temp_c, degraded=False)

        temp_c = self.source.read_averaged_temperature()
        if temp_c is None or not math.isfinite(temp_c):
            # Hold the last command; the next good read resumes control
            self.degraded_ticks += 1
            logger.warning("Temperature read failed; holding %.4f V", s.voltage_v)
            return self._status(now, None, degraded=True)

        # dt spans back to the previous good read, matching last_temp_c
        if s.last_tick_at is None or now <= s.last_tick_at:
            dt = self.config.tick_period_s
        else:
            dt = now - s.last_tick_at

        if s.target_c is not None:
            self.recorder.append(
                Sample(
                    elapsed_min=(now - self._started_at) / 60.0,
                    temp_c=temp_c,
                    voltage_v=s.voltage_v,
                    target_c=s.target_c,
                )
            )
            error = s.target_c - temp_c

            if s.state in REGULATED_STATES:
                output = regulate(
                    error, temp_c, s.last_temp_c, s.integral, dt, self._gains
                )
                update = apply_delta(s.voltage_v, output, s.integral, self.config.v_max)
                s.integral = update.integral
                self._command(update.voltage)

            self._handlers[s.state](temp_c, error, now)

        s.last_temp_c = temp_c
        s.last_tick_at = now
        return self._status(now, temp_c, degraded=False)

    # ─────────────────────────────────────────────────────────────────
    # State handlers
    # ─────────────────────────────────────────────────────────────────

    def _on_idle(self, temp_c: float, error: float, now: float) -> None:
        # Only operator commands leave WAITING / IDLE_AFTER_ANNEAL
        pass

    def _on_finding_temperature(self, temp_c: float, error: float, now: float) -> None:
        if abs(error) < self.config.tolerance_c:
            s = self.session
            s.stability_started_at = now
            s.stability_samples = [temp_c]
            self._enter(ControlState.CHECKING_STABILITY, f"within ±{self.config.tolerance_c}°C")

    def _on_checking_stability(self, temp_c: float, error: float, now: float) -> None:
        s = self.session
        s.stability_samples.append(temp_c)

        if abs(error) >= self.config.tolerance_c:
            self._enter(ControlState.FINDING_TEMPERATURE, "left tolerance band")
        elif now - s.stability_started_at >= self.config.stability_duration_s:
            if is_stable(
                s.stability_samples,
                self.config.stability_stdev_c,
                self.config.stability_min_samples,
            ):
                self._enter(ControlState.STABLE, f"{len(s.stability_samples)} samples settled")
                s.message = f"STABLE at {s.target_c:.2f}°C - ready for annealing"
            else:
                self._enter(ControlState.FINDING_TEMPERATURE, "window not settled")

    def _on_stable(self, temp_c: float, error: float, now: float) -> None:
        if abs(error) >= self.config.tolerance_c:
            self._enter(ControlState.FINDING_TEMPERATURE, "drifted out of tolerance band")

    def _on_annealing(self, temp_c: float, error: float, now: float) -> None:
        s = self.session
        s.voltage_v = round(s.voltage_v, 4)
        decision = evaluate_anneal(
            temp_c,
            s.voltage_v,
            s.plan,
            now - s.last_step_at,
            self.config.anneal_temp_tolerance_c,
            self.config.v_max,
        )

        if decision.complete:
            self._command(0.0)
            self._enter(ControlState.IDLE_AFTER_ANNEAL, "end condition reached")
            s.message = "Annealing complete. Voltage set to 0. Waiting for new target."
        elif decision.new_voltage is not None:
            self._command(clamp_voltage(decision.new_voltage, self.config.v_max))
            s.last_step_at = now
            logger.info("Anneal step -> %.4f V (T=%.2f°C)", s.voltage_v, temp_c)

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    def _command(self, volts: float) -> None:
        """Command the actuator; the session tracks the intended voltage."""
        if not self.actuator.set_voltage(volts):
            logger.warning("Voltage command %.4f V not acknowledged", volts)
        self.session.voltage_v = volts

    def _enter(self, state: ControlState, reason: str) -> None:
        s = self.session
        if state is not s.state:
            logger.info("%s -> %s (%s)", s.state.name, state.name, reason)
        s.state = state

    def _drain_commands(self, now: float) -> None:
        while True:
            try:
                command = self._commands.get_nowait()
            except queue.Empty:
                return
            try:
                self._apply(command, now)
            except InvalidCommandError as e:
                logger.warning("Rejected %s: %s", type(command).__name__, e)
                self.session.message = f"Rejected: {e}"

    def _apply(self, command: Command, now: float) -> None:
        s = self.session

        if isinstance(command, RequestExit):
            s.exit_requested = True
            s.message = "Exit requested"
            logger.info("Exit requested")

        elif isinstance(command, SetTarget):
            try:
                target_c = float(command.temp_c)
            except (TypeError, ValueError) as e:
                raise InvalidCommandError(f"target must be a number: {e}") from e
            if not math.isfinite(target_c) or target_c < 0:
                raise InvalidCommandError(f"invalid target temperature: {command.temp_c!r}")

            restarting = s.state in (
                ControlState.WAITING_FOR_INITIAL_TARGET,
                ControlState.IDLE_AFTER_ANNEAL,
            )
            s.target_c = target_c
            s.integral = 0.0
            s.plan = None
            s.stability_started_at = None
            s.stability_samples = []
            if restarting:
                guess = initial_voltage_guess(
                    self.config.guess_table, target_c, self.config.v_max
                )
                self._command(guess)
                s.message = f"Target set: {target_c:.2f}°C - starting control at {guess:.4f} V"
            else:
                s.message = f"New target set: {target_c:.2f}°C"
            logger.info(s.message)
            self._enter(ControlState.FINDING_TEMPERATURE, "new target")

        elif isinstance(command, StartAnneal):
            plan = AnnealPlan.from_request(
                mode=command.mode,
                end_value=command.end_value,
                step_size_v=command.step_size_v,
                step_period_min=command.step_period_min,
            )
            if s.target_c is None:
                raise InvalidCommandError("set a target temperature before annealing")
            if self.config.require_stable_for_anneal and s.state not in (
                ControlState.STABLE,
                ControlState.ANNEALING,
            ):
                raise InvalidCommandError(
                    f"annealing requires a stable process (state: {s.state.name})"
                )
            s.plan = plan
            s.last_step_at = now
            s.message = f"Annealing to {plan.describe()}"
            logger.info(s.message)
            self._enter(ControlState.ANNEALING, "anneal started")

        else:
            raise InvalidCommandError(f"unknown command: {command!r}")

    def _status(self, now: float, temp_c: float | None, *, degraded: bool) -> TickStatus:
        s = self.session
        title, status = describe(s, temp_c, degraded)
        return TickStatus(
            tick=self.ticks,
            elapsed_s=now - self._started_at,
            state=s.state,
            temp_c=temp_c,
            voltage_v=s.voltage_v,
            target_c=s.target_c,
            degraded=degraded,
            anneal_enabled=s.anneal_enabled,
            exit_requested=s.exit_requested,
            title=title,
            status=status,
        )


def describe(session: ControlSession, temp_c: float | None, degraded: bool) -> tuple[str, str]:
    """Human-readable (title, status line) for the current state."""
    s = session
    if s.exit_requested:
        return "Shutting down", s.message or "Exit requested"
    if degraded or temp_c is None:
        return "Sensor fault", "Error: cannot read temperature"

    state = s.state
    if state is ControlState.WAITING_FOR_INITIAL_TARGET:
        return (
            f"Waiting for target temperature... (Current: {temp_c:.2f}°C)",
            f"Current temperature: {temp_c:.2f}°C - please set target",
        )
    if state is ControlState.FINDING_TEMPERATURE:
        return (
            f"PID control to target: {s.target_c:.2f}°C (Current: {temp_c:.2f}°C)",
            f"Seeking target: {s.target_c:.2f}°C (Current: {temp_c:.2f}°C)",
        )
    if state is ControlState.CHECKING_STABILITY:
        return (
            f"Checking stability at {s.target_c:.2f}°C...",
            f"Checking stability: {temp_c:.2f}°C ({len(s.stability_samples)} samples)",
        )
    if state is ControlState.STABLE:
        return (
            f"Stable at {s.target_c:.2f}°C (Current: {temp_c:.2f}°C)",
            f"STABLE at {s.target_c:.2f}°C - ready for commands",
        )
    if state is ControlState.ANNEALING:
        plan = s.plan
        return (
            f"Annealing to {plan.mode.name} {plan.end_value:.2f}... "
            f"(Current: {temp_c:.2f}°C, {s.voltage_v:.4f}V)",
            f"Annealing: {temp_c:.2f}°C, {s.voltage_v:.4f}V -> "
            f"{plan.mode.name} {plan.end_value:.2f}",
        )
    return (
        "Idle: annealing complete. Voltage = 0.",
        "Annealing complete. Voltage set to 0. Set a new target to resume.",
    )
