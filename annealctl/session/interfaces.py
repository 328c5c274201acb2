from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from annealctl.control.anneal import AnnealMode, AnnealPlan


class ControlState(Enum):
    """
    Controller states.

    ```
    WAITING_FOR_INITIAL_TARGET --SetTarget--> FINDING_TEMPERATURE
    FINDING_TEMPERATURE  <-->  CHECKING_STABILITY  -->  STABLE
    STABLE --drift--> FINDING_TEMPERATURE
    active state --StartAnneal--> ANNEALING --end--> IDLE_AFTER_ANNEAL
    IDLE_AFTER_ANNEAL --SetTarget--> FINDING_TEMPERATURE
    ```
    """
    WAITING_FOR_INITIAL_TARGET = "waiting_for_initial_target"
    FINDING_TEMPERATURE = "finding_temperature"
    CHECKING_STABILITY = "checking_stability"
    STABLE = "stable"
    ANNEALING = "annealing"
    IDLE_AFTER_ANNEAL = "idle_after_anneal"


# States in which the PID regulator drives the actuator
REGULATED_STATES = frozenset({
    ControlState.FINDING_TEMPERATURE,
    ControlState.CHECKING_STABILITY,
    ControlState.STABLE,
})


# Operator commands. Staged on the controller's queue and applied at the
# top of the next tick.

@dataclass(frozen=True, slots=True)
class SetTarget:
    temp_c: float                   # New setpoint (°C, >= 0)


@dataclass(frozen=True, slots=True)
class StartAnneal:
    mode: AnnealMode | str          # TEMPERATURE / VOLTAGE (or "temp" / "volt")
    end_value: float                # °C or V, depending on mode
    step_size_v: float              # Signed voltage step (V, != 0)
    step_period_min: float          # Minutes between steps (> 0)


@dataclass(frozen=True, slots=True)
class RequestExit:
    pass


Command = SetTarget | StartAnneal | RequestExit


@dataclass(frozen=True, slots=True)
class Sample:
    """
    One recorded process observation.

    These samples are appended to the process recorder once per tick and
    written to the trace log.
    """
    elapsed_min: float              # Minutes since session start
    temp_c: float                   # Measured temperature (°C)
    voltage_v: float                # Commanded voltage (V), within [0, v_max]
    target_c: float                 # Active target at capture (°C)


@dataclass(slots=True)
class ControlSession:
    """
    Mutable process state, owned by the controller.

    Only the controller's tick mutates it; operator commands reach it through
    the controller's command queue.
    """
    state: ControlState = ControlState.WAITING_FOR_INITIAL_TARGET
    target_c: float | None = None
    voltage_v: float = 0.0
    integral: float = 0.0
    last_temp_c: float | None = None
    plan: AnnealPlan | None = None
    stability_started_at: float | None = None
    stability_samples: list[float] = field(default_factory=list)
    last_step_at: float | None = None
    last_tick_at: float | None = None
    exit_requested: bool = False
    message: str = ""

    @property
    def anneal_enabled(self) -> bool:
        """Whether the annealing entry point is offered to the operator."""
        return self.state is ControlState.STABLE


@dataclass(frozen=True, slots=True)
class TickStatus:
    """
    Display projection of one tick.

    Not part of the control contract; consumed by operator surfaces and
    scripted operators.
    """
    tick: int                       # Tick counter (1-based)
    elapsed_s: float                # Seconds since session start
    state: ControlState
    temp_c: float | None            # None when the read failed
    voltage_v: float
    target_c: float | None
    degraded: bool                  # Temperature read failed this tick
    anneal_enabled: bool
    exit_requested: bool
    title: str
    status: str


@dataclass(frozen=True, slots=True)
class SessionMetrics:
    """Run-level metadata for a finished session."""
    session_name: str
    start_time: str
    finish_time: str
    total_ticks: int
    degraded_ticks: int
    final_state: str
    fault: str | None
    samples_recorded: int           # Appends over the whole session
    samples_retained: int           # Samples left after truncation
    truncations: int


@dataclass(frozen=True, slots=True)
class SessionResult:
    """
    Complete results from a session.

    Attributes:
        metrics: Run-level metadata.
        samples: Retained trace, oldest first.
        trace_path: Crash-safe CSV trace written during the session.
    """
    metrics: SessionMetrics
    samples: list[Sample]
    trace_path: str | None = None
