from __future__ import annotations

from typing import Callable

from annealctl.control.anneal import AnnealMode
from annealctl.session.interfaces import (
    Command,
    ControlState,
    RequestExit,
    SetTarget,
    StartAnneal,
    TickStatus,
)

# Type alias for scripted operators: TickStatus -> commands to stage
Operator = Callable[[TickStatus], list[Command]]


def set_target_once(target_c: float) -> Operator:
    """
    Set a target on the first tick, then stay silent.

    Args:
        target_c: Target temperature (°C)

    Returns:
        Operator function: status -> commands
    """
    sent = False

    def operator(status: TickStatus) -> list[Command]:
        nonlocal sent
        if sent:
            return []
        sent = True
        return [SetTarget(target_c)]
    return operator


def exit_when_idle() -> Operator:
    """Request exit once the anneal has finished."""
    def operator(status: TickStatus) -> list[Command]:
        if status.state is ControlState.IDLE_AFTER_ANNEAL and not status.exit_requested:
            return [RequestExit()]
        return []
    return operator


def hold_then_anneal(
    target_c: float,
    mode: AnnealMode | str,
    end_value: float,
    step_size_v: float,
    step_period_min: float,
    hold_s: float = 0.0,
    exit_when_done: bool = True,
) -> Operator:
    """
    Unattended anneal: seek the target, hold while stable, then ramp.

    The anneal starts once the controller has reported STABLE continuously
    for `hold_s` seconds. A drift out of STABLE restarts the hold.

    Args:
        target_c: Target temperature to stabilize at (°C)
        mode: Anneal end mode
        end_value: Anneal end value (°C or V)
        step_size_v: Signed voltage step (V)
        step_period_min: Minutes between steps
        hold_s: Time to stay at the stable setpoint before ramping (s)
        exit_when_done: Request exit when the anneal completes

    Returns:
        Operator function: status -> commands
    """
    target_sent = False
    anneal_sent = False
    stable_since: float | None = None
    done = exit_when_idle()

    def operator(status: TickStatus) -> list[Command]:
        nonlocal target_sent, anneal_sent, stable_since
        if not target_sent:
            target_sent = True
            return [SetTarget(target_c)]

        if anneal_sent:
            if status.state in (ControlState.ANNEALING, ControlState.IDLE_AFTER_ANNEAL):
                return done(status) if exit_when_done else []
            # Rejected: the process drifted before the command was applied
            anneal_sent = False

        if status.state is not ControlState.STABLE:
            stable_since = None
            return []
        if stable_since is None:
            stable_since = status.elapsed_s
        if status.elapsed_s - stable_since >= hold_s:
            anneal_sent = True
            return [StartAnneal(mode, end_value, step_size_v, step_period_min)]
        return []
    return operator
