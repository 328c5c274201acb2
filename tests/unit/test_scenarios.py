from __future__ import annotations

from annealctl.scenarios import exit_when_idle, hold_then_anneal, set_target_once
from annealctl.session.interfaces import (
    ControlState,
    RequestExit,
    SetTarget,
    StartAnneal,
    TickStatus,
)


def _status(state: ControlState, elapsed_s: float = 0.0) -> TickStatus:
    return TickStatus(
        tick=1,
        elapsed_s=elapsed_s,
        state=state,
        temp_c=50.0,
        voltage_v=1.0,
        target_c=50.0,
        degraded=False,
        anneal_enabled=state is ControlState.STABLE,
        exit_requested=False,
        title="",
        status="",
    )


def test_set_target_once():
    op = set_target_once(45.0)
    assert op(_status(ControlState.WAITING_FOR_INITIAL_TARGET)) == [SetTarget(45.0)]
    assert op(_status(ControlState.FINDING_TEMPERATURE)) == []


def test_exit_when_idle():
    op = exit_when_idle()
    assert op(_status(ControlState.ANNEALING)) == []
    assert op(_status(ControlState.IDLE_AFTER_ANNEAL)) == [RequestExit()]


def test_hold_then_anneal_sequence():
    op = hold_then_anneal(50.0, "volt", 1.0, -0.005, 40.0, hold_s=10.0)
    W, F, S = (
        ControlState.WAITING_FOR_INITIAL_TARGET,
        ControlState.FINDING_TEMPERATURE,
        ControlState.STABLE,
    )

    assert op(_status(W, 0.0)) == [SetTarget(50.0)]
    assert op(_status(F, 0.5)) == []
    # Hold starts at the first STABLE status
    assert op(_status(S, 20.0)) == []
    assert op(_status(S, 29.5)) == []
    # Drift restarts the hold
    assert op(_status(F, 30.0)) == []
    assert op(_status(S, 31.0)) == []
    assert op(_status(S, 41.0)) == [StartAnneal("volt", 1.0, -0.005, 40.0)]

    assert op(_status(ControlState.ANNEALING, 41.5)) == []
    assert op(_status(ControlState.IDLE_AFTER_ANNEAL, 90.0)) == [RequestExit()]


def test_hold_then_anneal_retries_rejected_start():
    op = hold_then_anneal(50.0, "temp", 40.0, -0.005, 1.0)
    op(_status(ControlState.WAITING_FOR_INITIAL_TARGET))
    assert op(_status(ControlState.STABLE, 10.0)) != []
    # The command was rejected: the controller drifted before applying it
    assert op(_status(ControlState.FINDING_TEMPERATURE, 10.5)) == []
    assert op(_status(ControlState.STABLE, 11.0)) == [StartAnneal("temp", 40.0, -0.005, 1.0)]


def test_hold_then_anneal_without_exit():
    op = hold_then_anneal(50.0, "volt", 1.0, -0.005, 1.0, exit_when_done=False)
    op(_status(ControlState.WAITING_FOR_INITIAL_TARGET))
    op(_status(ControlState.STABLE))
    assert op(_status(ControlState.IDLE_AFTER_ANNEAL)) == []
