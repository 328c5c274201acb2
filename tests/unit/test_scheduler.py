from __future__ import annotations

import pytest

from annealctl.session.interfaces import ControlState, TickStatus
from annealctl.session.scheduler import PeriodicScheduler, VirtualClock


def _status(tick: int, exit_requested: bool = False) -> TickStatus:
    return TickStatus(
        tick=tick,
        elapsed_s=0.0,
        state=ControlState.WAITING_FOR_INITIAL_TARGET,
        temp_c=None,
        voltage_v=0.0,
        target_c=None,
        degraded=False,
        anneal_enabled=False,
        exit_requested=exit_requested,
        title="",
        status="",
    )


def test_virtual_clock():
    clock = VirtualClock(start=10.0)
    clock.sleep(0.5)
    clock.advance(-3.0)
    assert clock() == 10.5


def test_ticks_are_spaced_by_period():
    clock = VirtualClock()
    sched = PeriodicScheduler(0.5, clock=clock, sleep=clock.sleep)
    times = []

    def tick():
        times.append(clock())
        return _status(len(times))

    last = sched.run(tick, max_ticks=5)
    assert times == [0.0, 0.5, 1.0, 1.5, 2.0]
    assert last.tick == 5
    assert sched.ticks == 5
    assert sched.overruns == 0


def test_overrun_skips_missed_deadlines():
    """A slow tick delays the next one; no catch-up burst follows."""
    clock = VirtualClock()
    sched = PeriodicScheduler(0.5, clock=clock, sleep=clock.sleep)
    times = []

    def tick():
        times.append(clock())
        if len(times) == 2:
            clock.advance(1.2)
        return _status(len(times))

    sched.run(tick, max_ticks=4)
    assert times == pytest.approx([0.0, 0.5, 2.0, 2.5])
    assert sched.overruns == 1
    gaps = [b - a for a, b in zip(times, times[1:])]
    assert min(gaps) >= 0.5 - 1e-9


def test_duration_limit():
    clock = VirtualClock()
    sched = PeriodicScheduler(0.5, clock=clock, sleep=clock.sleep)
    sched.run(lambda: _status(0), duration_s=10.0)
    assert sched.ticks == 20


def test_exit_requested_ends_loop():
    clock = VirtualClock()
    sched = PeriodicScheduler(0.5, clock=clock, sleep=clock.sleep)
    seen = []

    def tick():
        n = len(seen) + 1
        return _status(n, exit_requested=(n == 3))

    last = sched.run(tick, on_status=seen.append, max_ticks=100)
    assert last.exit_requested
    assert len(seen) == 3


def test_stop_before_next_tick():
    clock = VirtualClock()
    sched = PeriodicScheduler(0.5, clock=clock, sleep=clock.sleep)

    def tick():
        sched.stop()
        return _status(1)

    sched.run(tick, max_ticks=100)
    assert sched.ticks == 1
    assert sched.stopped
    # A stopped scheduler does not tick again
    assert sched.run(tick) is None


def test_tick_exception_propagates():
    clock = VirtualClock()
    sched = PeriodicScheduler(0.5, clock=clock, sleep=clock.sleep)

    def tick():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        sched.run(tick, max_ticks=3)


def test_rejects_non_positive_period():
    with pytest.raises(ValueError):
        PeriodicScheduler(0.0)
