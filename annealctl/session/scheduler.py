from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from .interfaces import TickStatus

logger = logging.getLogger(__name__)


class VirtualClock:
    """
    Simulated time source.

    Calling the clock returns the current virtual time; sleep() advances it
    instantly. Pass the same instance as `clock` and `sleep` to the
    scheduler (and as the clock of a SimulatedRig) to run a session faster
    than real time.
    """

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += max(0.0, seconds)

    def sleep(self, seconds: float) -> None:
        self.advance(seconds)


class PeriodicScheduler:
    """
    Fixed-rate, single-threaded tick scheduler.

    Ticks run on the calling thread, one at a time. Deadlines are spaced
    `period_s` apart from the first tick; a tick that overruns delays the
    next one and any deadlines it swallowed are skipped, so two ticks never
    run back to back to "catch up" and never overlap.

    The loop ends when:
    - stop() is called (from any thread), observed before the next tick
    - a tick reports exit_requested
    - max_ticks or duration_s is reached
    - a tick raises (the exception propagates to the caller)
    """

    def __init__(
        self,
        period_s: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] | None = None,
    ):
        if not period_s > 0:
            raise ValueError("period_s must be > 0")
        self.period_s = period_s
        self.ticks = 0
        self.overruns = 0
        self._clock = clock
        self._stop = threading.Event()
        self._sleep = sleep or self._interruptible_sleep

    def _interruptible_sleep(self, seconds: float) -> None:
        self._stop.wait(seconds)

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        """Request the loop to end before its next tick. Thread-safe."""
        self._stop.set()

    def run(
        self,
        tick: Callable[[], TickStatus],
        *,
        on_status: Callable[[TickStatus], None] | None = None,
        max_ticks: int | None = None,
        duration_s: float | None = None,
    ) -> TickStatus | None:
        """
        Run ticks until stopped.

        Args:
            tick: Tick function (the controller's tick)
            on_status: Called with every TickStatus after the tick
            max_ticks: Stop after this many ticks
            duration_s: Stop once this much time has passed since the first tick

        Returns:
            The last TickStatus, or None if no tick ran
        """
        start = self._clock()
        next_deadline = start
        last: TickStatus | None = None

        while not self._stop.is_set():
            if max_ticks is not None and self.ticks >= max_ticks:
                break
            if duration_s is not None and self._clock() - start >= duration_s:
                break

            last = tick()
            self.ticks += 1
            if on_status is not None:
                on_status(last)
            if last.exit_requested:
                break

            next_deadline += self.period_s
            now = self._clock()
            if now > next_deadline:
                missed = int((now - next_deadline) // self.period_s) + 1
                self.overruns += 1
                logger.debug("Tick overran by %.3fs, skipping %d deadline(s)",
                             now - next_deadline, missed)
                next_deadline += missed * self.period_s
            self._sleep(next_deadline - now)

        return last
