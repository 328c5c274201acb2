"""
Per-call timeouts for hardware adapters.

A stalled driver must not block the control loop indefinitely. The guarded
wrappers run each read/command on a dedicated worker thread and wait at
most ``timeout_s`` for it. A call that times out or raises is converted to
the protocol's fault value (no reading / failed command) and logged.

Calls never queue behind a stalled one. While a timed out call is still
running in the driver, new calls are refused with the fault value instead
of being submitted, so a recovering driver does not replay stale commands.
Safe-state commands (0 V, output off) first wait up to ``timeout_s`` for
the stalled call to finish, then go out on their own.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from concurrent.futures import wait
from typing import Callable, TypeVar

from .interfaces import Actuator, TemperatureSource

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _CallGuard:
    def __init__(self, name: str, timeout_s: float):
        if not timeout_s > 0:
            raise ValueError("timeout_s must be > 0")
        self.name = name
        self.timeout_s = timeout_s
        self._executor: ThreadPoolExecutor | None = None
        self._pending: Future | None = None

    def call(self, fn: Callable[[], T], fault: T, *, wait_if_busy: bool = False) -> T:
        pending = self._pending
        if pending is not None and not pending.done():
            if wait_if_busy:
                wait([pending], timeout=self.timeout_s)
            if not pending.done():
                logger.warning("%s still busy with a stalled call; call dropped", self.name)
                return fault

        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix=f"annealctl-{self.name}"
            )
        future = self._executor.submit(fn)
        self._pending = future
        try:
            return future.result(timeout=self.timeout_s)
        except FutureTimeout:
            future.cancel()
            logger.warning("%s call timed out after %.2fs", self.name, self.timeout_s)
            return fault
        except Exception as e:
            logger.warning("%s call failed: %s", self.name, e)
            return fault

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
            self._pending = None


class GuardedTemperatureSource:
    """TemperatureSource wrapper with a per-read timeout."""

    def __init__(self, inner: TemperatureSource, timeout_s: float):
        self.inner = inner
        self._guard = _CallGuard("thermometer", timeout_s)

    def open(self) -> None:
        self.inner.open()

    def read_averaged_temperature(self) -> float | None:
        temp_c = self._guard.call(self.inner.read_averaged_temperature, None)
        if temp_c is None or not math.isfinite(temp_c):
            return None
        return temp_c

    def close(self) -> None:
        try:
            self.inner.close()
        finally:
            self._guard.shutdown()


class GuardedActuator:
    """
    Actuator wrapper with a per-command timeout.

    set_voltage(0.0) and output_off() wait for a stalled command to clear
    before giving up; other commands are dropped while one is stalled.
    """

    def __init__(self, inner: Actuator, timeout_s: float):
        self.inner = inner
        self._guard = _CallGuard("power-supply", timeout_s)

    def open(self) -> None:
        self.inner.open()

    def set_voltage(self, volts: float) -> bool:
        return bool(self._guard.call(
            lambda: self.inner.set_voltage(volts), False, wait_if_busy=volts == 0.0
        ))

    def output_off(self) -> bool:
        return bool(self._guard.call(self.inner.output_off, False, wait_if_busy=True))

    def close(self) -> None:
        try:
            self.inner.close()
        finally:
            self._guard.shutdown()
