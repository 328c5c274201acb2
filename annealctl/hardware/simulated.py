"""
Simulated annealing rig.

The simulated rig replaces the power supply and thermometer with a
first-order thermal plant so that sessions can run unattended (CLI
``--simulate``, demos, system tests). Both simulated instruments share one
plant:

```
    SimulatedPowerSupply --volts--> SimulatedRig (ThermalState)
                                         |
    SimulatedThermometer <---temp_c------+  (+ seeded Gaussian noise)
```

The plant advances on every temperature read, either by a fixed ``dt_s``
(deterministic tests) or by the wall time elapsed since the previous read.
Read and command faults can be injected to exercise the degraded paths.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Callable

from .thermal import ThermalParams, ThermalState, step_thermal

logger = logging.getLogger(__name__)


class SimulatedRig:
    """
    Shared plant state for the simulated instruments.

    Attributes:
        params: Thermal model parameters.
        state: Current thermal state (true temperature, no noise).
        volts: Voltage currently applied to the heater.
        output_enabled: Whether the supply output stage is on.
    """

    def __init__(
        self,
        params: ThermalParams | None = None,
        *,
        initial_temp_c: float | None = None,
        noise_c: float = 0.01,
        seed: int = 0,
        dt_s: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the simulated rig.

        Args:
            params: Thermal parameters (defaults if None)
            initial_temp_c: Starting temperature (defaults to ambient)
            noise_c: Standard deviation of sensor noise (°C)
            seed: Random seed for reproducible noise
            dt_s: Fixed plant step per read; None to follow the clock
            clock: Time source used when dt_s is None
        """
        self.params = params or ThermalParams()
        start = self.params.ambient_c if initial_temp_c is None else initial_temp_c
        self.state = ThermalState(temp_c=start)
        self.volts = 0.0
        self.output_enabled = False

        self._noise_c = noise_c
        self._rng = random.Random(seed)
        self._dt_s = dt_s
        self._clock = clock
        self._last_advance: float | None = None

        self._read_faults = 0
        self._command_faults = 0

    # ─────────────────────────────────────────────────────────────────
    # Fault injection
    # ─────────────────────────────────────────────────────────────────

    def fail_next_reads(self, count: int = 1) -> None:
        """Make the next `count` temperature reads fail."""
        self._read_faults += count

    def fail_next_commands(self, count: int = 1) -> None:
        """Make the next `count` voltage commands fail (not applied)."""
        self._command_faults += count

    # ─────────────────────────────────────────────────────────────────
    # Plant evolution
    # ─────────────────────────────────────────────────────────────────

    def advance(self) -> None:
        """Step the plant to the present."""
        if self._dt_s is not None:
            dt_s = self._dt_s
        else:
            now = self._clock()
            dt_s = 0.0 if self._last_advance is None else now - self._last_advance
            self._last_advance = now
        if dt_s <= 0:
            return

        applied = self.volts if self.output_enabled else 0.0
        self.state = step_thermal(self.state, dt_s=dt_s, volts=applied, p=self.params)

    def measure(self) -> float | None:
        self.advance()
        if self._read_faults > 0:
            self._read_faults -= 1
            return None
        return self.state.temp_c + self._rng.gauss(0.0, self._noise_c)

    def command(self, volts: float) -> bool:
        if self._command_faults > 0:
            self._command_faults -= 1
            return False
        self.volts = volts
        return True


class SimulatedThermometer:
    """TemperatureSource backed by a SimulatedRig."""

    def __init__(self, rig: SimulatedRig):
        self.rig = rig
        self.is_open = False

    def open(self) -> None:
        self.is_open = True
        logger.info("Simulated thermometer opened (T=%.2f°C)", self.rig.state.temp_c)

    def read_averaged_temperature(self) -> float | None:
        if not self.is_open:
            return None
        return self.rig.measure()

    def close(self) -> None:
        self.is_open = False


class SimulatedPowerSupply:
    """Actuator backed by a SimulatedRig."""

    def __init__(self, rig: SimulatedRig):
        self.rig = rig
        self.is_open = False
        self.commands: list[float] = []

    def open(self) -> None:
        self.is_open = True
        self.rig.output_enabled = True
        logger.info("Simulated power supply opened, output on")

    def set_voltage(self, volts: float) -> bool:
        if not self.is_open:
            return False
        self.commands.append(volts)
        return self.rig.command(volts)

    def output_off(self) -> bool:
        self.rig.output_enabled = False
        return True

    def close(self) -> None:
        self.is_open = False
