from __future__ import annotations

from typing import Protocol


class TemperatureSource(Protocol):
    """
    Protocol for temperature sources.

    A source returns one averaged reading per request. Acquisition faults
    are reported as None, never raised.
    """

    def open(self) -> None:
        """Acquire the underlying handle."""
        ...

    def read_averaged_temperature(self) -> float | None:
        """
        Read one averaged temperature.

        Returns:
            Temperature (°C), or None if the acquisition failed
        """
        ...

    def close(self) -> None:
        """Release the underlying handle. Safe to call more than once."""
        ...


class Actuator(Protocol):
    """
    Protocol for the heater power supply.

    Commands are fire-and-forget. The caller always passes a voltage already
    clamped to [0, v_max].
    """

    def open(self) -> None:
        """Acquire the handle and enable the output."""
        ...

    def set_voltage(self, volts: float) -> bool:
        """
        Command a voltage setpoint.

        Returns:
            True if the command was sent, False on a transport fault
        """
        ...

    def output_off(self) -> bool:
        """Disable the output stage."""
        ...

    def close(self) -> None:
        """Release the handle. Safe to call more than once."""
        ...
