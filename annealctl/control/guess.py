from __future__ import annotations

from collections.abc import Sequence

from annealctl.control.pid import clamp_voltage


def initial_voltage_guess(
    table: Sequence[tuple[float, float]],
    target_c: float,
    v_max: float,
) -> float:
    """
    Starting voltage for a new target from a temperature -> voltage table.

    Piecewise-linear interpolation between table points; outside the table
    the nearest end segment is extrapolated. The result is clamped to
    [0, v_max].

    Args:
        table: ((temp_c, volts), ...) with strictly increasing temperatures
        target_c: Target temperature (°C)
        v_max: Actuator ceiling (V)

    Returns:
        Initial voltage (V)
    """
    if len(table) < 2:
        raise ValueError("guess table needs at least two points")

    # Pick the segment containing the target, or the end segment
    for i in range(1, len(table)):
        if target_c <= table[i][0] or i == len(table) - 1:
            (t0, v0), (t1, v1) = table[i - 1], table[i]
            break

    volts = v0 + (target_c - t0) * (v1 - v0) / (t1 - t0)
    return clamp_voltage(volts, v_max)
