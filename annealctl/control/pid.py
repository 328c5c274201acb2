from __future__ import annotations

from annealctl.control.interfaces import PIDGains, PIDOutput, VoltageUpdate


def regulate(
    error: float,
    current_temp: float,
    last_temp: float | None,
    integral: float,
    dt: float,
    gains: PIDGains,
) -> PIDOutput:
    """
    Incremental PID law for the heater voltage.

    Control law:
        P = kp * e
        I = ki * (integral + e*dt)
        D = -kd * (T - T_last) / dt
        Δv = P + I + D

    Where e = target - T. The derivative acts on the measurement, not the
    error, so a setpoint change does not kick the output; a rising
    temperature opposes further voltage increase.

    This is a pure function: the returned integral is only a trial value.
    Commit it with apply_delta().

    Args:
        error: Tracking error, target minus current temperature (°C)
        current_temp: Current temperature (°C)
        last_temp: Previous temperature (°C), None on the first sample
        integral: Committed integral accumulator (°C·s)
        dt: Measured time since the previous tick (s)
        gains: Regulator gains

    Returns:
        PIDOutput with the voltage delta and the trial integral

    Raises:
        ValueError: If dt is not positive
    """
    if not dt > 0:
        raise ValueError(f"dt must be > 0, got {dt}")

    # First sample: no derivative
    if last_temp is None:
        last_temp = current_temp

    p_term = gains.kp * error

    trial_integral = integral + error * dt
    i_term = gains.ki * trial_integral

    d_term = -gains.kd * (current_temp - last_temp) / dt

    return PIDOutput(
        delta=p_term + i_term + d_term,
        integral=trial_integral,
        p_term=p_term,
        i_term=i_term,
        d_term=d_term,
    )


def clamp_voltage(voltage: float, v_max: float) -> float:
    """Clamp a voltage to [0, v_max]."""
    return max(0.0, min(v_max, voltage))


def apply_delta(
    voltage: float,
    output: PIDOutput,
    committed_integral: float,
    v_max: float,
) -> VoltageUpdate:
    """
    Apply a regulator delta with saturation and anti-windup.

    The trial integral is kept only when the unclamped voltage lies strictly
    inside (0, v_max); while the actuator is saturated the accumulator keeps
    its previous value.
    """
    unclamped = voltage + output.delta
    saturated = not (0.0 < unclamped < v_max)
    return VoltageUpdate(
        voltage=clamp_voltage(unclamped, v_max),
        integral=committed_integral if saturated else output.integral,
        saturated=saturated,
    )
