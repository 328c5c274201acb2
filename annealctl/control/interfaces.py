from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class PIDGains:
    """
    Gains for the voltage regulator.

    Fixed for the lifetime of a session.
    """
    kp: float                       # Proportional gain (V/°C)
    ki: float                       # Integral gain (V/(°C·s))
    kd: float                       # Derivative gain (V·s/°C)


@dataclass(frozen=True, slots=True)
class PIDOutput:
    """
    Result of one regulator evaluation.

    The regulator never commits its integral; the caller decides whether the
    trial value is kept (anti-windup).
    """
    delta: float                    # Voltage change to apply (V)
    integral: float                 # Trial integral accumulator (°C·s)
    p_term: float = 0.0
    i_term: float = 0.0
    d_term: float = 0.0


@dataclass(frozen=True, slots=True)
class VoltageUpdate:
    """
    Voltage command after saturation handling.
    """
    voltage: float                  # Clamped voltage to command (V)
    integral: float                 # Integral to keep for the next tick
    saturated: bool                 # Whether the unclamped output was clamped
