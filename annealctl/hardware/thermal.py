from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ThermalParams:
    """
    Parameters for the rig's thermal RC model.

    Heat flows from the resistive heater to ambient through a first-order
    RC network.
    """
    ambient_c: float = 22.0        # Ambient temperature (°C)
    r_th_c_per_w: float = 12.0     # Thermal resistance to ambient (°C/W)
    c_th_j_per_c: float = 5.0      # Thermal capacitance (J/°C)
    heater_ohms: float = 0.5       # Heater element resistance (Ω)


@dataclass(frozen=False, slots=True)
class ThermalState:
    """
    State of the thermal system.

    This is mutable to allow efficient state updates during simulation.
    """
    temp_c: float                  # Current temperature (°C)


def heater_power_w(volts: float, p: ThermalParams) -> float:
    """Joule heating of the element at the given voltage."""
    volts = max(0.0, volts)
    return volts * volts / p.heater_ohms


def step_thermal(
    state: ThermalState,
    *,
    dt_s: float,
    volts: float,
    p: ThermalParams,
) -> ThermalState:
    """
    Step the thermal model forward by dt_s seconds using Euler integration.

    Physics:
    - Power input: P_in = V^2 / R_heater
    - First-order RC thermal model to ambient:
      dT/dt = (P_in * R_th - (T - T_ambient)) / (R_th * C_th)

    Args:
        state: Current thermal state
        dt_s: Time step in seconds
        volts: Heater voltage (V)
        p: Thermal parameters

    Returns:
        New thermal state (does not mutate input)
    """
    p_in = heater_power_w(volts, p)

    temp_delta_from_ambient = state.temp_c - p.ambient_c
    numerator = p_in * p.r_th_c_per_w - temp_delta_from_ambient
    denominator = p.r_th_c_per_w * p.c_th_j_per_c

    dt_dt = numerator / denominator

    # Euler integration: sufficient while τ = R*C (~60 s) >> dt_s (~0.5 s)
    temp_next = state.temp_c + dt_s * dt_dt

    return ThermalState(temp_c=temp_next)


def steady_state_temp(volts: float, p: ThermalParams) -> float:
    """Temperature the plant settles to at a constant voltage."""
    return p.ambient_c + heater_power_w(volts, p) * p.r_th_c_per_w
