from __future__ import annotations

from annealctl.hardware.guarded import GuardedActuator, GuardedTemperatureSource
from annealctl.hardware.interfaces import Actuator, TemperatureSource
from annealctl.hardware.simulated import (
    SimulatedPowerSupply,
    SimulatedRig,
    SimulatedThermometer,
)
from annealctl.hardware.thermal import ThermalParams, ThermalState, step_thermal

__all__ = [
    "Actuator",
    "TemperatureSource",
    "GuardedActuator",
    "GuardedTemperatureSource",
    "SimulatedPowerSupply",
    "SimulatedRig",
    "SimulatedThermometer",
    "ThermalParams",
    "ThermalState",
    "step_thermal",
]
