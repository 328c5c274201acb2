from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

from annealctl.errors import InvalidCommandError

# Voltages are compared and stepped at this precision so that repeated
# steps cannot leave floating-point residue that skips the end condition.
VOLTAGE_DECIMALS = 4

# Overshoot band for the temperature end condition (°C)
DEFAULT_TEMP_TOLERANCE_C = 0.1


class AnnealMode(Enum):
    """What the ramp end value refers to."""
    TEMPERATURE = "temp"
    VOLTAGE = "volt"

    @classmethod
    def parse(cls, text: str) -> "AnnealMode":
        key = text.strip().lower()
        for mode in cls:
            if key in (mode.value, mode.name.lower()):
                return mode
        raise InvalidCommandError(f"unknown anneal mode: {text!r}")


@dataclass(frozen=True, slots=True)
class AnnealPlan:
    """
    A programmed voltage ramp.

    The sign of step_size_v is the ramp direction. Immutable once a run
    starts; a new start-anneal command replaces it wholesale.
    """
    mode: AnnealMode
    end_value: float                # °C (TEMPERATURE) or V (VOLTAGE)
    step_size_v: float              # Signed voltage step (V)
    step_period_s: float            # Time between steps (s)

    @staticmethod
    def from_request(
        *,
        mode: AnnealMode | str,
        end_value: float,
        step_size_v: float,
        step_period_min: float,
    ) -> "AnnealPlan":
        """
        Validate operator input and build a plan.

        Raises:
            InvalidCommandError: On an unknown mode, a non-finite field, a
                zero step or a non-positive period.
        """
        if isinstance(mode, str):
            mode = AnnealMode.parse(mode)
        try:
            end_value = float(end_value)
            step_size_v = float(step_size_v)
            step_period_min = float(step_period_min)
        except (TypeError, ValueError) as e:
            raise InvalidCommandError(f"anneal fields must be numbers: {e}") from e

        if not all(math.isfinite(x) for x in (end_value, step_size_v, step_period_min)):
            raise InvalidCommandError("anneal fields must be finite numbers")
        if step_size_v == 0:
            raise InvalidCommandError("anneal step size must be non-zero")
        if step_period_min <= 0:
            raise InvalidCommandError("anneal step period must be > 0")

        return AnnealPlan(
            mode=mode,
            end_value=end_value,
            step_size_v=step_size_v,
            step_period_s=step_period_min * 60.0,
        )

    def describe(self) -> str:
        unit = "°C" if self.mode is AnnealMode.TEMPERATURE else "V"
        return (
            f"{self.mode.name} {self.end_value:.3f}{unit} "
            f"({self.step_size_v:+.4f} V / {self.step_period_s / 60.0:.1f} min)"
        )


@dataclass(frozen=True, slots=True)
class AnnealDecision:
    """
    Outcome of one anneal evaluation.

    A completing decision never carries a step.
    """
    complete: bool
    new_voltage: float | None = None  # Voltage to command this tick, if stepping


def anneal_complete(
    temp_c: float,
    voltage_v: float,
    plan: AnnealPlan,
    temp_tolerance_c: float = DEFAULT_TEMP_TOLERANCE_C,
) -> bool:
    """
    Terminal condition of a ramp.

    Temperature mode: a falling ramp ends below end - tolerance, a rising
    ramp above end + tolerance. Voltage mode: the (rounded) voltage has
    passed the (rounded) end value in the ramp direction.
    """
    falling = plan.step_size_v < 0
    if plan.mode is AnnealMode.TEMPERATURE:
        if falling:
            return temp_c < plan.end_value - temp_tolerance_c
        return temp_c > plan.end_value + temp_tolerance_c

    voltage = round(voltage_v, VOLTAGE_DECIMALS)
    end = round(plan.end_value, VOLTAGE_DECIMALS)
    if falling:
        return voltage < end
    return voltage > end


def evaluate_anneal(
    temp_c: float,
    voltage_v: float,
    plan: AnnealPlan,
    since_last_step_s: float,
    temp_tolerance_c: float = DEFAULT_TEMP_TOLERANCE_C,
    v_max: float | None = None,
) -> AnnealDecision:
    """
    Decide what the ramp does this tick.

    The end condition is checked first; only a ramp that is not complete
    may step, and only once step_period_s has elapsed since the last step.
    With a ceiling given, steps are clamped to [0, v_max]; a step the clamp
    leaves at the current voltage ends the ramp, since the voltage can no
    longer move toward the end value.

    Args:
        temp_c: Current temperature (°C)
        voltage_v: Current commanded voltage (V)
        plan: Active anneal plan
        since_last_step_s: Time since the ramp started or last stepped (s)
        temp_tolerance_c: Overshoot band for the temperature end mode (°C)
        v_max: Actuator ceiling (V), None for an unbounded ramp

    Returns:
        AnnealDecision
    """
    if anneal_complete(temp_c, voltage_v, plan, temp_tolerance_c):
        return AnnealDecision(complete=True)

    if since_last_step_s >= plan.step_period_s:
        voltage = round(voltage_v, VOLTAGE_DECIMALS)
        new_voltage = round(voltage + plan.step_size_v, VOLTAGE_DECIMALS)
        if v_max is not None:
            new_voltage = max(0.0, min(v_max, new_voltage))
            if new_voltage == voltage:
                return AnnealDecision(complete=True)
        return AnnealDecision(complete=False, new_voltage=new_voltage)

    return AnnealDecision(complete=False)
