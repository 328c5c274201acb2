from __future__ import annotations

from annealctl.control.anneal import (
    AnnealDecision,
    AnnealMode,
    AnnealPlan,
    anneal_complete,
    evaluate_anneal,
)
from annealctl.control.guess import initial_voltage_guess
from annealctl.control.interfaces import PIDGains, PIDOutput, VoltageUpdate
from annealctl.control.pid import apply_delta, clamp_voltage, regulate
from annealctl.control.stability import MIN_STABILITY_SAMPLES, is_stable

__all__ = [
    "AnnealDecision",
    "AnnealMode",
    "AnnealPlan",
    "anneal_complete",
    "evaluate_anneal",
    "initial_voltage_guess",
    "PIDGains",
    "PIDOutput",
    "VoltageUpdate",
    "apply_delta",
    "clamp_voltage",
    "regulate",
    "MIN_STABILITY_SAMPLES",
    "is_stable",
]
