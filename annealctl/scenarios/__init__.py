from __future__ import annotations

from annealctl.scenarios.scripted import (
    Operator,
    exit_when_idle,
    hold_then_anneal,
    set_target_once,
)

__all__ = [
    "Operator",
    "exit_when_idle",
    "hold_then_anneal",
    "set_target_once",
]
