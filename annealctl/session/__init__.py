from __future__ import annotations

from annealctl.session.controller import AnnealController
from annealctl.session.interfaces import (
    Command,
    ControlSession,
    ControlState,
    RequestExit,
    Sample,
    SessionMetrics,
    SessionResult,
    SetTarget,
    StartAnneal,
    TickStatus,
)
from annealctl.session.recorder import ProcessRecorder, TraceLog
from annealctl.session.runner import SessionRunner
from annealctl.session.scheduler import PeriodicScheduler

__all__ = [
    "AnnealController",
    "Command",
    "ControlSession",
    "ControlState",
    "RequestExit",
    "Sample",
    "SessionMetrics",
    "SessionResult",
    "SetTarget",
    "StartAnneal",
    "TickStatus",
    "ProcessRecorder",
    "TraceLog",
    "SessionRunner",
    "PeriodicScheduler",
]
