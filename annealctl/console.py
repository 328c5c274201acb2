"""
Line-based operator console.

Operator commands typed on stdin while a session runs:

    target <temp_C>
    anneal <temp|volt> <end_value> <step_V> <step_period_min>
    exit

Status lines are printed by StatusPrinter, throttled so the prompt stays
readable. Commands are parsed here and handed to the controller's queue; they take
effect at the top of the next tick. A malformed line is rejected without
touching the session.
"""

from __future__ import annotations

import logging
import sys
import threading
from typing import Callable, TextIO

from .errors import InvalidCommandError
from .session.interfaces import (
    Command,
    ControlState,
    RequestExit,
    SetTarget,
    StartAnneal,
    TickStatus,
)

logger = logging.getLogger(__name__)

HELP = """Commands:
  target <temp_C>                                   set / change the setpoint
  anneal <temp|volt> <end> <step_V> <period_min>    start an anneal ramp
  exit                                              stop the session
  help                                              show this message"""


def _number(token: str, name: str) -> float:
    try:
        return float(token)
    except ValueError:
        raise InvalidCommandError(f"{name} must be a number, got {token!r}") from None


def parse_command(line: str) -> Command | None:
    """
    Parse one console line.

    Returns:
        The command, or None for a blank line

    Raises:
        InvalidCommandError: On an unknown verb or malformed arguments
    """
    tokens = line.split()
    if not tokens:
        return None
    verb, args = tokens[0].lower(), tokens[1:]

    if verb in ("exit", "quit"):
        if args:
            raise InvalidCommandError("usage: exit")
        return RequestExit()

    if verb == "target":
        if len(args) != 1:
            raise InvalidCommandError("usage: target <temp_C>")
        return SetTarget(_number(args[0], "target"))

    if verb == "anneal":
        if len(args) != 4:
            raise InvalidCommandError("usage: anneal <temp|volt> <end> <step_V> <period_min>")
        return StartAnneal(
            mode=args[0],
            end_value=_number(args[1], "end value"),
            step_size_v=_number(args[2], "step size"),
            step_period_min=_number(args[3], "step period"),
        )

    raise InvalidCommandError(f"unknown command {verb!r} (try 'help')")


class ConsoleReader:
    """
    Background reader feeding console commands to a submit function.

    The reader is a daemon thread: it never blocks interpreter exit while
    waiting on input. End of input stops the reader but not the session.
    """

    def __init__(
        self,
        submit: Callable[[Command], None],
        stream: TextIO | None = None,
        out: TextIO | None = None,
    ):
        self._submit = submit
        self._stream = stream if stream is not None else sys.stdin
        self._out = out if out is not None else sys.stdout
        self._thread = threading.Thread(target=self._run, name="annealctl-console", daemon=True)

    def start(self) -> "ConsoleReader":
        self._thread.start()
        return self

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout)

    def handle_line(self, line: str) -> Command | None:
        if line.strip().lower() == "help":
            print(HELP, file=self._out)
            return None
        try:
            command = parse_command(line)
        except InvalidCommandError as e:
            print(f"Invalid input: {e}", file=self._out)
            return None
        if command is not None:
            self._submit(command)
        return command

    def _run(self) -> None:
        for line in self._stream:
            command = self.handle_line(line)
            if isinstance(command, RequestExit):
                break
        logger.debug("Console reader finished")


class StatusPrinter:
    """
    Throttled per-tick status display for an interactive session.

    A line is printed whenever the state or the sensor condition changes,
    and otherwise at most once every ``every_s`` of session time.
    """

    def __init__(self, out: TextIO | None = None, every_s: float = 5.0):
        if every_s < 0:
            raise ValueError("every_s must be >= 0")
        self._out = out if out is not None else sys.stdout
        self.every_s = every_s
        self._last_key: tuple[ControlState, bool] | None = None
        self._last_printed_s: float | None = None

    def __call__(self, status: TickStatus) -> bool:
        key = (status.state, status.degraded)
        due = (
            self._last_printed_s is None
            or status.elapsed_s - self._last_printed_s >= self.every_s
        )
        if key == self._last_key and not due:
            return False

        self._last_key = key
        self._last_printed_s = status.elapsed_s
        print(f"[{status.elapsed_s / 60.0:7.2f} min] {status.title}", file=self._out)
        print(f"    {status.status}", file=self._out)
        return True
