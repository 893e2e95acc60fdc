"""Classify chunks of ``tsc`` output into structured events."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

WATCH_END_MARKER = "Watching for file changes"
WATCH_START_MARKER = "Starting incremental compilation"

_FATAL_RE = re.compile(r"error TS(\d+): (.+)", re.DOTALL)
_HEADER_RE = re.compile(r"^(.+)\((\d+),(\d+)\): error TS(\d+): (.+)$")


class EventKind(str, Enum):
    END = "end"
    START = "start"
    ERROR = "error"
    DATA = "data"


@dataclass(slots=True)
class TaskError:
    """A failure attached to a task; ``code`` is None unless tsc reported it."""

    code: Optional[int]
    message: str


@dataclass(slots=True)
class Diagnostic:
    """One ``error TSxxxx`` entry as reported by the compiler."""

    code: int
    path: str
    lnum: int
    col: int
    message: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ParseEvent:
    kind: EventKind
    entries: list[Diagnostic] = field(default_factory=list)
    error: Optional[TaskError] = None


def parse_report(text: str) -> list[Diagnostic]:
    """Extract diagnostics from raw output, keeping the order tsc emitted them in.

    A header line opens a new entry. Following non-blank lines are appended to
    its message until the next header. Lines that are neither are dropped.
    """
    report: list[Diagnostic] = []
    current: Optional[Diagnostic] = None
    for raw_line in text.split("\n"):
        line = raw_line.rstrip("\r")
        match = _HEADER_RE.match(line)
        if match:
            path, lnum, col, code, message = match.groups()
            current = Diagnostic(
                code=int(code),
                path=path,
                lnum=int(lnum),
                col=int(col),
                message=[message],
            )
            report.append(current)
        elif current is not None and line.strip():
            current.message.append(line)
    return report


def parse_output(chunk: Optional[str], watching: bool) -> ParseEvent:
    """Classify one chunk of process output.

    No state is kept between calls, so every chunk has to be self-delimited.
    An empty or missing chunk means the stream is over.
    """
    if not chunk or (watching and WATCH_END_MARKER in chunk):
        return ParseEvent(EventKind.END)

    if watching and WATCH_START_MARKER in chunk:
        return ParseEvent(EventKind.START)

    fatal = _FATAL_RE.match(chunk)
    if fatal:
        code, message = fatal.groups()
        return ParseEvent(
            EventKind.ERROR, error=TaskError(code=int(code), message=message.strip())
        )

    return ParseEvent(EventKind.DATA, entries=parse_report(chunk))
