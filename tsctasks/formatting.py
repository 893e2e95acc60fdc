"""Turn reports into list items, editor annotations and console lines."""

from __future__ import annotations

from typing import Callable, Iterable, Union

from .parser import Diagnostic, TaskError

MessageFormatter = Callable[[list[str], Diagnostic], str]
MessageFormat = Union[str, MessageFormatter]


def format_message(entry: Diagnostic, fmt: MessageFormat = "full") -> str:
    if callable(fmt):
        return fmt(entry.message, entry)
    if fmt == "first":
        return entry.message[0] if entry.message else ""
    if fmt == "last":
        return entry.message[-1].strip() if entry.message else ""
    return "\n".join(entry.message)


def to_items(report: Iterable[Diagnostic], fmt: MessageFormat = "full") -> list[dict]:
    """Quickfix-style items with 1-based positions."""
    return [
        {
            "filename": entry.path,
            "lnum": entry.lnum,
            "col": entry.col,
            "text": format_message(entry, fmt),
            "code": entry.code,
            "type": "E",
        }
        for entry in report
    ]


def to_annotations(
    report: Iterable[Diagnostic], fmt: MessageFormat = "full"
) -> dict[str, list[dict]]:
    """Per-file annotations with 0-based positions."""
    annotations: dict[str, list[dict]] = {}
    for entry in report:
        annotations.setdefault(entry.path, []).append(
            {
                "lnum": entry.lnum - 1,
                "col": entry.col - 1,
                "text": format_message(entry, fmt),
                "severity": "error",
                "source": "tsc",
            }
        )
    return annotations


def render_entry(entry: Diagnostic) -> str:
    first, *rest = entry.message or [""]
    lines = [f"{entry.path}({entry.lnum},{entry.col}): error TS{entry.code}: {first}"]
    lines.extend(f"  {line.strip()}" for line in rest)
    return "\n".join(lines)


def render_error(error: TaskError) -> str:
    if error.code is None:
        return f"error: {error.message}"
    return f"error TS{error.code}: {error.message}"


def summarize(report: list[Diagnostic]) -> str:
    files = {entry.path for entry in report}
    if not report:
        return "Found 0 errors."
    noun = "error" if len(report) == 1 else "errors"
    file_noun = "file" if len(files) == 1 else "files"
    return f"Found {len(report)} {noun} in {len(files)} {file_noun}."
