"""Tests for classifying tsc output chunks."""

from __future__ import annotations

import textwrap

from tsctasks.parser import Diagnostic, EventKind, TaskError, parse_output, parse_report


def test_single_diagnostic_line() -> None:
    event = parse_output(
        "src/a.ts(10,5): error TS2322: Type 'string' is not assignable to type 'number'.",
        False,
    )

    assert event.kind is EventKind.DATA
    assert event.entries == [
        Diagnostic(
            code=2322,
            path="src/a.ts",
            lnum=10,
            col=5,
            message=["Type 'string' is not assignable to type 'number'."],
        )
    ]


def test_continuation_lines_are_kept_in_order() -> None:
    chunk = textwrap.dedent(
        """\
        src/a.ts(3,7): error TS2345: Argument of type '{ a: number; }' is not assignable.
          Object literal may only specify known properties.

            and 'a' does not exist in type 'B'.
        src/b.ts(1,1): error TS1005: ';' expected.
        """
    )

    report = parse_report(chunk)

    assert [entry.path for entry in report] == ["src/a.ts", "src/b.ts"]
    assert report[0].message == [
        "Argument of type '{ a: number; }' is not assignable.",
        "  Object literal may only specify known properties.",
        "    and 'a' does not exist in type 'B'.",
    ]
    assert report[1].message == ["';' expected."]


def test_order_is_preserved_not_sorted() -> None:
    chunk = "z.ts(2,1): error TS1: z\na.ts(1,1): error TS2: a\n"

    assert [entry.path for entry in parse_report(chunk)] == ["z.ts", "a.ts"]


def test_whitespace_only_lines_are_skipped() -> None:
    report = parse_report("src/a.ts(1,1): error TS2322: Bad type.\n   \n\t\n  but this stays\n")

    assert report[0].message == ["Bad type.", "  but this stays"]


def test_windows_line_endings() -> None:
    report = parse_report("src/a.ts(1,2): error TS7006: Parameter 'x' implicitly.\r\n  more\r\n")

    assert report[0].message == ["Parameter 'x' implicitly.", "  more"]


def test_malformed_header_does_not_abort_the_chunk() -> None:
    chunk = "garbage before anything\nsrc/a.ts(x,5): error TSabc: broken\nsrc/c.ts(4,2): error TS2304: Cannot find name 'foo'.\n"

    report = parse_report(chunk)

    assert len(report) == 1
    assert report[0].path == "src/c.ts"
    assert report[0].code == 2304


def test_paths_with_parentheses() -> None:
    report = parse_report("src/(group)/page.ts(12,3): error TS2339: Property 'x' does not exist.")

    assert report[0].path == "src/(group)/page.ts"
    assert (report[0].lnum, report[0].col) == (12, 3)


def test_empty_or_missing_chunk_ends_the_session() -> None:
    assert parse_output(None, False).kind is EventKind.END
    assert parse_output("", True).kind is EventKind.END


def test_watch_markers_only_apply_in_watch_mode() -> None:
    end_chunk = "[10:00:00 AM] Found 0 errors. Watching for file changes.\n"
    start_chunk = "[10:00:01 AM] File change detected. Starting incremental compilation...\n"

    assert parse_output(end_chunk, True).kind is EventKind.END
    assert parse_output(start_chunk, True).kind is EventKind.START
    assert parse_output(end_chunk, False).kind is EventKind.DATA
    assert parse_output(start_chunk, False).kind is EventKind.DATA


def test_end_marker_wins_over_start_marker() -> None:
    chunk = "Starting incremental compilation...\nWatching for file changes."

    assert parse_output(chunk, True).kind is EventKind.END


def test_fatal_error() -> None:
    event = parse_output("error TS5058: The specified path does not exist: 'nope.json'.\n", False)

    assert event.kind is EventKind.ERROR
    assert event.error == TaskError(
        code=5058, message="The specified path does not exist: 'nope.json'."
    )
    assert event.entries == []


def test_fatal_error_must_start_the_chunk() -> None:
    event = parse_output("src/a.ts(1,1): error TS1005: ';' expected.\nerror TS6053: x", False)

    assert event.kind is EventKind.DATA
