"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from typing import Optional, Sequence

import pytest

from tsctasks.config import Settings
from tsctasks.orchestrator import Orchestrator

MISSING_BIN = "missing-tsc"


class FakeProcess:
    """Process stand-in; tests push output and exits by hand."""

    def __init__(self, cmd: Sequence[str], on_output, on_exit) -> None:
        self.cmd = list(cmd)
        self._on_output = on_output
        self._on_exit = on_exit
        self.killed = False
        self.exited = False

    def emit(self, chunk: Optional[str]) -> None:
        self._on_output(chunk)

    def finish(self, return_code: int = 0) -> None:
        self._on_output(None)
        self.exited = True
        self._on_exit(return_code)

    def kill(self) -> None:
        self.killed = True


class FakeLauncher:
    def __init__(self) -> None:
        self.processes: list[FakeProcess] = []
        self.fail_with: Optional[OSError] = None

    async def launch(self, cmd, on_output, on_exit) -> FakeProcess:
        if self.fail_with is not None:
            raise self.fail_with
        process = FakeProcess(cmd, on_output, on_exit)
        self.processes.append(process)
        return process


class Recorder:
    """Collects observer calls as (event, task id, payload) tuples."""

    def __init__(self, name: str = "", log: Optional[list] = None) -> None:
        self.name = name
        self.calls: list[tuple] = []
        self.log = log if log is not None else []

    def _record(self, event: str, task, payload=None) -> None:
        self.calls.append((event, task.id, payload))
        self.log.append((self.name, event))

    def on_start(self, task) -> None:
        self._record("start", task)

    def on_report(self, report, task) -> None:
        self._record("report", task, list(report))

    def on_error(self, error, task) -> None:
        self._record("error", task, error)

    def on_end(self, task) -> None:
        self._record("end", task)

    def observers(self) -> dict:
        return {
            "on_start": self.on_start,
            "on_report": self.on_report,
            "on_error": self.on_error,
            "on_end": self.on_end,
        }

    def events(self) -> list[str]:
        return [call[0] for call in self.calls]


async def settle(rounds: int = 3) -> None:
    """Let pending launch tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture()
def launcher() -> FakeLauncher:
    return FakeLauncher()


@pytest.fixture()
def settings() -> Settings:
    return Settings(max_concurrency=2)


@pytest.fixture()
def orchestrator(monkeypatch, launcher, settings) -> Orchestrator:
    monkeypatch.setattr(
        "tsctasks.orchestrator.is_executable", lambda cmd: cmd != MISSING_BIN
    )
    return Orchestrator(settings, launcher)
