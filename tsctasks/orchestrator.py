"""Run, dedupe, queue and stop tsc tasks."""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Optional

from .config import Settings
from .parser import EventKind, TaskError, parse_output
from .process import AsyncioLauncher, ProcessLauncher
from .projects import find_tsc_bin, is_executable
from .queue import AdmissionQueue
from .registry import TaskRegistry
from .tasks import Observer, Task, TaskOptions, coerce_options

logger = logging.getLogger(__name__)

MISSING_EXECUTABLE_MESSAGE = (
    "tsc was not available or found in your node_modules or $PATH. "
    "Please run install and try again."
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Orchestrator:
    """Owns the task registry and admission queue for one process.

    All handlers run on the asyncio loop thread, one at a time, so task state
    needs no locking. Output and exit handlers still check ``task.running``
    because a task may be stopped while its output is in flight.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        launcher: Optional[ProcessLauncher] = None,
        *,
        defaults: Optional[TaskOptions] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.launcher: ProcessLauncher = launcher or AsyncioLauncher()
        self.defaults = defaults
        self.registry = TaskRegistry()
        self.queue = AdmissionQueue()
        self._ids = itertools.count(1)
        self._launches: set[asyncio.Task] = set()

    @property
    def tasks(self) -> dict[str, Task]:
        """Live mapping of every pending or running task, keyed by id."""
        return self.registry.tasks

    def setup(self, **opts: Any) -> Settings:
        return self.settings.update(**opts)

    def submit(
        self,
        options: Optional[TaskOptions] = None,
        *,
        on_start: Optional[Observer] = None,
        on_report: Optional[Observer] = None,
        on_error: Optional[Observer] = None,
        on_end: Optional[Observer] = None,
        **overrides: Any,
    ) -> Task:
        """Create a task and start or enqueue it.

        The returned task is canonical: with dedup it may be an older task
        running the same command. It may also already be in a terminal error
        state, with its observers fired, when tsc cannot be found.
        """
        options = self._resolve_options(options, overrides)
        task = Task.build(
            str(next(self._ids)),
            options,
            on_start=on_start,
            on_report=on_report,
            on_error=on_error,
            on_end=on_end,
        )

        if not is_executable(task.options.bin):
            logger.warning(
                "tsc executable %r not found; task %s not started", task.options.bin, task.id
            )
            task.error = TaskError(code=None, message=MISSING_EXECUTABLE_MESSAGE)
            task.on_error(task.error, task)
            self.settings.on_error(task.error, task)
            return task

        if task.dedupe:
            existing = self.registry.find_duplicate(task)
            if existing is not None:
                logger.info("Task %s merged into running task %s", task.id, existing.id)
                self._merge(existing, task)
                return existing

        self.registry.register(task)
        if task.queue:
            logger.debug("Queueing task %s: %s", task.id, " ".join(task.cmd))
            self.queue.enqueue(task)
            self.flush()
        else:
            self.start(task)
        return task

    run = submit

    def start(self, task: Task) -> Optional[asyncio.Task]:
        """Mark ``task`` running and spawn its process on the running loop.

        "started" observers fire once the process exists; a failed spawn ends
        the task with an error instead.
        """
        if task.started:
            return None

        task.started_at = _now()
        task.started = True
        task.running = True
        logger.info("Starting task %s: %s", task.id, " ".join(task.cmd))

        launch = asyncio.get_running_loop().create_task(self._launch(task))
        self._launches.add(launch)
        launch.add_done_callback(self._launches.discard)
        return launch

    def stop(self, task: Task) -> None:
        """Cancel ``task``; output it already produced is discarded."""
        if not task.started or task.ended:
            return

        logger.info("Stopping task %s", task.id)
        task.running = False
        task.ended = True
        process, task.process = task.process, None
        if process is not None:
            process.kill()
        self.registry.remove(task)
        self.flush()

    def flush(self) -> None:
        self.queue.flush(self.registry, self.settings.max_concurrency, self.start)

    async def _launch(self, task: Task) -> None:
        try:
            process = await self.launcher.launch(
                task.cmd,
                lambda chunk: self._handle_output(task, chunk),
                lambda return_code: self._handle_exit(task, return_code),
            )
        except OSError as error:
            self._handle_spawn_failure(task, error)
            return

        if task.ended:
            # Stopped while the process was being spawned.
            process.kill()
            return

        task.process = process
        task.announced = True
        task.on_start(task)
        self.settings.on_start(task)

    def _handle_spawn_failure(self, task: Task, error: OSError) -> None:
        logger.error("Failed to spawn task %s: %s", task.id, error)
        was_stopped = task.ended
        task.running = False
        task.ended = True
        task.error = TaskError(code=None, message=f"Unable to start tsc: {error}")
        self.registry.remove(task)
        if not was_stopped:
            task.on_error(task.error, task)
            self.settings.on_error(task.error, task)
            task.on_end(task)
            self.settings.on_end(task)
        self.flush()

    def _handle_output(self, task: Task, chunk: Optional[str]) -> None:
        # stop() was used, ignore.
        if not task.running:
            return

        event = parse_output(chunk, task.watch)

        if event.kind is EventKind.START:
            task.has_report = False
            task.buffering = True
            task.report = []
            task.error = None
            task.started_at = _now()
            task.finished_at = None
        elif event.kind is EventKind.DATA:
            task.report.extend(event.entries)
        elif event.kind is EventKind.END:
            task.has_report = True
            task.buffering = False
            task.finished_at = _now()
            logger.debug("Task %s reported %d diagnostic(s)", task.id, len(task.report))
            task.on_report(task.report, task)
            self.settings.on_report(task.report, task)
        elif event.kind is EventKind.ERROR:
            task.has_report = True
            task.buffering = False
            task.finished_at = _now()
            task.report = []
            task.error = event.error
            logger.warning(
                "Task %s failed: TS%s %s", task.id, task.error.code, task.error.message
            )
            task.on_report(task.report, task)
            self.settings.on_report(task.report, task)
            task.on_error(task.error, task)
            self.settings.on_error(task.error, task)

    def _handle_exit(self, task: Task, return_code: Optional[int]) -> None:
        logger.info("Task %s exited with code %s", task.id, return_code)
        task.process = None
        task.ended = True
        task.running = False
        self.registry.remove(task)
        task.on_end(task)
        self.settings.on_end(task)
        self.flush()

    def _merge(self, existing: Task, task: Task) -> None:
        existing.merge_observers(task)
        # Replay what already happened, to the new observers only.
        if existing.announced:
            task.on_start(existing)
        if existing.has_report:
            task.on_report(existing.report, existing)
        if existing.error is not None:
            task.on_error(existing.error, existing)
        if existing.ended:
            task.on_end(existing)

    def _resolve_options(
        self, options: Optional[TaskOptions], overrides: dict[str, Any]
    ) -> TaskOptions:
        base = options or self.defaults or TaskOptions()
        if overrides:
            base = coerce_options(overrides, base)
        if base.bin is None:
            base = replace(base, bin=find_tsc_bin())
        return base
