"""FIFO admission queue for queue-managed tasks."""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Iterator

from .registry import TaskRegistry
from .tasks import Task, TaskConfigurationError

logger = logging.getLogger(__name__)


class AdmissionQueue:
    """Backlog of tasks waiting for a concurrency slot."""

    def __init__(self) -> None:
        self._backlog: deque[Task] = deque()

    def enqueue(self, task: Task) -> None:
        if not task.queue:
            raise TaskConfigurationError(f"Task {task.id} does not use the queue")
        self._backlog.append(task)

    def flush(
        self,
        registry: TaskRegistry,
        max_concurrency: int,
        start: Callable[[Task], object],
    ) -> None:
        """Admit at most one waiting task if a slot is free.

        Safe to call any number of times. Entries that were started or stopped
        out of band are dropped so they never block the ones behind them.
        """
        while self._backlog:
            active = len(registry.running(queue_only=True))
            if active >= max_concurrency:
                logger.debug(
                    "Queue holding %d task(s); %d/%d slots busy",
                    len(self._backlog),
                    active,
                    max_concurrency,
                )
                return
            task = self._backlog.popleft()
            if task.queue and task.eligible:
                start(task)
                return
            logger.debug("Dropping stale queue entry for task %s", task.id)

    def __contains__(self, task: object) -> bool:
        return task in self._backlog

    def __iter__(self) -> Iterator[Task]:
        return iter(list(self._backlog))

    def __len__(self) -> int:
        return len(self._backlog)
