"""Known (pending and running) tasks, keyed by id."""

from __future__ import annotations

from typing import Iterator, Optional

from .tasks import Task


class TaskRegistry:
    """Live set of non-ended tasks used for dedup lookups and slot accounting.

    ``tasks`` is handed out as-is; entries disappear individually when their
    task ends and there is no reset.
    """

    def __init__(self) -> None:
        self.tasks: dict[str, Task] = {}

    def register(self, task: Task) -> None:
        self.tasks[task.id] = task

    def remove(self, task: Task) -> None:
        self.tasks.pop(task.id, None)

    def find_duplicate(self, task: Task) -> Optional[Task]:
        """Return a known task running the exact same command, if any."""
        for existing in self.tasks.values():
            if existing is not task and existing.cmd == task.cmd:
                return existing
        return None

    def running(self, *, queue_only: bool = True) -> list[Task]:
        return [
            task
            for task in self.tasks.values()
            if task.running and (task.queue or not queue_only)
        ]

    def get(self, task_id: str) -> Optional[Task]:
        return self.tasks.get(task_id)

    def __contains__(self, task: object) -> bool:
        return isinstance(task, Task) and self.tasks.get(task.id) is task

    def __iter__(self) -> Iterator[Task]:
        return iter(list(self.tasks.values()))

    def __len__(self) -> int:
        return len(self.tasks)
