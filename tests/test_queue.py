"""Tests for the task registry and the admission queue."""

from __future__ import annotations

import pytest

from tsctasks.queue import AdmissionQueue
from tsctasks.registry import TaskRegistry
from tsctasks.tasks import Task, TaskConfigurationError, TaskOptions


def make_task(task_id: str, **options) -> Task:
    return Task.build(task_id, TaskOptions(bin="tsc", **options))


def start(task: Task) -> None:
    task.started = True
    task.running = True


def test_find_duplicate_compares_commands() -> None:
    registry = TaskRegistry()
    first = make_task("1")
    registry.register(first)

    assert registry.find_duplicate(make_task("2")) is first
    assert registry.find_duplicate(make_task("3", project="other.json")) is None
    assert registry.find_duplicate(first) is None


def test_remove_and_lookup() -> None:
    registry = TaskRegistry()
    task = make_task("1")
    registry.register(task)

    assert registry.get("1") is task
    assert task in registry
    registry.remove(task)
    registry.remove(task)
    assert task not in registry
    assert len(registry) == 0


def test_running_excludes_watch_tasks_from_slot_count() -> None:
    registry = TaskRegistry()
    queued = make_task("1")
    watch = make_task("2", watch=True)
    for task in (queued, watch):
        registry.register(task)
        start(task)

    assert registry.running() == [queued]
    assert registry.running(queue_only=False) == [queued, watch]


def test_enqueue_rejects_unqueued_tasks() -> None:
    with pytest.raises(TaskConfigurationError):
        AdmissionQueue().enqueue(make_task("1", queue=False))


def test_flush_respects_max_concurrency_and_fifo() -> None:
    registry = TaskRegistry()
    queue = AdmissionQueue()
    tasks = [make_task(str(index), project=f"p{index}.json") for index in range(4)]
    for task in tasks:
        registry.register(task)
        queue.enqueue(task)

    for _ in range(5):
        queue.flush(registry, 2, start)

    assert [task.running for task in tasks] == [True, True, False, False]
    assert list(queue) == tasks[2:]

    tasks[0].running = False
    tasks[0].ended = True
    registry.remove(tasks[0])
    queue.flush(registry, 2, start)

    assert tasks[2].running
    assert not tasks[3].running


def test_flush_skips_stale_entries() -> None:
    registry = TaskRegistry()
    queue = AdmissionQueue()
    cancelled, started_elsewhere, waiting = (
        make_task(str(index), project=f"p{index}.json") for index in range(3)
    )
    for task in (cancelled, started_elsewhere, waiting):
        registry.register(task)
        queue.enqueue(task)
    cancelled.ended = True
    registry.remove(cancelled)
    started_elsewhere.started = True

    queue.flush(registry, 2, start)

    assert waiting.running
    assert len(queue) == 0


def test_flush_on_empty_queue_is_a_noop() -> None:
    calls = []
    AdmissionQueue().flush(TaskRegistry(), 1, calls.append)

    assert calls == []
