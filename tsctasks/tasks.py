"""Task models and helpers for tsctasks."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional

from .parser import Diagnostic, TaskError

NO_EMIT_FLAG = "--noEmit"
WATCH_FLAG = "--watch"
INCREMENTAL_FLAG = "--incremental"
PROJECT_FLAG = "--project"
OPTION_FLAGS = (NO_EMIT_FLAG, WATCH_FLAG, INCREMENTAL_FLAG)

_BOOL_OPTIONS = ("emit", "watch", "incremental", "queue", "dedupe")


class TaskConfigurationError(RuntimeError):
    """Raised when a task definition is invalid."""


def noop(*args: Any) -> None:
    """Observer that does nothing; composing with it has no effect."""


Observer = Callable[..., None]


class ObserverChain:
    """Ordered observers for one task event, fired in registration order."""

    __slots__ = ("_observers",)

    def __init__(self, *observers: Optional[Observer]) -> None:
        self._observers: list[Observer] = []
        for observer in observers:
            self.add(observer)

    def add(self, observer: Optional[Observer]) -> None:
        if observer is None or observer is noop:
            return
        if not callable(observer):
            raise TaskConfigurationError(f"Observer {observer!r} is not callable")
        self._observers.append(observer)

    def extend(self, other: ObserverChain) -> None:
        for observer in other:
            self.add(observer)

    def __call__(self, *args: Any) -> None:
        # Snapshot so an observer that registers more observers does not see them fire now.
        for observer in list(self._observers):
            observer(*args)

    def __iter__(self) -> Iterator[Observer]:
        return iter(self._observers)

    def __len__(self) -> int:
        return len(self._observers)

    def __bool__(self) -> bool:
        return bool(self._observers)


@dataclass(frozen=True, slots=True)
class TaskOptions:
    """Declarative description of one tsc invocation."""

    bin: Optional[str] = None
    project: str = "tsconfig.json"
    emit: bool = False
    watch: bool = False
    incremental: bool = False
    queue: bool = True
    dedupe: bool = True
    flags: tuple[str, ...] = ()

    def normalized(self) -> TaskOptions:
        """Fold option flags found in ``flags`` into the boolean options."""
        emit = self.emit and NO_EMIT_FLAG not in self.flags
        watch = self.watch or WATCH_FLAG in self.flags
        incremental = self.incremental or INCREMENTAL_FLAG in self.flags
        flags = tuple(flag for flag in self.flags if flag not in OPTION_FLAGS)
        return replace(
            self,
            emit=emit,
            watch=watch,
            incremental=incremental,
            # Watch sessions are long-lived and never take a queue slot.
            queue=self.queue and not watch,
            flags=flags,
        )

    def build_command(self) -> list[str]:
        """Return the argument vector used both to spawn and to dedupe."""
        cmd = [self.bin or "tsc"]
        if not self.emit:
            cmd.append(NO_EMIT_FLAG)
        if self.watch:
            cmd.append(WATCH_FLAG)
        if self.incremental:
            cmd.append(INCREMENTAL_FLAG)
        cmd.extend((PROJECT_FLAG, self.project))
        cmd.extend(self.flags)
        return cmd


def coerce_options(
    item: Mapping[str, object], base: Optional[TaskOptions] = None
) -> TaskOptions:
    """Convert a raw mapping into TaskOptions, layered over ``base``."""
    base = base or TaskOptions()
    values: dict[str, Any] = {}
    for key in ("bin", "project"):
        if item.get(key) is not None:
            value = str(item[key]).strip()
            if not value:
                raise TaskConfigurationError(f"Task option '{key}' must not be empty")
            values[key] = value
    for key in _BOOL_OPTIONS:
        if item.get(key) is not None:
            value = item[key]
            if not isinstance(value, bool):
                raise TaskConfigurationError(f"Task option '{key}' must be a boolean")
            values[key] = value
    flags = item.get("flags")
    if flags is not None:
        if isinstance(flags, str) or not isinstance(flags, Iterable):
            raise TaskConfigurationError("Task option 'flags' must be a list of strings")
        values["flags"] = tuple(str(flag) for flag in flags)
    return replace(base, **values)


@dataclass(slots=True)
class TaskPreset:
    """A named set of task options loaded from configuration."""

    name: str
    options: TaskOptions
    description: str = ""


def coerce_presets(
    items: Iterable[Mapping[str, object]], base: Optional[TaskOptions] = None
) -> list[TaskPreset]:
    """Convert raw mappings into validated TaskPreset instances."""
    presets: list[TaskPreset] = []
    seen: set[str] = set()
    for item in items:
        if not isinstance(item, Mapping):
            raise TaskConfigurationError("Preset definition must be a mapping")
        name = str(item.get("name", "")).strip()
        if not name:
            raise TaskConfigurationError("Preset definition missing 'name'")
        if name in seen:
            raise TaskConfigurationError(f"Duplicate preset name '{name}' detected")
        seen.add(name)
        description = str(item.get("description", "") or "").strip()
        try:
            options = coerce_options(item, base)
        except TaskConfigurationError as error:
            raise TaskConfigurationError(f"Preset '{name}': {error}") from error
        presets.append(TaskPreset(name=name, options=options, description=description))
    return presets


class TaskState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    ENDED = "ended"


class CycleState(str, Enum):
    """Progress of the current reporting cycle, separate from the task lifecycle."""

    IDLE = "idle"
    BUFFERING = "buffering"
    REPORTED = "reported"
    FAILED = "failed"


@dataclass(eq=False)
class Task:
    """One tracked tsc invocation: a single run or a whole watch session.

    Lifecycle flags (``started``, ``running``, ``ended``) are written only by the
    orchestrator. A watch session keeps them at started/running for its whole
    life and only resets the cycle-scoped fields (``report``, ``buffering``,
    ``has_report``, ``error``, timestamps) when tsc starts recompiling.
    """

    id: str
    options: TaskOptions
    cmd: list[str] = field(default_factory=list)
    on_start: ObserverChain = field(default_factory=ObserverChain)
    on_report: ObserverChain = field(default_factory=ObserverChain)
    on_error: ObserverChain = field(default_factory=ObserverChain)
    on_end: ObserverChain = field(default_factory=ObserverChain)
    started: bool = False
    running: bool = False
    ended: bool = False
    buffering: bool = False
    has_report: bool = False
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    error: Optional[TaskError] = None
    report: list[Diagnostic] = field(default_factory=list)
    process: Any = None
    # Set once the "started" observers have fired; dedup replays start only then.
    announced: bool = field(default=False, repr=False)

    @classmethod
    def build(
        cls,
        task_id: str,
        options: TaskOptions,
        *,
        on_start: Optional[Observer] = None,
        on_report: Optional[Observer] = None,
        on_error: Optional[Observer] = None,
        on_end: Optional[Observer] = None,
    ) -> Task:
        options = options.normalized()
        return cls(
            id=task_id,
            options=options,
            cmd=options.build_command(),
            on_start=ObserverChain(on_start),
            on_report=ObserverChain(on_report),
            on_error=ObserverChain(on_error),
            on_end=ObserverChain(on_end),
        )

    @property
    def watch(self) -> bool:
        return self.options.watch

    @property
    def queue(self) -> bool:
        return self.options.queue

    @property
    def dedupe(self) -> bool:
        return self.options.dedupe

    @property
    def project(self) -> str:
        return self.options.project

    @property
    def state(self) -> TaskState:
        if self.ended:
            return TaskState.ENDED
        if self.running:
            return TaskState.RUNNING
        return TaskState.PENDING

    @property
    def cycle(self) -> CycleState:
        if self.buffering:
            return CycleState.BUFFERING
        if self.error is not None:
            return CycleState.FAILED
        if self.has_report:
            return CycleState.REPORTED
        return CycleState.IDLE

    @property
    def eligible(self) -> bool:
        """True while the task has never been started nor cancelled."""
        return not (self.started or self.running or self.ended)

    def merge_observers(self, other: Task) -> None:
        """Append ``other``'s observers to this task's chains."""
        self.on_start.extend(other.on_start)
        self.on_report.extend(other.on_report)
        self.on_error.extend(other.on_error)
        self.on_end.extend(other.on_end)
