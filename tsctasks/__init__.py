"""tsctasks package exports."""

from importlib.metadata import version, PackageNotFoundError

from .config import Settings, TscTasksConfig, load_config
from .orchestrator import Orchestrator
from .parser import Diagnostic, EventKind, ParseEvent, TaskError, parse_output
from .tasks import Task, TaskConfigurationError, TaskOptions

__all__ = [
    "Diagnostic",
    "EventKind",
    "Orchestrator",
    "ParseEvent",
    "Settings",
    "Task",
    "TaskConfigurationError",
    "TaskError",
    "TaskOptions",
    "TscTasksConfig",
    "__version__",
    "load_config",
    "parse_output",
]

try:
    __version__ = version("tsctasks")
except PackageNotFoundError:  # pragma: no cover - local dev fallback
    __version__ = "0.1.0"
