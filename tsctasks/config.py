"""Configuration loading for tsctasks."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

import yaml
from importlib import resources

from .tasks import (
    Observer,
    TaskConfigurationError,
    TaskOptions,
    TaskPreset,
    coerce_options,
    coerce_presets,
    noop,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAMES: Sequence[str] = (".tsctasks.yaml", ".tsctasks.yml")
DEFAULT_MAX_CONCURRENCY = 2

_OBSERVER_KEYS = ("on_start", "on_report", "on_error", "on_end")


@dataclass
class Settings:
    """Process-wide settings shared by every task of an orchestrator.

    The observers here fire for every task, after the task's own observers.
    """

    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    on_start: Observer = noop
    on_report: Observer = noop
    on_error: Observer = noop
    on_end: Observer = noop

    def __post_init__(self) -> None:
        self.validate()

    def update(self, **opts: Any) -> Settings:
        """Apply ``opts`` and validate the result."""
        known = {item.name for item in fields(self)}
        for key, value in opts.items():
            if key not in known:
                raise TaskConfigurationError(f"Unknown setting '{key}'")
            setattr(self, key, value)
        self.validate()
        return self

    def validate(self) -> None:
        if isinstance(self.max_concurrency, bool) or not isinstance(
            self.max_concurrency, int
        ):
            raise TaskConfigurationError("max_concurrency is not a number")
        if self.max_concurrency <= 0:
            raise TaskConfigurationError("max_concurrency must be > 0")
        for key in _OBSERVER_KEYS:
            if not callable(getattr(self, key)):
                raise TaskConfigurationError(f"{key} is not a function")


@dataclass
class TscTasksConfig:
    """Resolved configuration for a workspace."""

    settings: Settings = field(default_factory=Settings)
    defaults: TaskOptions = field(default_factory=TaskOptions)
    presets: list[TaskPreset] = field(default_factory=list)
    default_preset: Optional[str] = None
    path: Optional[Path] = None

    def get_preset(self, name: str) -> TaskPreset:
        for preset in self.presets:
            if preset.name == name:
                return preset
        raise TaskConfigurationError(f"Preset '{name}' is not defined")


def _load_yaml_file(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle) or {}
    if not isinstance(loaded, dict):
        raise TaskConfigurationError(f"Configuration at {path} must be a mapping")
    return loaded


def _load_default_presets() -> Iterable[dict]:
    with resources.files("tsctasks.resources").joinpath("default_presets.yaml").open(
        "r", encoding="utf-8"
    ) as handle:
        data = yaml.safe_load(handle) or {}
    return data.get("presets", []) or []


def _load_user_presets(config_mapping: dict) -> Iterable[dict]:
    presets = config_mapping.get("presets")
    if presets is None:
        return []
    if not isinstance(presets, list):
        raise TaskConfigurationError("'presets' must be a list in configuration")
    return presets


def find_config_file(workspace: Path) -> Optional[Path]:
    for candidate_name in DEFAULT_CONFIG_FILENAMES:
        candidate = workspace / candidate_name
        if candidate.exists():
            return candidate
    return None


def load_config(workspace: Path, override_config: Optional[Path] = None) -> TscTasksConfig:
    """Load configuration for the given workspace.

    User presets replace built-in presets of the same name.
    """

    workspace = workspace.expanduser().resolve()
    config_mapping: dict = {}

    config_path: Optional[Path] = None
    if override_config:
        config_path = override_config.expanduser().resolve()
        if not config_path.exists():
            raise FileNotFoundError(f"Config file {config_path} does not exist")
    else:
        config_path = find_config_file(workspace)

    if config_path:
        logger.debug("Loading configuration from %s", config_path)
        config_mapping = _load_yaml_file(config_path)

    defaults = coerce_options(config_mapping)
    settings = Settings()
    if "max_concurrency" in config_mapping:
        settings.update(max_concurrency=config_mapping["max_concurrency"])

    user_raw = list(_load_user_presets(config_mapping))
    user_names = {str(item.get("name", "")).strip() for item in user_raw if isinstance(item, dict)}
    raw_presets = [
        item for item in _load_default_presets() if item.get("name") not in user_names
    ]
    raw_presets.extend(user_raw)
    presets = coerce_presets(raw_presets, base=defaults)

    default_preset: Optional[str] = None
    if "default_preset" in config_mapping:
        default_preset = str(config_mapping["default_preset"])
        if default_preset not in {preset.name for preset in presets}:
            raise TaskConfigurationError(
                f"default_preset '{default_preset}' is not defined in presets list"
            )

    return TscTasksConfig(
        settings=settings,
        defaults=defaults,
        presets=presets,
        default_preset=default_preset,
        path=config_path,
    )
