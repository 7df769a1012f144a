"""Configuration loading utilities for the watcher."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import yaml # type: ignore

from .events import Bucket


logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when the configuration file or options are missing or invalid."""


@dataclass
class OutputOptions:
    """Switches controlling what the watcher prints."""

    verbose: bool = False
    quiet: bool = False
    quiet_output: bool = False
    pretty: bool = False


class CommandTable:
    """Ordered command lists, one per bucket.

    Commands run in the order they were added.
    """

    def __init__(self) -> None:
        self._commands: Dict[Bucket, List[str]] = {bucket: [] for bucket in Bucket}

    def add(self, bucket: Bucket, command: str) -> None:
        self._commands[bucket].append(command)

    def add_many(self, buckets: Iterable[Bucket], command: str) -> None:
        for bucket in buckets:
            self.add(bucket, command)

    def get(self, bucket: Bucket) -> Tuple[str, ...]:
        return tuple(self._commands[bucket])

    def is_empty(self) -> bool:
        return not any(self._commands.values())

    def as_dict(self) -> Dict[str, List[str]]:
        return {bucket.value: list(commands) for bucket, commands in self._commands.items() if commands}


@dataclass
class AppConfig:
    """Top-level configuration structure."""

    paths: List[str] = field(default_factory=list)
    commands: CommandTable = field(default_factory=CommandTable)
    output: OutputOptions = field(default_factory=OutputOptions)
    force: bool = False

    def validate(self) -> None:
        if not self.paths:
            raise ConfigError("not enough arguments: at least one path to watch is required")
        if self.commands.is_empty():
            logger.warning("No commands configured; events will only be reported")


def load_config(path: Path, into: Optional[AppConfig] = None) -> AppConfig:
    """Load and validate the YAML configuration file."""

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        text = path.read_text()
    except OSError as exc:
        raise ConfigError(f"Cannot read configuration file {path}: {exc.strerror or exc}") from exc

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse YAML configuration: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("Configuration root must be a mapping")

    app_config = into if into is not None else AppConfig()
    app_config.paths.extend(_parse_watch(data.get("watch"), config_path=path))
    _parse_commands(data.get("commands"), app_config.commands)
    _parse_output(data.get("output"), app_config.output)

    force = data.get("force", False)
    if not isinstance(force, bool):
        raise ConfigError("force must be a boolean")
    app_config.force = app_config.force or force

    return app_config


def _parse_watch(raw: Any, *, config_path: Path) -> List[str]:
    paths: List[str] = []
    for item in _ensure_str_list(raw, "watch"):
        watch_path = Path(item).expanduser()
        if not watch_path.is_absolute():
            watch_path = config_path.parent / watch_path
        paths.append(str(watch_path))
    return paths


def _parse_commands(raw: Any, table: CommandTable) -> None:
    if raw is None:
        return
    if not isinstance(raw, dict):
        raise ConfigError("'commands' section must be a mapping of event bucket to commands")

    for key, value in raw.items():
        if not isinstance(key, str):
            raise ConfigError(f"commands key {key!r} must be a string")
        try:
            bucket = Bucket.parse(key)
        except ValueError as exc:
            raise ConfigError(f"commands.{key}: {exc}") from exc
        for command in _ensure_str_list(value, f"commands.{key}"):
            table.add(bucket, command)
            logger.debug("Loaded %s command %r", bucket.value, command)


def _parse_output(raw: Any, options: OutputOptions) -> None:
    if raw is None:
        return
    if not isinstance(raw, dict):
        raise ConfigError("'output' section must be a mapping")

    for key, value in raw.items():
        if key not in ("verbose", "quiet", "quiet_output", "pretty"):
            raise ConfigError(f"output.{key} is not a known output option")
        if not isinstance(value, bool):
            raise ConfigError(f"output.{key} must be a boolean")
        if value:
            setattr(options, key, True)


def _ensure_str_list(value: Any, field_name: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ConfigError(f"{field_name} must be a list of strings")
    items: List[str] = []
    for elem in value:
        if not isinstance(elem, str):
            raise ConfigError(f"{field_name} must contain only strings")
        items.append(elem)
    return items
