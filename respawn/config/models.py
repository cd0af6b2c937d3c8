"""Central configuration module for respawn.

Defines Pydantic models for the project-level ``.respawn.json`` and provides
load / override helpers.  Command-line options are applied on top of the
file values by :func:`merge_overrides`.
"""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError, field_validator

from respawn.exceptions import ConfigNotFoundError, ConfigValidationError
from respawn.paths import CONFIG_FILENAME

logger = logging.getLogger("respawn.config")

# Sentinel for ``deps``: watch required files at any nesting depth.
DEPS_UNLIMITED = -1

# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class RegexRule(BaseModel):
    """Ignore rule matched as a regular expression against the full path."""

    regex: str

    @field_validator("regex")
    @classmethod
    def _validate_regex(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"invalid regular expression {value!r}: {exc}") from exc
        return value


class WatchConfig(BaseModel):
    """Filesystem watch tuning."""

    poll: bool = False  # force watchdog's PollingObserver
    interval: float = 1.0  # polling interval (seconds)
    debounce: float = 0.01  # collapse repeated events per path (seconds)


class CompileConfig(BaseModel):
    """Bytecode compilation service options."""

    enabled: bool = True
    optimize: int = -1  # py_compile optimization level (-1 = interpreter's)
    timeout: float = 10.0  # child-side wait for a compiled file (seconds)
    cache_dir: str | None = None  # None = runtime dir / cache


class NotificationConfig(BaseModel):
    """User-facing notification channels."""

    enabled: bool = True
    channels: list[str] = ["log", "desktop"]


class RespawnConfig(BaseModel):
    deps: int = 1  # DEPS_UNLIMITED (-1) = all depths, 0 = project files only
    ignore: list[str | RegexRule] = []
    watch: list[str] = []  # extra paths watched on every start
    respawn: bool = False  # keep supervising after the child exits on its own
    clear: bool = False  # clear the terminal before each restart
    tree_kill: bool = False  # signal the whole child process tree
    rs: bool = True  # "rs" on stdin triggers a manual restart
    interpreter_args: list[str] = []
    log_level: str = "INFO"
    log_dir: str | None = None
    watcher: WatchConfig = WatchConfig()
    compile: CompileConfig = CompileConfig()
    notification: NotificationConfig = NotificationConfig()

    @field_validator("deps")
    @classmethod
    def _validate_deps(cls, value: int) -> int:
        if value < DEPS_UNLIMITED:
            raise ValueError(f"deps must be >= {DEPS_UNLIMITED}, got {value}")
        return value


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------


def get_config_path(project_dir: Path | None = None) -> Path:
    """Return the path to ``.respawn.json`` inside *project_dir* (default: cwd)."""
    return (project_dir or Path.cwd()) / CONFIG_FILENAME


# ---------------------------------------------------------------------------
# Load / override
# ---------------------------------------------------------------------------


def load_config(path: Path | None = None, *, required: bool = False) -> RespawnConfig:
    """Load configuration from disk.

    When the file does not exist the default configuration is returned,
    unless *required* is set (an explicit ``--config`` was given).
    """
    if path is None:
        path = get_config_path()

    if not path.is_file():
        if required:
            raise ConfigNotFoundError(f"Config file not found: {path}")
        logger.debug("Config file not found at %s; using defaults", path)
        return RespawnConfig()

    logger.debug("Loading config from %s", path)
    try:
        data: dict[str, Any] = json.loads(path.read_text(encoding="utf-8"))
        return RespawnConfig.model_validate(data)
    except json.JSONDecodeError as exc:
        logger.error("Failed to parse %s: %s", path, exc)
        raise ConfigValidationError(f"{path}: {exc}") from exc
    except ValidationError as exc:
        logger.error("Invalid config in %s: %s", path, exc)
        raise ConfigValidationError(f"{path}: {exc}") from exc


def merge_overrides(config: RespawnConfig, overrides: dict[str, Any]) -> RespawnConfig:
    """Return a copy of *config* with non-None *overrides* applied.

    Keys of the form ``"watcher.poll"`` address nested sections.
    """
    data = config.model_dump()
    for key, value in overrides.items():
        if value is None:
            continue
        section, _, field = key.rpartition(".")
        target = data[section] if section else data
        target[field] = value
    try:
        return RespawnConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigValidationError(str(exc)) from exc


def parse_ignore_option(value: str) -> str | RegexRule:
    """Parse one ``--ignore`` value; ``re:`` marks a regular expression."""
    if value.startswith("re:"):
        return RegexRule(regex=value[3:])
    return value
