"""Unified exception hierarchy for respawn.

All domain-specific exceptions derive from :class:`RespawnError`,
enabling callers to catch the entire family with a single clause::

    try:
        ...
    except RespawnError as e:
        logger.error("Supervisor error: %s", e)
"""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations


class RespawnError(Exception):
    """Base exception for all respawn errors."""


# ── Configuration ────────────────────────────────────────────


class ConfigError(RespawnError):
    """Configuration errors."""


class ConfigNotFoundError(ConfigError):
    """Explicitly requested configuration file does not exist."""


class ConfigValidationError(ConfigError):
    """Configuration validation failure (JSON decode, schema mismatch)."""


# ── Process ──────────────────────────────────────────────────


class ProcessError(RespawnError):
    """Child process errors."""


class ChildSpawnError(ProcessError):
    """The interpreter for the child process could not be launched."""


# ── IPC ──────────────────────────────────────────────────────


class IPCError(RespawnError):
    """Errors on the child -> supervisor message channel."""


class MalformedMessageError(IPCError):
    """An inbound child message is not valid JSON or has an unknown shape."""


# ── Compilation ──────────────────────────────────────────────


class CompileError(RespawnError):
    """Source compilation failure.

    Carries the source path so notifications can name the broken file.
    """

    def __init__(self, message: str, *, source: str = "") -> None:
        super().__init__(message)
        self.source = source


class CompileRequestReadError(CompileError):
    """The on-disk compile request file could not be read."""
