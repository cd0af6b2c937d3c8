"""Global test fixtures for respawn.

Provides runtime directory isolation and short socket paths (Unix socket
paths are limited to ~104 bytes, pytest's tmp_path is often longer).
"""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import tempfile
from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog


# ── Fixtures ──────────────────────────────────────────────


@pytest.fixture
def socket_dir() -> Iterator[Path]:
    """A short temporary directory for Unix sockets."""
    with tempfile.TemporaryDirectory(prefix="rsp-") as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(autouse=True)
def runtime_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Redirect ``RESPAWN_RUNTIME_DIR`` to a per-test directory."""
    d = tmp_path / "runtime"
    monkeypatch.setenv("RESPAWN_RUNTIME_DIR", str(d))
    return d


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """Undo setup_logging() and bound contextvars after each test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()
