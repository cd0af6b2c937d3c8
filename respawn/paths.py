"""Centralized path resolution for respawn.

Runtime state (child sockets, the compile request file, the bytecode cache)
lives in a per-project directory under the system temp dir.  It can be
overridden via the RESPAWN_RUNTIME_DIR environment variable.
"""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import hashlib
import os
import tempfile
from pathlib import Path

CONFIG_FILENAME = ".respawn.json"


def get_runtime_dir(project_dir: Path | None = None) -> Path:
    """Return the runtime directory for *project_dir* (default: cwd).

    Kept short on purpose: Unix socket paths are limited to ~104 bytes.
    """
    env_val = os.environ.get("RESPAWN_RUNTIME_DIR")
    if env_val:
        return Path(env_val).expanduser().resolve()
    project_dir = (project_dir or Path.cwd()).resolve()
    digest = hashlib.sha1(str(project_dir).encode("utf-8")).hexdigest()[:12]
    return Path(tempfile.gettempdir()) / f"respawn-{digest}"


def get_socket_dir(project_dir: Path | None = None) -> Path:
    return get_runtime_dir(project_dir) / "sockets"


def get_cache_dir(project_dir: Path | None = None) -> Path:
    return get_runtime_dir(project_dir) / "cache"
