"""Source -> compiled path mapping shared by the compiler and the child hook."""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import hashlib
import os

ERROR_SUFFIX = ".err"


def compiled_path_for(cache_dir: str, source: str) -> str:
    """Return where the bytecode of *source* lives inside *cache_dir*.

    Sources of one directory share a hashed sub-directory so the compiled
    file keeps its base name (``__init__.pyc`` still marks a package).
    """
    source = os.path.abspath(source)
    directory, name = os.path.split(source)
    digest = hashlib.sha1(directory.encode("utf-8")).hexdigest()[:16]
    stem = os.path.splitext(name)[0]
    return os.path.join(cache_dir, digest, stem + ".pyc")


def error_marker_for(compiled_path: str) -> str:
    """Return the file the compiler writes when compilation failed."""
    return compiled_path + ERROR_SUFFIX


def is_fresh(source: str, compiled_path: str) -> bool:
    """Whether *compiled_path* exists and is not older than *source*."""
    try:
        return os.stat(compiled_path).st_mtime_ns >= os.stat(source).st_mtime_ns
    except OSError:
        return False
