"""
Compile hook: load project modules from bytecode compiled by the supervisor.

For every project source the child imports, the hook asks the supervisor to
compile it (over the socket, or through the request file when the socket is
not connected), waits for the compiled file and loads it.  Anything that
goes wrong (timeout, compile error, third-party module) falls through to the
regular source loader.
"""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import os
import sys
import time
from importlib.abc import MetaPathFinder
from importlib.machinery import ModuleSpec, PathFinder, SourceFileLoader, SourcelessFileLoader

from respawn.child.cache import compiled_path_for, error_marker_for, is_fresh
from respawn.child.channel import (
    ENV_CACHE_DIR,
    ENV_COMPILE_TIMEOUT,
    ENV_REQUEST_FILE,
    ParentChannel,
    get_channel,
)

_POLL_INTERVAL = 0.02
_DEFAULT_TIMEOUT = 10.0


def _is_third_party(path: str) -> bool:
    return "site-packages" in path or "dist-packages" in path


class CompileFinder(MetaPathFinder):
    """Meta path finder serving project modules from the compile cache."""

    def __init__(
        self,
        cache_dir: str,
        channel: ParentChannel,
        request_file: str | None,
        *,
        project_dir: str | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        self.cache_dir = cache_dir
        self.channel = channel
        self.request_file = request_file
        self.project_dir = os.path.abspath(project_dir or os.getcwd())
        self.timeout = timeout

    def _wants(self, origin: str) -> bool:
        origin = os.path.abspath(origin)
        if _is_third_party(origin):
            return False
        return origin.startswith(self.project_dir + os.sep)

    def find_spec(self, fullname, path, target=None) -> ModuleSpec | None:
        spec = PathFinder.find_spec(fullname, path, target)
        if spec is None or not isinstance(spec.loader, SourceFileLoader):
            return None
        if not spec.origin or not self._wants(spec.origin):
            return None
        compiled = self.ensure_compiled(spec.origin)
        if compiled is None:
            return None
        spec.loader = SourcelessFileLoader(fullname, compiled)
        spec.cached = compiled
        return spec

    def request(self, source: str, compiled: str) -> None:
        """Ask the supervisor to compile *source* into *compiled*."""
        if self.channel.send({"compiledPath": compiled, "compile": source}):
            return
        if self.request_file:
            with open(self.request_file, "w", encoding="utf-8") as f:
                f.write(f"{source}\n{compiled}")

    def ensure_compiled(self, source: str) -> str | None:
        """Return the fresh compiled path of *source*, or None to fall back."""
        compiled = compiled_path_for(self.cache_dir, source)
        if is_fresh(source, compiled):
            return compiled
        marker = error_marker_for(compiled)
        if os.path.exists(marker) and is_fresh(source, marker):
            return None

        self.request(source, compiled)
        deadline = time.monotonic() + self.timeout
        while time.monotonic() < deadline:
            if is_fresh(source, compiled):
                return compiled
            if os.path.exists(marker) and is_fresh(source, marker):
                return None
            time.sleep(_POLL_INTERVAL)
        print(
            f"respawn: timed out waiting for {source} to compile, loading source",
            file=sys.stderr,
        )
        return None


def install() -> CompileFinder | None:
    """Put the compile finder in front of ``sys.meta_path``.

    Does nothing unless the supervisor passed a cache directory.
    """
    cache_dir = os.environ.get(ENV_CACHE_DIR)
    if not cache_dir:
        return None
    finder = CompileFinder(
        cache_dir,
        get_channel(),
        os.environ.get(ENV_REQUEST_FILE),
        timeout=float(os.environ.get(ENV_COMPILE_TIMEOUT, _DEFAULT_TIMEOUT)),
    )
    sys.meta_path.insert(0, finder)
    return finder
