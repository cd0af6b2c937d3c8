"""
IPC message router: turns validated child messages into supervisor actions.

- ``required``   -> dependency depth filter -> watch set
- ``error``      -> auxiliary watches (unresolved relative import),
                    notification, stop the child
- compile request -> compile request relay
"""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Sequence

from respawn.compiler import SOURCE_EXTENSIONS, CompileRequest
from respawn.supervisor.deps import IgnoreMatcher, should_watch
from respawn.supervisor.events import Event, FileChanged
from respawn.supervisor.ipc import ErrorMessage, LastRequire, RequiredMessage
from respawn.supervisor.process_handle import ChildProcessController
from respawn.supervisor.relay import CompileRequestRelay
from respawn.supervisor.watch_set import WatchSet

logger = logging.getLogger(__name__)


def candidate_source_base(last_require: LastRequire) -> str | None:
    """Return the extension-less path an unresolved relative import points at.

    ``..pkg.mod`` from ``/p/a/b.py`` resolves like a Python relative import
    (``/p/pkg/mod``); path-like specifiers such as ``./missing.py`` are
    joined to the importing file's directory.
    """
    spec = last_require.path
    if not spec.startswith("."):
        return None
    base_dir = os.path.dirname(os.path.abspath(last_require.filename))

    if "/" in spec or os.sep in spec:
        base = os.path.normpath(os.path.join(base_dir, spec))
        stem, ext = os.path.splitext(base)
        return stem if ext in SOURCE_EXTENSIONS else base

    level = len(spec) - len(spec.lstrip("."))
    name = spec[level:]
    if not name:
        return None
    for _ in range(level - 1):
        base_dir = os.path.dirname(base_dir)
    return os.path.join(base_dir, *name.split("."))


class MessageRouter:
    """Dispatch child messages to the watch set, the relay and the controller.

    Args:
        watch_set: Main watch set; auxiliary watches are opened on it too.
        controller: Used to stop the child after it reported an error.
        relay: Compile request relay, ``None`` when compilation is disabled.
        notify: Notification callable ``(title, message, level)``.
        post: Thread-safe event sink; auxiliary watches post ``FileChanged``.
        ignore: Precompiled ignore matchers.
        max_depth: Maximum dependency depth (``DEPS_UNLIMITED`` for all).
    """

    def __init__(
        self,
        watch_set: WatchSet,
        controller: ChildProcessController,
        relay: CompileRequestRelay | None,
        notify: Callable[..., None],
        post: Callable[[Event], None],
        ignore: Sequence[IgnoreMatcher],
        max_depth: int,
    ) -> None:
        self.watch_set = watch_set
        self.controller = controller
        self.relay = relay
        self.notify = notify
        self.post = post
        self.ignore = tuple(ignore)
        self.max_depth = max_depth

    def on_required(self, message: RequiredMessage) -> bool:
        """Watch the file the child loaded; True when it was accepted."""
        path = message.required
        if not should_watch(path, self.ignore, self.max_depth):
            logger.debug("Not watching %s", path)
            return False
        self.watch_set.add(path)
        return True

    def on_error(self, message: ErrorMessage) -> list[str]:
        """Handle an error report; returns the auxiliary watch paths opened."""
        watched: list[str] = []
        if message.is_relative_module_not_found:
            base = candidate_source_base(message.last_require)
            if base is not None:
                watched = [base + ext for ext in SOURCE_EXTENSIONS]
                logger.debug("Waiting for missing module: %s", ", ".join(watched))
                self.watch_set.add_auxiliary(watched, self._on_auxiliary_change)

        self.notify(message.error or "Error", message.message, "error")
        self.controller.stop(message.will_terminate)
        return watched

    def _on_auxiliary_change(self, path: str) -> None:
        self.post(FileChanged(path))

    async def on_compile_request(self, channel: str, request: CompileRequest) -> bool:
        if self.relay is None:
            logger.debug("Compilation disabled, ignoring request for %s", request.source)
            return False
        return await self.relay.relay(channel, request)
