"""
Restart coordinator: serializes restart triggers into one stop/start cycle.

States are ``Idle`` and ``Starting`` (``SupervisorState.starting``).  A
trigger arriving while ``Starting`` is dropped, not queued.
"""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import asyncio
import logging
import os
import sys
from collections.abc import Callable, Sequence

from respawn.compiler import BytecodeCompiler
from respawn.exceptions import CompileError
from respawn.supervisor.process_handle import ChildProcessController
from respawn.supervisor.relay import CompileRequestRelay
from respawn.supervisor.state import SupervisorState
from respawn.supervisor.watch_set import WatchSet

logger = logging.getLogger(__name__)

CLEAR_SCREEN = "\033c"


class RestartCoordinator:
    """
    Drives the child through restart cycles.

    All methods run on the supervisor's dispatcher, one event at a time, so
    no locking is needed around ``state``.
    """

    def __init__(
        self,
        state: SupervisorState,
        controller: ChildProcessController,
        watch_set: WatchSet,
        notify: Callable[..., None],
        *,
        compiler: BytecodeCompiler | None = None,
        relay: CompileRequestRelay | None = None,
        extra_watch: Sequence[str] = (),
        clear: bool = False,
    ) -> None:
        self.state = state
        self.controller = controller
        self.watch_set = watch_set
        self.notify = notify
        self.compiler = compiler
        self.relay = relay
        self.extra_watch = list(extra_watch)
        self.clear = clear

    # ── Start ───────────────────────────────────────────────────────

    async def start(self) -> None:
        """Spawn a child and leave ``Starting``.

        Raises:
            ChildSpawnError: The child could not be spawned.
        """
        for path in self.extra_watch:
            self.watch_set.add(path)
        if self.relay is not None:
            self.relay.reset()
        try:
            await self.controller.start()
        finally:
            self.state.starting = False
        if self.compiler is not None and self.compiler.config_path:
            self.watch_set.add(self.compiler.config_path)

    # ── Restart ─────────────────────────────────────────────────────

    async def restart(self, path: str = "", manual: bool = False) -> bool:
        """Handle a restart trigger.

        Returns:
            False when the trigger was dropped because a restart is already
            in progress.
        """
        if self.compiler is not None and path and self._is_config(path):
            self.notify("Reinitializing compilation")
            await asyncio.get_running_loop().run_in_executor(None, self.compiler.init)

        if self.clear:
            sys.stdout.write(CLEAR_SCREEN)
            sys.stdout.flush()
        self.notify("Restarting", "manual restart" if manual else f"{path} has been modified")

        if self.compiler is not None and path:
            await self._recompile(path)

        if self.state.starting:
            logger.debug("Restart already in progress, dropping trigger for %r", path)
            return False

        self.watch_set.close_auxiliary()
        self.watch_set.remove_all()
        self.state.starting = True

        child = self.state.child
        if child is not None:
            logger.debug("Waiting for child %s to exit before restart", child.pid)
            child.on_exit(self.start)
            self.controller.stop(will_terminate=False)
        else:
            await self.start()
        return True

    def _is_config(self, path: str) -> bool:
        return os.path.realpath(path) == self.compiler.config_path

    async def _recompile(self, path: str) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self.compiler.compile_changed, path)
        except CompileError as e:
            self.notify("Compilation failed", str(e), "error")
