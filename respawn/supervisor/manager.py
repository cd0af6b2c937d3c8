"""
Supervisor - wires the components together and runs the single dispatcher.

Every asynchronous source (watchdog threads, the console thread, signal
handlers, child sockets and exit watchers) only posts events; the
dispatcher consumes them one at a time on the event loop.
"""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Sequence
from pathlib import Path
from typing import TextIO

from respawn.compiler import REQUEST_FILENAME, BytecodeCompiler, CompileRequest
from respawn.config.models import RespawnConfig
from respawn.exceptions import ChildSpawnError
from respawn.notification.notifier import Notifier
from respawn.paths import get_cache_dir, get_runtime_dir, get_socket_dir
from respawn.supervisor.console import ConsoleReader
from respawn.supervisor.coordinator import RestartCoordinator
from respawn.supervisor.deps import compile_ignore_rules
from respawn.supervisor.events import (
    ChildError,
    ChildExited,
    ChildRequired,
    CompileRequested,
    Event,
    FileChanged,
    ManualRestart,
    SignalReceived,
    WatchFallback,
)
from respawn.supervisor.process_handle import ChildProcessController
from respawn.supervisor.relay import CompileRequestRelay
from respawn.supervisor.router import MessageRouter
from respawn.supervisor.state import SupervisorState
from respawn.supervisor.watch_set import WatchSet

logger = logging.getLogger(__name__)

HANDLED_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class Supervisor:
    """
    Development supervisor for one script.

    Usage::

        supervisor = Supervisor(config, "app.py", ["--port", "8000"])
        exit_code = asyncio.run(supervisor.run())
    """

    def __init__(
        self,
        config: RespawnConfig,
        script: str,
        script_args: Sequence[str] = (),
        *,
        config_path: Path | None = None,
        notifier: Notifier | None = None,
        socket_dir: Path | None = None,
        stdin: TextIO | None = None,
    ):
        self.config = config
        self.script = script
        self.script_args = list(script_args)
        self.config_path = config_path
        self.notifier = notifier or Notifier.from_config(config.notification)
        self.socket_dir = socket_dir or get_socket_dir()
        self.stdin = stdin

        self.state = SupervisorState()
        self.exit_code: int | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[Event] | None = None

        self.watch_set: WatchSet | None = None
        self.compiler: BytecodeCompiler | None = None
        self.relay: CompileRequestRelay | None = None
        self.controller: ChildProcessController | None = None
        self.router: MessageRouter | None = None
        self.coordinator: RestartCoordinator | None = None
        self.console: ConsoleReader | None = None

    # ── Event intake ────────────────────────────────────────────────

    def post(self, event: Event) -> None:
        """Queue *event* for the dispatcher; safe from any thread."""
        if self._loop is None or self._queue is None:
            raise RuntimeError("Supervisor is not running")
        self._loop.call_soon_threadsafe(self._queue.put_nowait, event)

    def _on_file_changed(self, path: str) -> None:
        self.post(FileChanged(path))

    def _on_watch_fallback(self, limit: int) -> None:
        self.post(WatchFallback(limit))

    def _on_compile_request(self, channel: str, request: CompileRequest) -> None:
        self.post(CompileRequested(channel, request))

    # ── Wiring ──────────────────────────────────────────────────────

    def build(self) -> None:
        """Create every component from the configuration."""
        cfg = self.config
        self.watch_set = WatchSet(
            self._on_file_changed,
            self._on_watch_fallback,
            poll=cfg.watcher.poll,
            interval=cfg.watcher.interval,
            debounce=cfg.watcher.debounce,
        )

        if cfg.compile.enabled:
            cache_dir = Path(cfg.compile.cache_dir) if cfg.compile.cache_dir else get_cache_dir()
            self.compiler = BytecodeCompiler(
                cache_dir,
                self.config_path,
                cfg.compile,
                request_file=get_runtime_dir() / REQUEST_FILENAME,
            )
            self.compiler.init()
            self.relay = CompileRequestRelay(
                self.compiler,
                self.compiler.compile_request_file,
                self._on_compile_request,
                self.notifier,
                poll=cfg.watcher.poll,
                interval=cfg.watcher.interval,
            )

        self.controller = ChildProcessController(
            self.state,
            self.script,
            self.script_args,
            self.post,
            self.socket_dir,
            interpreter_args=cfg.interpreter_args,
            compiler=self.compiler,
            respawn=cfg.respawn,
            tree_kill=cfg.tree_kill,
        )
        self.router = MessageRouter(
            self.watch_set,
            self.controller,
            self.relay,
            self.notifier,
            self.post,
            compile_ignore_rules(cfg.ignore),
            cfg.deps,
        )
        self.coordinator = RestartCoordinator(
            self.state,
            self.controller,
            self.watch_set,
            self.notifier,
            compiler=self.compiler,
            relay=self.relay,
            extra_watch=cfg.watch,
            clear=cfg.clear,
        )
        if cfg.rs:
            self.console = ConsoleReader(self.post, self.stdin)

    # ── Run ─────────────────────────────────────────────────────────

    async def run(self) -> int:
        """Supervise until the child exits on its own or a signal arrives.

        Returns:
            The exit status for the supervisor process.
        """
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self.build()

        for sig in HANDLED_SIGNALS:
            self._loop.add_signal_handler(sig, self.post, SignalReceived(sig))

        try:
            self.watch_set.start()
            if self.relay is not None:
                self.relay.start()
            if self.console is not None:
                self.console.start()

            try:
                await self.coordinator.start()
            except ChildSpawnError as e:
                logger.error("%s", e)
                return 1

            while self.exit_code is None:
                event = await self._queue.get()
                await self.dispatch(event)
            return self.exit_code
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        if self._loop is not None:
            for sig in HANDLED_SIGNALS:
                self._loop.remove_signal_handler(sig)
        if self.watch_set is not None:
            self.watch_set.stop()
        if self.relay is not None:
            self.relay.stop()
        if self.controller is not None:
            await self.controller.aclose()
        logger.debug("Supervisor shut down")

    # ── Dispatch ────────────────────────────────────────────────────

    def _is_current(self, event: ChildRequired | ChildError) -> bool:
        if event.handle is not self.state.child:
            logger.debug("Ignoring message from previous child %s", event.handle.pid)
            return False
        return True

    async def dispatch(self, event: Event) -> None:
        """Handle one event."""
        try:
            if isinstance(event, FileChanged):
                await self.coordinator.restart(event.path)
            elif isinstance(event, ManualRestart):
                await self.coordinator.restart("", manual=True)
            elif isinstance(event, ChildRequired):
                if self._is_current(event):
                    self.router.on_required(event.message)
            elif isinstance(event, ChildError):
                if self._is_current(event):
                    self.router.on_error(event.message)
            elif isinstance(event, CompileRequested):
                await self.router.on_compile_request(event.channel, event.request)
            elif isinstance(event, ChildExited):
                await self._on_child_exited(event)
            elif isinstance(event, SignalReceived):
                self._on_signal(event.signum)
            elif isinstance(event, WatchFallback):
                self._on_watch_fallback_event(event.limit)
            else:
                logger.warning("Unknown event: %r", event)
        except ChildSpawnError as e:
            logger.error("%s", e)
            self.exit_code = 1

    async def _on_child_exited(self, event: ChildExited) -> None:
        code = await self.controller.handle_exit(event.handle, event.returncode)
        if code is not None:
            self.exit_code = code
            return
        callbacks = event.handle.pop_exit_callbacks()
        if not callbacks and self.state.child is None:
            logger.info("Child exited, waiting for file changes before restart")
        for callback in callbacks:
            await callback()

    def _on_signal(self, signum: int) -> None:
        logger.debug("Received %s, terminating child", signal.Signals(signum).name)
        self.controller.kill_child()
        self.exit_code = 0

    def _on_watch_fallback_event(self, limit: int) -> None:
        logger.warning(
            "File watch limit reached while watching %d files; fell back to polling. "
            "Raise fs.inotify.max_user_watches or use --no-deps to watch fewer files.",
            limit,
        )
