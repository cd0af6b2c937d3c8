"""
Child process controller: spawns, stops and reaps the supervised child.
"""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from collections.abc import Callable, Sequence
from pathlib import Path

import psutil

from respawn.child.channel import ENV_SOCKET
from respawn.compiler import BytecodeCompiler
from respawn.exceptions import ChildSpawnError
from respawn.logging_config import bind_child
from respawn.supervisor.events import ChildExited, Event, message_event
from respawn.supervisor.ipc import ChildChannel, ChildMessage
from respawn.supervisor.state import ChildHandle, SupervisorState

logger = logging.getLogger(__name__)

WRAPPER_MODULE = "respawn.child.wrap"
# How long an exited child's last messages may take to drain
HANGUP_GRACE = 1.0


def resolve_main(script: str) -> str:
    """Resolve the script path; ``app`` is accepted for ``app.py``.

    Raises:
        ValueError: *script* is empty.
        FileNotFoundError: Neither *script* nor *script*.py exists.
    """
    if not isinstance(script, str) or not script:
        raise ValueError("script must be a non-empty string")
    for candidate in (script, script + ".py"):
        if os.path.isfile(candidate):
            return os.path.abspath(candidate)
    raise FileNotFoundError(f"Cannot find script: {script}")


def exit_status(returncode: int) -> int:
    """Map a subprocess return code to a process exit status.

    A child killed by signal N reports ``-N``; shells report ``128 + N``.
    """
    if returncode < 0:
        return 128 - returncode
    return returncode


def tree_kill(pid: int, sig: int = signal.SIGTERM) -> None:
    """Send *sig* to *pid* and all of its descendants."""
    try:
        parent = psutil.Process(pid)
        procs = parent.children(recursive=True)
    except psutil.NoSuchProcess:
        return
    procs.append(parent)
    for proc in procs:
        try:
            proc.send_signal(sig)
        except psutil.NoSuchProcess:
            continue


# ── Controller ──────────────────────────────────────────────────────

class ChildProcessController:
    """
    Owns the single child process.

    Spawning, stopping and exit handling all go through the shared
    :class:`SupervisorState`; the controller never holds a second handle.
    Exits are reported as :class:`ChildExited` events through *post*.
    """

    def __init__(
        self,
        state: SupervisorState,
        script: str,
        script_args: Sequence[str],
        post: Callable[[Event], None],
        socket_dir: Path,
        *,
        interpreter_args: Sequence[str] = (),
        compiler: BytecodeCompiler | None = None,
        respawn: bool = False,
        tree_kill: bool = False,
        python: str | None = None,
    ):
        self.state = state
        self.script = script
        self.script_args = list(script_args)
        self.post = post
        self.socket_dir = socket_dir
        self.interpreter_args = list(interpreter_args)
        self.compiler = compiler
        self.respawn = respawn
        self.tree_kill = tree_kill
        self.python = python or sys.executable
        self.generation = 0
        self._exit_tasks: set[asyncio.Task] = set()

    @property
    def child(self) -> ChildHandle | None:
        return self.state.child

    def build_command(self) -> list[str]:
        """Return the child's argument vector."""
        cmd = [self.python, *self.interpreter_args, "-m", WRAPPER_MODULE]
        if self.compiler is not None:
            cmd += ["--hook", self.compiler.child_hook]
        return [*cmd, self.script, *self.script_args]

    def build_env(self, socket_path: Path) -> dict[str, str]:
        env = dict(os.environ)
        if self.compiler is not None:
            env.update(self.compiler.child_env())
        env[ENV_SOCKET] = str(socket_path)
        return env

    async def start(self) -> ChildHandle:
        """Spawn the child.

        Raises:
            RuntimeError: A child is still alive.
            ChildSpawnError: The interpreter could not be launched.
        """
        if self.state.child is not None:
            raise RuntimeError(f"Child already running (PID {self.state.child.pid})")

        self.generation += 1
        socket_path = self.socket_dir / f"child-{os.getpid()}-{self.generation}.sock"

        handle: ChildHandle | None = None
        # Messages that arrive before the spawn call returns
        early: list[ChildMessage] = []

        def on_message(message: ChildMessage) -> None:
            if handle is None:
                logger.debug("Holding %s until the child handle exists", type(message).__name__)
                early.append(message)
                return
            self.post(message_event(handle, message))

        channel = ChildChannel(socket_path, on_message)
        await channel.start()

        cmd = self.build_command()
        logger.debug("Starting child process %s", " ".join(cmd))
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd, cwd=os.getcwd(), env=self.build_env(socket_path),
            )
        except OSError as e:
            await channel.close()
            raise ChildSpawnError(f"Failed to start {cmd[0]}: {e}") from e

        handle = ChildHandle(
            generation=self.generation,
            process=process,
            channel=channel,
            respawn=self.respawn,
        )
        self.state.child = handle
        bind_child(handle.generation, handle.pid)
        logger.debug("Child started (PID %s)", handle.pid)
        for message in early:
            self.post(message_event(handle, message))
        early.clear()

        task = asyncio.create_task(self._wait_for_exit(handle))
        self._exit_tasks.add(task)
        task.add_done_callback(self._exit_tasks.discard)
        return handle

    async def _wait_for_exit(self, handle: ChildHandle) -> None:
        returncode = await handle.process.wait()
        if handle.connected:
            try:
                async with asyncio.timeout(HANGUP_GRACE):
                    await handle.channel.hangup.wait()
            except TimeoutError:
                logger.debug("Child %s exited without closing its channel", handle.pid)
        self.post(ChildExited(handle, returncode))

    def kill_child(self) -> None:
        """Send SIGTERM to the child (or its whole tree)."""
        child = self.state.child
        if child is None:
            return
        logger.debug("Sending SIGTERM to child pid %s", child.pid)
        if self.tree_kill:
            logger.debug("Using tree kill")
            tree_kill(child.pid)
            return
        try:
            child.process.send_signal(signal.SIGTERM)
        except ProcessLookupError:
            logger.debug("Child %s already gone", child.pid)

    def stop(self, will_terminate: bool = False) -> None:
        """Ask the child to go away so it can be respawned.

        No-op without a child or when it is already stopping.  With
        *will_terminate* the child is known to be exiting on its own and is
        only disconnected.
        """
        child = self.state.child
        if child is None or child.stopping:
            return
        child.stopping = True
        child.respawn = True
        if child.connected is None or child.connected:
            logger.debug("Disconnecting from child")
            child.channel.disconnect()
            if not will_terminate:
                self.kill_child()

    async def handle_exit(self, handle: ChildHandle, returncode: int) -> int | None:
        """Reap *handle*.

        Returns:
            The supervisor's own exit status when the child exited without a
            respawn request, otherwise None.
        """
        logger.debug("Child exited with code %s", returncode)
        await handle.channel.close()
        if self.state.child is not handle:
            return None
        if not handle.respawn:
            return exit_status(returncode)
        self.state.child = None
        return None

    async def aclose(self) -> None:
        """Release the current child's socket without waiting for it."""
        child = self.state.child
        if child is not None:
            await child.channel.close()
        for task in list(self._exit_tasks):
            task.cancel()
