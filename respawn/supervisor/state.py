"""
Supervisor state: the single record that serializes restarts.
"""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from respawn.supervisor.ipc import ChildChannel

ExitCallback = Callable[[], Awaitable[None]]


@dataclass(eq=False)
class ChildHandle:
    """The one running child process.

    Transitions:
    - ``stopping``: False -> True in ``stop()``; never reset.
    - ``respawn``: True at spawn when the respawn option is on, otherwise
      False -> True in ``stop()``.  A child that exits with ``respawn``
      unset ends the supervisor with the child's exit code.
    """
    generation: int
    process: asyncio.subprocess.Process
    channel: ChildChannel
    stopping: bool = False
    respawn: bool = False
    exit_callbacks: list[ExitCallback] = field(default_factory=list)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def connected(self) -> bool | None:
        return self.channel.connected

    def on_exit(self, callback: ExitCallback) -> None:
        """Register a one-shot callback run after this child exits."""
        self.exit_callbacks.append(callback)

    def pop_exit_callbacks(self) -> list[ExitCallback]:
        callbacks, self.exit_callbacks = self.exit_callbacks, []
        return callbacks


@dataclass
class SupervisorState:
    """Restart serialization state, shared by reference.

    ``starting`` is True from the moment a restart clears the watch set until
    the replacement child has been spawned; triggers arriving meanwhile are
    dropped.
    """
    starting: bool = False
    child: ChildHandle | None = None
