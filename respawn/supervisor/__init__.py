"""
Development process supervisor package.

Runs one child process, watches the files it loads and restarts it when
one of them changes or the child reports a recoverable error.
"""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from respawn.supervisor.coordinator import RestartCoordinator
from respawn.supervisor.ipc import ChildChannel, ChildMessage, parse_message
from respawn.supervisor.manager import Supervisor
from respawn.supervisor.process_handle import ChildProcessController
from respawn.supervisor.router import MessageRouter
from respawn.supervisor.state import ChildHandle, SupervisorState

__all__ = [
    "ChildChannel",
    "ChildMessage",
    "parse_message",
    "ChildHandle",
    "SupervisorState",
    "ChildProcessController",
    "MessageRouter",
    "RestartCoordinator",
    "Supervisor",
]
