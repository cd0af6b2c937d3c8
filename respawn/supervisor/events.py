"""
Events consumed by the supervisor's single dispatcher.

Every asynchronous source (watchdog threads, the console reader, signal
handlers, child sockets, child exit watchers) only ever produces one of these
and puts it on the dispatcher queue.
"""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from respawn.compiler import CompileRequest
from respawn.supervisor.ipc import (
    ChildMessage,
    CompileRequestMessage,
    ErrorMessage,
    RequiredMessage,
)
from respawn.supervisor.relay import MESSAGE_CHANNEL
from respawn.supervisor.state import ChildHandle


@dataclass(frozen=True)
class FileChanged:
    path: str


@dataclass(frozen=True)
class ManualRestart:
    pass


@dataclass(frozen=True)
class ChildRequired:
    handle: ChildHandle
    message: RequiredMessage


@dataclass(frozen=True)
class ChildError:
    handle: ChildHandle
    message: ErrorMessage


@dataclass(frozen=True)
class CompileRequested:
    channel: str  # relay channel name: "file" or "message"
    request: CompileRequest


@dataclass(frozen=True)
class ChildExited:
    handle: ChildHandle
    returncode: int


@dataclass(frozen=True)
class SignalReceived:
    signum: int


@dataclass(frozen=True)
class WatchFallback:
    limit: int


Event = Union[
    FileChanged,
    ManualRestart,
    ChildRequired,
    ChildError,
    CompileRequested,
    ChildExited,
    SignalReceived,
    WatchFallback,
]


def message_event(handle: ChildHandle, message: ChildMessage) -> Event:
    """Wrap a validated child message into its dispatcher event."""
    if isinstance(message, RequiredMessage):
        return ChildRequired(handle, message)
    if isinstance(message, ErrorMessage):
        return ChildError(handle, message)
    if isinstance(message, CompileRequestMessage):
        return CompileRequested(
            MESSAGE_CHANNEL,
            CompileRequest(source=message.compile, compiled_path=message.compiled_path),
        )
    raise TypeError(f"Unsupported child message: {message!r}")
