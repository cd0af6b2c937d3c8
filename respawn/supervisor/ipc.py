"""
IPC communication layer between the supervisor and its child process.

The supervisor listens on a per-child Unix Domain Socket; the child connects
once and writes JSON Lines messages.  Each line is validated at the boundary
into one of the typed message variants below.
"""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from respawn.exceptions import MalformedMessageError

logger = logging.getLogger(__name__)

# ── Constants ──────────────────────────────────────────────────
IPC_BUFFER_LIMIT = 1 * 1024 * 1024  # 1MB
MODULE_NOT_FOUND = "MODULE_NOT_FOUND"


# ── Protocol Types ──────────────────────────────────────────────

class LastRequire(BaseModel):
    """The last import attempted by the child before it failed."""

    filename: str  # file that executed the import
    path: str  # specifier as written (".missing", "..pkg.mod", "./missing")


class RequiredMessage(BaseModel):
    """The child loaded a new file."""

    required: str


class ErrorMessage(BaseModel):
    """The child hit an uncaught exception."""

    model_config = ConfigDict(populate_by_name=True)

    code: str
    message: str = ""
    error: str | None = None  # exception type name, used as notification title
    last_require: LastRequire | None = Field(default=None, alias="lastRequire")
    will_terminate: bool = Field(default=False, alias="willTerminate")

    @property
    def is_relative_module_not_found(self) -> bool:
        return (
            self.code == MODULE_NOT_FOUND
            and self.last_require is not None
            and self.last_require.path.startswith(".")
        )


class CompileRequestMessage(BaseModel):
    """The child asks the supervisor to compile a source file."""

    model_config = ConfigDict(populate_by_name=True)

    compiled_path: str = Field(alias="compiledPath", min_length=1)
    compile: str


ChildMessage = Union[RequiredMessage, ErrorMessage, CompileRequestMessage]


def parse_message(data: Any) -> ChildMessage:
    """Validate a decoded JSON value into a message variant.

    The wire format carries no type tag; the variant is chosen by its
    distinguishing key.

    Raises:
        MalformedMessageError: Unknown shape or invalid field types.
    """
    if not isinstance(data, dict):
        raise MalformedMessageError(f"Expected a JSON object, got {type(data).__name__}")

    if "required" in data:
        model: type[BaseModel] = RequiredMessage
    elif "code" in data:
        model = ErrorMessage
    elif "compiledPath" in data:
        model = CompileRequestMessage
    else:
        raise MalformedMessageError(f"Unknown message shape: keys={sorted(data)}")

    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise MalformedMessageError(f"Invalid {model.__name__}: {e}") from e


def decode_line(line: str) -> ChildMessage:
    """Decode one JSON line into a message variant."""
    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        raise MalformedMessageError(f"Invalid JSON: {e}") from e
    return parse_message(data)


# ── Child Channel (Supervisor side) ───────────────────────────────────

MessageHandler = Callable[[ChildMessage], None]


class ChildChannel:
    """
    Unix Domain Socket server for a single child process.

    ``connected`` is tri-state: ``None`` until the child connects, ``True``
    while connected, ``False`` once either side hung up.  Only the first
    connection is accepted.
    """

    def __init__(self, socket_path: Path, on_message: MessageHandler):
        self.socket_path = socket_path
        self.on_message = on_message
        self.connected: bool | None = None
        self.server: asyncio.Server | None = None
        self.hangup = asyncio.Event()  # set once the child connection ended
        self._writer: asyncio.StreamWriter | None = None

    async def start(self) -> None:
        """Start listening before the child is spawned."""
        self.socket_path.parent.mkdir(parents=True, exist_ok=True)
        # Remove stale socket file if exists
        if self.socket_path.exists():
            self.socket_path.unlink()

        self.server = await asyncio.start_unix_server(
            self._handle_connection,
            path=str(self.socket_path),
            limit=IPC_BUFFER_LIMIT,
        )
        logger.debug("Child channel listening on %s", self.socket_path)

    async def _handle_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter
    ) -> None:
        """Read messages from the child until either side hangs up."""
        if self.connected is not None:
            logger.warning("Rejecting extra connection on %s", self.socket_path)
            writer.close()
            return

        self.connected = True
        self._writer = writer
        logger.debug("Child connected on %s", self.socket_path)

        try:
            while self.connected:
                line_bytes = await reader.readline()
                if not line_bytes:
                    break

                line = line_bytes.decode("utf-8", errors="replace").strip()
                if not line:
                    continue

                try:
                    message = decode_line(line)
                except MalformedMessageError as e:
                    logger.warning("Dropping malformed child message: %s", e)
                    continue

                if self.connected:
                    self.on_message(message)

        except (ConnectionResetError, asyncio.IncompleteReadError):
            logger.debug("Child connection reset on %s", self.socket_path)
        except ValueError as e:
            # StreamReader raises ValueError when a line exceeds the limit
            logger.warning("Child message too large on %s: %s", self.socket_path, e)
        except asyncio.CancelledError:
            logger.debug("Child channel reader cancelled")
        finally:
            self.connected = False
            self._writer = None
            self.hangup.set()
            writer.close()

    def disconnect(self) -> None:
        """Hang up on the child and stop accepting connections."""
        self.connected = False
        if self._writer is not None:
            self._writer.close()
            self._writer = None
        if self.server is not None:
            self.server.close()
        logger.debug("Disconnected from child on %s", self.socket_path)

    async def close(self) -> None:
        """Stop the server and remove the socket file."""
        self.disconnect()
        if self.server is not None:
            await self.server.wait_closed()
            self.server = None

        if self.socket_path.exists():
            self.socket_path.unlink()
