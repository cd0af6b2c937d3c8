"""
Child side of the supervisor channel: a blocking JSON Lines socket client.

The supervisor passes the socket path in the environment.  Sending never
raises: a child without a supervisor (or whose supervisor hung up) keeps
running and ``send`` reports False.
"""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import json
import os
import socket
import threading
from typing import Any

ENV_SOCKET = "RESPAWN_IPC_SOCKET"
ENV_REQUEST_FILE = "RESPAWN_COMPILE_REQ_FILE"
ENV_CACHE_DIR = "RESPAWN_CACHE_DIR"
ENV_COMPILE_TIMEOUT = "RESPAWN_COMPILE_TIMEOUT"


class ParentChannel:
    """Connection to the supervisor's per-child socket."""

    def __init__(self, socket_path: str | None) -> None:
        self.socket_path = socket_path
        self._sock: socket.socket | None = None
        self._lock = threading.Lock()

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def connect(self) -> bool:
        if not self.socket_path or self._sock is not None:
            return self._sock is not None
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.connect(self.socket_path)
        except OSError:
            sock.close()
            return False
        self._sock = sock
        return True

    def send(self, payload: dict[str, Any]) -> bool:
        """Write one message; False when there is no live connection."""
        data = (json.dumps(payload) + "\n").encode("utf-8")
        with self._lock:
            if self._sock is None:
                return False
            try:
                self._sock.sendall(data)
            except OSError:
                self._close_locked()
                return False
        return True

    def close(self) -> None:
        with self._lock:
            self._close_locked()

    def _close_locked(self) -> None:
        if self._sock is not None:
            try:
                self._sock.close()
            finally:
                self._sock = None


_channel: ParentChannel | None = None


def get_channel() -> ParentChannel:
    """Return the process-wide channel, connecting on first use."""
    global _channel
    if _channel is None:
        _channel = ParentChannel(os.environ.get(ENV_SOCKET))
        _channel.connect()
    return _channel
