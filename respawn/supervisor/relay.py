"""
Compile request relay: forwards the child's compile requests to the compiler.

Requests arrive on two channels:

- ``file``: the child writes ``<source>\\n<compiled path>`` into the request
  file (used when its socket is not connected); the file is watched.
- ``message``: ``{"compiledPath", "compile"}`` messages on the child socket.

Each channel remembers the last compiled path it forwarded and drops exact
repeats.  The two memories are independent, so a request that alternates
between channels is compiled once per channel.
"""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from respawn.compiler import CompileRequest
from respawn.exceptions import CompileError, CompileRequestReadError
from respawn.supervisor.watch_set import WatchSet

logger = logging.getLogger("respawn.relay")

FILE_CHANNEL = "file"
MESSAGE_CHANNEL = "message"


class Compiler(Protocol):
    def compile(self, request: CompileRequest) -> None: ...


def parse_request_text(text: str) -> CompileRequest | None:
    """Parse the request file body; ``None`` when it holds no request."""
    lines = text.split("\n")
    if len(lines) < 2 or not lines[1].strip():
        return None
    return CompileRequest(source=lines[0].strip(), compiled_path=lines[1].strip())


class CompileRequestRelay:
    """Deduplicating relay between the child and the compiler.

    Args:
        compiler: Compilation service.
        request_file: On-disk request queue shared with the child.
        on_request: Called from the watch thread with ``(FILE_CHANNEL,
            request)`` whenever the request file holds a request.
        notify: Notification callable for compile failures.
    """

    def __init__(
        self,
        compiler: Compiler,
        request_file: Path,
        on_request: Callable[[str, CompileRequest], None],
        notify: Callable[..., None],
        *,
        poll: bool = False,
        interval: float = 1.0,
    ) -> None:
        self.compiler = compiler
        self.request_file = request_file
        self._on_request = on_request
        self._notify = notify
        self._last: dict[str, str | None] = {FILE_CHANNEL: None, MESSAGE_CHANNEL: None}
        # The child rewrites the file in place; every event must be read.
        self._watch = WatchSet(self._on_file_changed, poll=poll, interval=interval, debounce=0.0)

    # ── Lifecycle ───────────────────────────────────────────────────

    def start(self) -> None:
        self.reset()
        self._watch.start()
        self._watch.add(str(self.request_file))

    def stop(self) -> None:
        self._watch.stop()

    def reset(self) -> None:
        """Truncate the request file and forget what was forwarded."""
        self.request_file.parent.mkdir(parents=True, exist_ok=True)
        self.request_file.write_text("", encoding="utf-8")
        self._last = {FILE_CHANNEL: None, MESSAGE_CHANNEL: None}

    # ── File channel ────────────────────────────────────────────────

    def read_request_file(self) -> CompileRequest | None:
        try:
            text = self.request_file.read_text(encoding="utf-8")
        except OSError as e:
            raise CompileRequestReadError(
                f"Error reading compile request file: {e}", source=str(self.request_file),
            ) from e
        return parse_request_text(text)

    def _on_file_changed(self, _path: str) -> None:
        try:
            request = self.read_request_file()
        except CompileRequestReadError as e:
            logger.error("%s", e)
            return
        if request is not None:
            self._on_request(FILE_CHANNEL, request)

    # ── Forwarding ──────────────────────────────────────────────────

    def should_forward(self, channel: str, request: CompileRequest) -> bool:
        """Record *request* on *channel*; False for empty or repeated paths."""
        if not request.compiled_path:
            return False
        if self._last[channel] == request.compiled_path:
            logger.debug("Duplicate compile request on %s: %s", channel, request.compiled_path)
            return False
        self._last[channel] = request.compiled_path
        return True

    async def relay(self, channel: str, request: CompileRequest) -> bool:
        """Forward *request* to the compiler unless it repeats the last one.

        Returns True when the compiler was invoked.
        """
        if not self.should_forward(channel, request):
            return False
        logger.debug("Compiling %s -> %s (via %s)", request.source, request.compiled_path, channel)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self.compiler.compile, request)
        except CompileError as e:
            self._notify("Compilation failed", str(e), "error")
        return True
