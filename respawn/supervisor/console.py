"""Console input: typing ``rs`` restarts the child."""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import sys
import threading
from collections.abc import Callable
from typing import TextIO

from respawn.supervisor.events import Event, ManualRestart

logger = logging.getLogger(__name__)

RESTART_COMMAND = "rs"


class ConsoleReader:
    """Read lines from *stream* on a daemon thread and post manual restarts.

    The thread cannot be interrupted while blocked on ``readline``; being a
    daemon it simply dies with the supervisor.
    """

    def __init__(self, post: Callable[[Event], None], stream: TextIO | None = None) -> None:
        self.post = post
        self.stream = stream if stream is not None else sys.stdin
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self.run, name="respawn-console", daemon=True)
        self._thread.start()

    def run(self) -> None:
        for line in self.stream:
            if line.strip() == RESTART_COMMAND:
                logger.debug("Manual restart requested")
                self.post(ManualRestart())
        logger.debug("Console input closed")
