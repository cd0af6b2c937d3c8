"""Desktop notification channel backed by ``notify-send`` (libnotify)."""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import shutil
import subprocess

from respawn.notification.notifier import NotificationChannel, register_channel

logger = logging.getLogger("respawn.notification.desktop")

_URGENCY_MAP = {
    "info": "low",
    "warning": "normal",
    "error": "critical",
}


@register_channel("desktop")
class DesktopChannel(NotificationChannel):
    """Pop up a desktop notification; silently disabled without notify-send."""

    def __init__(self) -> None:
        self._binary = shutil.which("notify-send")
        if self._binary is None:
            logger.debug("notify-send not found, desktop notifications disabled")

    @property
    def channel_type(self) -> str:
        return "desktop"

    def send(self, title: str, message: str | None, level: str = "info") -> None:
        if self._binary is None:
            return
        cmd = [
            self._binary,
            "--app-name=respawn",
            f"--urgency={_URGENCY_MAP.get(level, 'low')}",
            title[:256],
        ]
        if message:
            cmd.append(message[:1024])
        # Not waited on: the restart sequence must not block on the desktop.
        subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
