"""Log channel: every notification also lands in the supervisor log."""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging

from respawn.notification.notifier import NotificationChannel, register_channel

logger = logging.getLogger("respawn")

_LEVEL_MAP = {
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@register_channel("log")
class LogChannel(NotificationChannel):
    @property
    def channel_type(self) -> str:
        return "log"

    def send(self, title: str, message: str | None, level: str = "info") -> None:
        if message:
            logger.log(_LEVEL_MAP.get(level, logging.INFO), "%s: %s", title, message)
        else:
            logger.log(_LEVEL_MAP.get(level, logging.INFO), "%s", title)
