"""Notifier: fan-out of restart/error notifications to channels.

``Notifier`` owns a list of ``NotificationChannel`` instances and hands each
notification to all of them.  Delivery is fire-and-forget: the supervisor's
restart sequence must never block on, or fail because of, a notification.
"""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from respawn.config.models import NotificationConfig

logger = logging.getLogger("respawn.notification")

LEVELS = ("info", "warning", "error")


# ── Abstract base ───────────────────────────────────────────


class NotificationChannel(ABC):
    """Abstract base for a notification channel."""

    @property
    @abstractmethod
    def channel_type(self) -> str:
        """Return the channel type identifier (e.g. 'desktop')."""

    @abstractmethod
    def send(self, title: str, message: str | None, level: str = "info") -> None:
        """Deliver a notification."""


# ── Factory ─────────────────────────────────────────────────

_CHANNEL_REGISTRY: dict[str, type[NotificationChannel]] = {}


def register_channel(channel_type: str):
    """Decorator to register a NotificationChannel subclass."""

    def decorator(cls: type[NotificationChannel]) -> type[NotificationChannel]:
        _CHANNEL_REGISTRY[channel_type] = cls
        return cls

    return decorator


def create_channel(channel_type: str) -> NotificationChannel:
    """Instantiate a registered channel by name."""
    cls = _CHANNEL_REGISTRY.get(channel_type)
    if cls is None:
        raise ValueError(f"Unknown notification channel type: {channel_type}")
    return cls()


# ── Notifier ────────────────────────────────────────────────


class Notifier:
    """Fan-out notifier that sends to all configured channels."""

    def __init__(self, channels: list[NotificationChannel]) -> None:
        self._channels = channels

    @classmethod
    def from_config(cls, config: NotificationConfig) -> Notifier:
        """Build a notifier from the notification section of the config.

        The ``log`` channel is always present; other channels only when
        notifications are enabled.
        """
        _ensure_channels_registered()

        names = ["log"]
        if config.enabled:
            names += [n for n in config.channels if n != "log"]

        channels: list[NotificationChannel] = []
        for name in names:
            try:
                channels.append(create_channel(name))
            except ValueError:
                logger.warning("Skipping unknown notification channel: %s", name)
        return cls(channels)

    @property
    def channel_count(self) -> int:
        return len(self._channels)

    def notify(self, title: str, message: str | None = None, level: str = "info") -> None:
        """Send a notification to every channel.

        Failed channels are logged instead of raising.
        """
        if level not in LEVELS:
            level = "info"
        for ch in self._channels:
            try:
                ch.send(title, message, level)
            except Exception as e:
                logger.error("Notification failed for %s: %s", ch.channel_type, e)

    # Allow the notifier to be passed wherever a plain callable is expected.
    __call__ = notify


_builtins_registered = False


def _ensure_channels_registered() -> None:
    """Import all built-in channel modules so they register themselves."""
    global _builtins_registered
    if _builtins_registered:
        return
    _builtins_registered = True
    import respawn.notification.channels.desktop  # noqa: F401
    import respawn.notification.channels.log  # noqa: F401
