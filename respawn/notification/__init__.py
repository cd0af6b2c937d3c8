"""User-facing notifications (restart announcements, child errors)."""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from respawn.notification.notifier import NotificationChannel, Notifier

__all__ = ["NotificationChannel", "Notifier"]
