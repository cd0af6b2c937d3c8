"""Unit tests for the notification fan-out and its built-in channels."""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from respawn.config.models import NotificationConfig
from respawn.notification.channels.desktop import DesktopChannel
from respawn.notification.channels.log import LogChannel
from respawn.notification.notifier import Notifier, create_channel


# ── Helpers ───────────────────────────────────────────────────


def _mock_channel(name: str = "mock") -> MagicMock:
    ch = MagicMock()
    ch.channel_type = name
    return ch


def _types(notifier: Notifier) -> list[str]:
    return [ch.channel_type for ch in notifier._channels]


# ── Notifier ──────────────────────────────────────────────────


class TestFromConfig:
    def test_default_channels(self):
        notifier = Notifier.from_config(NotificationConfig())
        assert _types(notifier) == ["log", "desktop"]

    def test_disabled_keeps_log_only(self):
        notifier = Notifier.from_config(NotificationConfig(enabled=False))
        assert _types(notifier) == ["log"]

    def test_log_is_not_duplicated(self):
        notifier = Notifier.from_config(NotificationConfig(channels=["log", "log"]))
        assert _types(notifier) == ["log"]

    def test_unknown_channel_is_skipped(self, caplog):
        with caplog.at_level(logging.WARNING, logger="respawn.notification"):
            notifier = Notifier.from_config(NotificationConfig(channels=["pager"]))
        assert notifier.channel_count == 1
        assert "pager" in caplog.text

    def test_create_unknown_channel(self):
        with pytest.raises(ValueError):
            create_channel("pager")


class TestNotify:
    def test_fans_out_to_all_channels(self):
        a, b = _mock_channel("a"), _mock_channel("b")
        Notifier([a, b]).notify("Restarting", "a.py has been modified")
        a.send.assert_called_once_with("Restarting", "a.py has been modified", "info")
        b.send.assert_called_once_with("Restarting", "a.py has been modified", "info")

    def test_callable_with_positional_level(self):
        ch = _mock_channel()
        Notifier([ch])("ValueError", "bad value", "error")
        ch.send.assert_called_once_with("ValueError", "bad value", "error")

    def test_unknown_level_becomes_info(self):
        ch = _mock_channel()
        Notifier([ch]).notify("Title", None, "fatal")
        ch.send.assert_called_once_with("Title", None, "info")

    def test_channel_failure_is_logged(self, caplog):
        broken = _mock_channel("broken")
        broken.send.side_effect = RuntimeError("no display")
        ok = _mock_channel("ok")

        with caplog.at_level(logging.ERROR, logger="respawn.notification"):
            Notifier([broken, ok]).notify("Restarting")

        ok.send.assert_called_once()
        assert "Notification failed for broken" in caplog.text


# ── Channels ──────────────────────────────────────────────────


class TestLogChannel:
    def test_title_and_message(self, caplog):
        with caplog.at_level(logging.INFO, logger="respawn"):
            LogChannel().send("Restarting", "a.py has been modified", "info")
        assert "Restarting: a.py has been modified" in caplog.text

    def test_error_level(self, caplog):
        with caplog.at_level(logging.INFO, logger="respawn"):
            LogChannel().send("ValueError", "bad value", "error")
        assert caplog.records[-1].levelno == logging.ERROR

    def test_title_only(self, caplog):
        with caplog.at_level(logging.INFO, logger="respawn"):
            LogChannel().send("Restarting", None)
        assert caplog.records[-1].getMessage() == "Restarting"


class TestDesktopChannel:
    def test_no_binary_is_a_noop(self):
        with patch("respawn.notification.channels.desktop.shutil.which", return_value=None), \
             patch("respawn.notification.channels.desktop.subprocess.Popen") as popen:
            DesktopChannel().send("Restarting", "a.py has been modified")
        popen.assert_not_called()

    def test_invokes_notify_send(self):
        with patch("respawn.notification.channels.desktop.shutil.which",
                   return_value="/usr/bin/notify-send"), \
             patch("respawn.notification.channels.desktop.subprocess.Popen") as popen:
            DesktopChannel().send("ValueError", "bad value", "error")

        cmd = popen.call_args.args[0]
        assert cmd == [
            "/usr/bin/notify-send",
            "--app-name=respawn",
            "--urgency=critical",
            "ValueError",
            "bad value",
        ]
        assert popen.call_args.kwargs["stdout"] is subprocess.DEVNULL

    def test_long_title_is_truncated(self):
        with patch("respawn.notification.channels.desktop.shutil.which",
                   return_value="/usr/bin/notify-send"), \
             patch("respawn.notification.channels.desktop.subprocess.Popen") as popen:
            DesktopChannel().send("x" * 1000, None)

        cmd = popen.call_args.args[0]
        assert len(cmd[-1]) == 256
        assert cmd[2] == "--urgency=low"
