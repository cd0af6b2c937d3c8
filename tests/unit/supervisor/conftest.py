"""Fixtures shared by the supervisor unit tests."""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import asyncio
from collections.abc import Callable
from unittest.mock import MagicMock

import pytest

from respawn.supervisor.ipc import ChildChannel
from respawn.supervisor.state import ChildHandle


class FakeProcess:
    """Stand-in for ``asyncio.subprocess.Process`` that exits on demand."""

    def __init__(self, pid: int = 4242) -> None:
        self.pid = pid
        self.returncode: int | None = None
        self.signals: list[int] = []
        self._exited = asyncio.Event()

    async def wait(self) -> int:
        await self._exited.wait()
        return self.returncode

    def send_signal(self, sig: int) -> None:
        self.signals.append(sig)

    def exit(self, code: int) -> None:
        self.returncode = code
        self._exited.set()


@pytest.fixture
def fake_process() -> Callable[..., FakeProcess]:
    return FakeProcess


@pytest.fixture
def make_handle() -> Callable[..., ChildHandle]:
    """Build a ChildHandle around a FakeProcess and a mocked channel."""

    def _make(
        generation: int = 1,
        pid: int = 4242,
        connected: bool | None = True,
        respawn: bool = False,
    ) -> ChildHandle:
        channel = MagicMock(spec=ChildChannel)
        channel.connected = connected
        return ChildHandle(
            generation=generation,
            process=FakeProcess(pid),
            channel=channel,
            respawn=respawn,
        )

    return _make


@pytest.fixture
def events() -> list:
    """Collected events; pass ``events.append`` as the ``post`` callable."""
    return []
