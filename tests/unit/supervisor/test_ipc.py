"""
Unit tests for the supervisor side of the child IPC channel.
"""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from respawn.child.channel import ParentChannel
from respawn.exceptions import MalformedMessageError
from respawn.supervisor.ipc import (
    ChildChannel,
    CompileRequestMessage,
    ErrorMessage,
    RequiredMessage,
    decode_line,
    parse_message,
)


# ── Protocol Tests ────────────────────────────────────────────────

def test_parse_required_message():
    msg = parse_message({"required": "/proj/app.py"})
    assert isinstance(msg, RequiredMessage)
    assert msg.required == "/proj/app.py"


def test_parse_error_message_with_last_require():
    msg = parse_message({
        "error": "ModuleNotFoundError",
        "code": "MODULE_NOT_FOUND",
        "message": "No module named 'src.missing'",
        "lastRequire": {"filename": "/proj/src/a.py", "path": ".missing"},
        "willTerminate": True,
    })
    assert isinstance(msg, ErrorMessage)
    assert msg.error == "ModuleNotFoundError"
    assert msg.last_require.filename == "/proj/src/a.py"
    assert msg.will_terminate is True
    assert msg.is_relative_module_not_found


def test_error_message_defaults():
    msg = parse_message({"code": "ValueError"})
    assert isinstance(msg, ErrorMessage)
    assert msg.message == ""
    assert msg.last_require is None
    assert msg.will_terminate is False
    assert not msg.is_relative_module_not_found


def test_absolute_module_not_found_is_not_relative():
    msg = parse_message({
        "code": "MODULE_NOT_FOUND",
        "lastRequire": {"filename": "/proj/a.py", "path": "requests"},
    })
    assert not msg.is_relative_module_not_found


def test_parse_compile_request_message():
    msg = parse_message({"compiledPath": "/cache/ab/a.pyc", "compile": "/proj/a.py"})
    assert isinstance(msg, CompileRequestMessage)
    assert msg.compiled_path == "/cache/ab/a.pyc"
    assert msg.compile == "/proj/a.py"


def test_extra_keys_are_ignored():
    msg = parse_message({"required": "/proj/a.py", "extra": 1})
    assert isinstance(msg, RequiredMessage)


@pytest.mark.parametrize("data", [
    ["required", "/proj/a.py"],
    {"unknown": 1},
    {"required": 42},
    {"code": "X", "willTerminate": "maybe"},
    {"compiledPath": "", "compile": "/proj/a.py"},
    {"code": "MODULE_NOT_FOUND", "lastRequire": {"filename": "/a.py"}},
])
def test_malformed_messages_are_rejected(data):
    with pytest.raises(MalformedMessageError):
        parse_message(data)


def test_decode_line_rejects_invalid_json():
    with pytest.raises(MalformedMessageError):
        decode_line("{not json")


def test_decode_line():
    msg = decode_line(json.dumps({"required": "/proj/a.py"}))
    assert isinstance(msg, RequiredMessage)


# ── Channel Tests ─────────────────────────────────────────────────

async def _wait_for(predicate, timeout: float = 2.0) -> None:
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_channel_receives_messages(socket_dir: Path):
    received = []
    channel = ChildChannel(socket_dir / "child.sock", received.append)
    await channel.start()
    assert channel.connected is None

    client = ParentChannel(str(channel.socket_path))
    assert client.connect()
    assert client.send({"required": "/proj/a.py"})
    assert client.send({"compiledPath": "/c/a.pyc", "compile": "/proj/a.py"})

    await _wait_for(lambda: len(received) == 2)
    assert channel.connected is True
    assert isinstance(received[0], RequiredMessage)
    assert isinstance(received[1], CompileRequestMessage)

    client.close()
    await _wait_for(lambda: channel.hangup.is_set())
    assert channel.connected is False

    await channel.close()
    assert not channel.socket_path.exists()


@pytest.mark.asyncio
async def test_channel_drops_malformed_lines(socket_dir: Path):
    received = []
    channel = ChildChannel(socket_dir / "child.sock", received.append)
    await channel.start()

    client = ParentChannel(str(channel.socket_path))
    client.connect()
    client._sock.sendall(b"garbage\n{\"unknown\": true}\n")
    client.send({"required": "/proj/b.py"})

    await _wait_for(lambda: len(received) == 1)
    assert received[0].required == "/proj/b.py"

    client.close()
    await channel.close()


@pytest.mark.asyncio
async def test_disconnect_stops_delivery(socket_dir: Path):
    received = []
    channel = ChildChannel(socket_dir / "child.sock", received.append)
    await channel.start()

    client = ParentChannel(str(channel.socket_path))
    client.connect()
    client.send({"required": "/proj/a.py"})
    await _wait_for(lambda: len(received) == 1)

    channel.disconnect()
    assert channel.connected is False
    client.send({"required": "/proj/b.py"})
    await asyncio.sleep(0.05)
    assert len(received) == 1

    client.close()
    await channel.close()


@pytest.mark.asyncio
async def test_close_without_connection(socket_dir: Path):
    channel = ChildChannel(socket_dir / "child.sock", lambda m: None)
    await channel.start()
    assert channel.socket_path.exists()
    await channel.close()
    assert channel.connected is False
    assert not channel.socket_path.exists()
