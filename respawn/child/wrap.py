"""
Child process entry point: runs the user's script under supervision.

Usage:
    python -m respawn.child.wrap [--hook respawn.child.hook] script.py [args...]

Before the script runs, the wrapper
- connects to the supervisor socket,
- imports the compile hook module (if any) and calls its ``install()``,
- reports every newly loaded file as ``{"required": path}``,
- remembers the last import statement so an unresolved relative import can
  be reported together with the file that attempted it,
- reports uncaught exceptions as ``{"code", "message", ...}``.
"""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import argparse
import builtins
import importlib
import os
import runpy
import sys
import threading
from importlib.abc import MetaPathFinder
from importlib.machinery import ModuleSpec
from typing import Any

from respawn.child.channel import ParentChannel, get_channel

MODULE_NOT_FOUND = "MODULE_NOT_FOUND"


# ── Require tracking ─────────────────────────────────────────────

class RequireTracker(MetaPathFinder):
    """Report the file behind every module the child loads.

    Sits first on ``sys.meta_path`` and asks the remaining finders for the
    spec, so it sees every import that is not already in ``sys.modules``.
    """

    def __init__(self, channel: ParentChannel) -> None:
        self.channel = channel
        self._reported: set[str] = set()

    def report(self, path: str) -> None:
        path = os.path.abspath(path)
        if path in self._reported:
            return
        self._reported.add(path)
        self.channel.send({"required": path})

    def find_spec(self, fullname, path, target=None) -> ModuleSpec | None:
        for finder in sys.meta_path:
            if finder is self:
                continue
            find_spec = getattr(finder, "find_spec", None)
            if find_spec is None:
                continue
            spec = find_spec(fullname, path, target)
            if spec is None:
                continue
            if spec.has_location and spec.origin:
                self.report(spec.origin)
            return spec
        return None


class LastRequire:
    """Wrap ``__import__`` to remember the last import statement executed."""

    def __init__(self) -> None:
        self.filename: str | None = None
        self.path: str | None = None
        self._original = builtins.__import__

    def install(self) -> None:
        builtins.__import__ = self._import

    def uninstall(self) -> None:
        builtins.__import__ = self._original

    def _import(self, name, globals=None, locals=None, fromlist=(), level=0):
        filename = (globals or {}).get("__file__")
        if filename:
            if level and not name and fromlist:
                # from . import name
                spec = "." * level + str(fromlist[0])
            else:
                spec = "." * level + name
            self.filename, self.path = filename, spec
        return self._original(name, globals, locals, fromlist, level)

    def as_dict(self) -> dict[str, str] | None:
        if self.filename is None or self.path is None:
            return None
        return {"filename": self.filename, "path": self.path}


# ── Error reporting ──────────────────────────────────────────────

def _is_unresolved_relative(exc: BaseException, last_require: LastRequire | None) -> bool:
    """Whether *exc* is ``from . import name`` failing to find ``name``.

    That form raises a plain ``ImportError`` rather than
    ``ModuleNotFoundError`` when the package has no such submodule.
    """
    if type(exc) is not ImportError or last_require is None:
        return False
    path = last_require.path or ""
    if not path.startswith("."):
        return False
    name = path.lstrip(".").rpartition(".")[2]
    return bool(name) and f"cannot import name {name!r}" in str(exc)


def error_payload(
    exc: BaseException,
    last_require: LastRequire | None,
    will_terminate: bool,
) -> dict[str, Any]:
    """Build the ``error`` message for an uncaught exception."""
    if isinstance(exc, ModuleNotFoundError) or _is_unresolved_relative(exc, last_require):
        code = MODULE_NOT_FOUND
    else:
        code = type(exc).__name__
    payload: dict[str, Any] = {
        "error": type(exc).__name__,
        "code": code,
        "message": str(exc),
        "willTerminate": will_terminate,
    }
    if last_require is not None and last_require.as_dict() is not None:
        payload["lastRequire"] = last_require.as_dict()
    return payload


def install_error_hooks(channel: ParentChannel, last_require: LastRequire) -> None:
    """Report uncaught exceptions, then let the default hooks print them.

    An exception escaping the main thread ends the interpreter on its own
    (``willTerminate``); one escaping a worker thread leaves the process
    running, so the supervisor has to terminate it.
    """
    original_excepthook = sys.excepthook
    original_threading_hook = threading.excepthook

    def excepthook(exc_type, exc, tb):
        channel.send(error_payload(exc, last_require, will_terminate=True))
        original_excepthook(exc_type, exc, tb)

    def threading_excepthook(args):
        if args.exc_type is not SystemExit and args.exc_value is not None:
            channel.send(error_payload(args.exc_value, last_require, will_terminate=False))
        original_threading_hook(args)

    sys.excepthook = excepthook
    threading.excepthook = threading_excepthook


# ── Entry point ──────────────────────────────────────────────────

def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="respawn.child.wrap")
    parser.add_argument("--hook", default=None, help="Compile hook module to install")
    parser.add_argument("script")
    parser.add_argument("args", nargs=argparse.REMAINDER)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    channel = get_channel()

    if args.hook:
        importlib.import_module(args.hook).install()

    tracker = RequireTracker(channel)
    sys.meta_path.insert(0, tracker)
    last_require = LastRequire()
    last_require.install()
    install_error_hooks(channel, last_require)

    script = os.path.abspath(args.script)
    tracker.report(script)
    sys.argv = [script, *args.args]
    sys.path[0] = os.path.dirname(script)
    runpy.run_path(script, run_name="__main__")


if __name__ == "__main__":
    main()
