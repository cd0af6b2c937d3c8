"""Unit tests for the child entry point."""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import builtins
import json
import sys
import threading
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from respawn.child.wrap import (
    MODULE_NOT_FOUND,
    LastRequire,
    RequireTracker,
    error_payload,
    install_error_hooks,
    main,
    parse_args,
)
from respawn.supervisor.ipc import parse_message


@pytest.fixture
def channel() -> MagicMock:
    ch = MagicMock(name="channel")
    ch.send.return_value = True
    return ch


@pytest.fixture
def isolated_interpreter(monkeypatch: pytest.MonkeyPatch):
    """Let a test replace interpreter-wide hooks; everything is restored."""
    monkeypatch.setattr(sys, "argv", list(sys.argv))
    monkeypatch.setattr(sys, "path", list(sys.path))
    monkeypatch.setattr(sys, "meta_path", list(sys.meta_path))
    monkeypatch.setattr(builtins, "__import__", builtins.__import__)
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    monkeypatch.setattr(threading, "excepthook", threading.excepthook)


# ── Require tracking ──────────────────────────────────────


class TestRequireTracker:
    def test_reports_newly_loaded_files_once(
        self, tmp_path: Path, channel, isolated_interpreter,
    ):
        (tmp_path / "tracked_mod.py").write_text("VALUE = 1\n", encoding="utf-8")
        sys.path.insert(0, str(tmp_path))
        tracker = RequireTracker(channel)
        sys.meta_path.insert(0, tracker)
        try:
            import tracked_mod  # noqa: F401
        finally:
            sys.modules.pop("tracked_mod", None)

        channel.send.assert_called_once_with({"required": str(tmp_path / "tracked_mod.py")})

        tracker.report(str(tmp_path / "tracked_mod.py"))
        channel.send.assert_called_once()

    def test_builtin_modules_are_not_reported(self, channel, isolated_interpreter):
        tracker = RequireTracker(channel)
        sys.meta_path.insert(0, tracker)
        assert tracker.find_spec("sys", None) is not None
        channel.send.assert_not_called()


class TestLastRequire:
    def _tracker(self) -> LastRequire:
        last = LastRequire()
        last._original = MagicMock(name="__import__")
        return last

    def test_absolute_import(self):
        last = self._tracker()
        last._import("requests", {"__file__": "/proj/a.py"}, None, (), 0)
        assert last.as_dict() == {"filename": "/proj/a.py", "path": "requests"}

    def test_relative_import(self):
        last = self._tracker()
        last._import("missing", {"__file__": "/proj/src/a.py"}, None, ("thing",), 1)
        assert last.as_dict() == {"filename": "/proj/src/a.py", "path": ".missing"}

    def test_from_dot_import_name(self):
        last = self._tracker()
        last._import("", {"__file__": "/proj/src/a.py"}, None, ("sibling",), 2)
        assert last.as_dict() == {"filename": "/proj/src/a.py", "path": "..sibling"}

    def test_imports_without_file_are_not_recorded(self):
        last = self._tracker()
        last._import("json", {}, None, (), 0)
        assert last.as_dict() is None

    def test_delegates_to_original(self):
        last = self._tracker()
        result = last._import("json", None, None, (), 0)
        assert result is last._original.return_value

    def test_install_and_uninstall(self, isolated_interpreter):
        original = builtins.__import__
        last = LastRequire()
        last.install()
        assert builtins.__import__ == last._import
        last.uninstall()
        assert builtins.__import__ is original


# ── Error reporting ───────────────────────────────────────


class TestErrorPayload:
    def test_module_not_found(self):
        last = LastRequire()
        last.filename, last.path = "/proj/src/a.py", ".missing"

        payload = error_payload(ModuleNotFoundError("No module named 'src.missing'"), last, True)

        assert payload == {
            "error": "ModuleNotFoundError",
            "code": MODULE_NOT_FOUND,
            "message": "No module named 'src.missing'",
            "willTerminate": True,
            "lastRequire": {"filename": "/proj/src/a.py", "path": ".missing"},
        }

    def test_from_dot_import_missing_name(self, tmp_path: Path, isolated_interpreter):
        pkg = tmp_path / "relpkg"
        pkg.mkdir()
        (pkg / "__init__.py").write_text("", encoding="utf-8")
        (pkg / "a.py").write_text("from . import missing\n", encoding="utf-8")
        sys.path.insert(0, str(tmp_path))
        last = LastRequire()
        last.install()
        try:
            import relpkg.a  # noqa: F401
        except ImportError as e:
            payload = error_payload(e, last, True)
        else:
            pytest.fail("relative import unexpectedly succeeded")
        finally:
            last.uninstall()
            sys.modules.pop("relpkg.a", None)
            sys.modules.pop("relpkg", None)

        message = parse_message(payload)
        assert message.code == MODULE_NOT_FOUND
        assert message.last_require.path == ".missing"
        assert message.last_require.filename == str(pkg / "a.py")
        assert message.is_relative_module_not_found

    def test_absolute_import_name_error_keeps_its_type(self):
        last = LastRequire()
        last.filename, last.path = "/proj/app.py", "pkg"
        exc = ImportError("cannot import name 'missing' from 'pkg' (/proj/pkg/__init__.py)")

        assert error_payload(exc, last, True)["code"] == "ImportError"

    def test_other_exception(self):
        payload = error_payload(ValueError("bad value"), LastRequire(), False)
        assert payload == {
            "error": "ValueError",
            "code": "ValueError",
            "message": "bad value",
            "willTerminate": False,
        }


class TestErrorHooks:
    def test_uncaught_exception_is_reported_as_terminating(self, channel, isolated_interpreter):
        previous = MagicMock(name="excepthook")
        sys.excepthook = previous
        install_error_hooks(channel, LastRequire())
        exc = RuntimeError("boom")

        sys.excepthook(RuntimeError, exc, None)

        payload = channel.send.call_args.args[0]
        assert payload["code"] == "RuntimeError"
        assert payload["willTerminate"] is True
        previous.assert_called_once_with(RuntimeError, exc, None)

    def test_thread_exception_is_reported_as_non_terminating(self, channel, isolated_interpreter):
        previous = MagicMock(name="threading_excepthook")
        threading.excepthook = previous
        install_error_hooks(channel, LastRequire())
        args = SimpleNamespace(
            exc_type=KeyError, exc_value=KeyError("k"), exc_traceback=None, thread=None,
        )

        threading.excepthook(args)

        assert channel.send.call_args.args[0]["willTerminate"] is False
        previous.assert_called_once_with(args)

    def test_thread_system_exit_is_not_reported(self, channel, isolated_interpreter):
        threading.excepthook = MagicMock()
        install_error_hooks(channel, LastRequire())
        threading.excepthook(SimpleNamespace(
            exc_type=SystemExit, exc_value=SystemExit(0), exc_traceback=None, thread=None,
        ))
        channel.send.assert_not_called()


# ── Entry point ───────────────────────────────────────────


class TestMain:
    def test_parse_args(self):
        args = parse_args(["--hook", "respawn.child.hook", "app.py", "--port", "8000"])
        assert args.hook == "respawn.child.hook"
        assert args.script == "app.py"
        assert args.args == ["--port", "8000"]

    def test_runs_script_as_main(self, tmp_path: Path, channel, isolated_interpreter):
        out = tmp_path / "out.json"
        script = tmp_path / "app.py"
        script.write_text(
            "import json, sys\n"
            "if __name__ == '__main__':\n"
            f"    open({str(out)!r}, 'w').write(json.dumps({{'argv': sys.argv, 'path0': sys.path[0]}}))\n",
            encoding="utf-8",
        )

        with patch("respawn.child.wrap.get_channel", return_value=channel):
            main([str(script), "a", "b"])

        result = json.loads(out.read_text(encoding="utf-8"))
        assert result["argv"] == [str(script), "a", "b"]
        assert result["path0"] == str(tmp_path)
        channel.send.assert_any_call({"required": str(script)})

    def test_installs_hook_module(self, tmp_path: Path, channel, isolated_interpreter):
        script = tmp_path / "app.py"
        script.write_text("", encoding="utf-8")
        hook = MagicMock()

        with patch("respawn.child.wrap.get_channel", return_value=channel), \
             patch("respawn.child.wrap.importlib.import_module", return_value=hook) as imp:
            main(["--hook", "some.hook", str(script)])

        imp.assert_called_once_with("some.hook")
        hook.install.assert_called_once()
