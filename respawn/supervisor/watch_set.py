"""Watch set: the files whose modification restarts the child.

watchdog observes directories, so every watched file schedules its parent
directory once and events are filtered down to the registered paths.
Callbacks run on watchdog's observer thread; the supervisor passes
thread-safe callbacks that only enqueue events.
"""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import errno
import logging
import os
import threading
import time
from collections.abc import Callable, Iterable

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver, ObservedWatch
from watchdog.observers.polling import PollingObserver

logger = logging.getLogger("respawn.watch")

# Event kinds that count as a change (opened/closed-no-write do not).
CHANGE_EVENT_TYPES = frozenset({
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
})

# errno values raised by inotify when its per-user limits are exhausted
_LIMIT_ERRNOS = frozenset({errno.ENOSPC, errno.EMFILE})


def _normalize(path: str) -> str:
    return os.path.normpath(os.path.abspath(path))


def _event_paths(event: FileSystemEvent) -> list[str]:
    paths = [os.fsdecode(event.src_path)]
    dest = getattr(event, "dest_path", "")
    if dest:
        paths.append(os.fsdecode(dest))
    return paths


class _ChangeHandler(FileSystemEventHandler):
    """Forward change events for files to a callback."""

    def __init__(self, on_path: Callable[[str], None]) -> None:
        super().__init__()
        self._on_path = on_path

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in CHANGE_EVENT_TYPES:
            return
        for path in _event_paths(event):
            self._on_path(path)


# ── Auxiliary watch ─────────────────────────────────────────────────


class AuxiliaryWatch:
    """Short-lived watch on files that do not exist yet.

    Created for unresolved relative imports: the candidate source files are
    watched so that creating one restarts the child.
    """

    def __init__(
        self,
        paths: Iterable[str],
        on_change: Callable[[str], None],
        observer: BaseObserver | None = None,
    ) -> None:
        self.paths = frozenset(_normalize(p) for p in paths)
        self._on_change = on_change
        self._observer = observer if observer is not None else Observer()
        handler = _ChangeHandler(self._dispatch)
        for directory in sorted({os.path.dirname(p) for p in self.paths}):
            if not os.path.isdir(directory):
                logger.debug("Auxiliary watch skipped, no directory: %s", directory)
                continue
            self._observer.schedule(handler, directory, recursive=False)
        self._observer.start()

    def _dispatch(self, path: str) -> None:
        path = _normalize(path)
        if path in self.paths:
            logger.debug("Auxiliary watch fired: %s", path)
            self._on_change(path)

    def close(self) -> None:
        self._observer.stop()
        self._observer.join(timeout=5.0)


# ── WatchSet ────────────────────────────────────────────────────────


class WatchSet:
    """Set of watched files plus auxiliary watches.

    Args:
        on_change: Called with the path of a changed file.
        on_fallback: Called with the number of watched files when the native
            observer ran out of handles and polling took over.
        poll: Start with the polling observer.
        interval: Polling interval in seconds.
        debounce: Repeated events for one path within this many seconds are
            collapsed into one.
    """

    def __init__(
        self,
        on_change: Callable[[str], None],
        on_fallback: Callable[[int], None] | None = None,
        *,
        poll: bool = False,
        interval: float = 1.0,
        debounce: float = 0.01,
    ) -> None:
        self._on_change = on_change
        self._on_fallback = on_fallback
        self._interval = interval
        self._debounce = debounce
        self.polling = poll

        self.paths: set[str] = set()
        self.directories: set[str] = set()  # watched recursively
        self.auxiliary: list[AuxiliaryWatch] = []
        self._watches: dict[str, ObservedWatch] = {}
        self._last_emit: dict[str, float] = {}
        self._lock = threading.Lock()
        self._handler = _ChangeHandler(self._dispatch)
        self._observer: BaseObserver | None = None

    # ── Start/Stop ──────────────────────────────────────────────────

    def _make_observer(self) -> BaseObserver:
        if self.polling:
            return PollingObserver(timeout=self._interval)
        return Observer()

    def start(self) -> None:
        if self._observer is not None:
            return
        self._observer = self._make_observer()
        self._observer.start()

    def stop(self) -> None:
        self.close_auxiliary()
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._observer = None

    # ── Main set ────────────────────────────────────────────────────

    def add(self, path: str) -> None:
        """Watch *path*; idempotent.  A directory is watched recursively."""
        path = _normalize(path)
        if os.path.isdir(path):
            self.add_directory(path)
            return
        with self._lock:
            if path in self.paths:
                return
            self.paths.add(path)
        directory = os.path.dirname(path)
        if directory in self._watches:
            return
        self._schedule(directory)

    def add_directory(self, directory: str) -> None:
        directory = _normalize(directory)
        with self._lock:
            if directory in self.directories:
                return
            self.directories.add(directory)
        self._schedule(directory, recursive=True)

    def _schedule(self, directory: str, recursive: bool = False) -> None:
        if self._observer is None:
            self.start()
        try:
            self._watches[directory] = self._observer.schedule(
                self._handler, directory, recursive=recursive,
            )
        except FileNotFoundError:
            logger.debug("Not watching missing directory: %s", directory)
        except OSError as e:
            if e.errno not in _LIMIT_ERRNOS or self.polling:
                raise
            self._fall_back_to_polling()

    def _fall_back_to_polling(self) -> None:
        """Replace the native observer by a polling one and reschedule."""
        logger.debug("Native watch limit reached, switching to polling")
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5.0)
            self._observer = None
        self.polling = True
        self._watches.clear()
        self.start()
        with self._lock:
            directories = {os.path.dirname(p) for p in self.paths}
            trees = set(self.directories)
        for directory in sorted(directories - trees):
            self._schedule(directory)
        for directory in sorted(trees):
            self._schedule(directory, recursive=True)
        if self._on_fallback is not None:
            self._on_fallback(len(self.paths))

    def remove_all(self) -> None:
        """Forget every watched file (auxiliary watches are untouched)."""
        if self._observer is not None:
            self._observer.unschedule_all()
        self._watches.clear()
        with self._lock:
            self.paths.clear()
            self.directories.clear()
            self._last_emit.clear()

    def _dispatch(self, path: str) -> None:
        path = _normalize(path)
        now = time.monotonic()
        with self._lock:
            if path not in self.paths and not self._in_directory(path):
                return
            last = self._last_emit.get(path)
            if last is not None and now - last < self._debounce:
                return
            self._last_emit[path] = now
        logger.debug("Watched file changed: %s", path)
        self._on_change(path)

    def _in_directory(self, path: str) -> bool:
        return any(path.startswith(d + os.sep) for d in self.directories)

    # ── Auxiliary watches ───────────────────────────────────────────

    def add_auxiliary(self, paths: Iterable[str], on_change: Callable[[str], None]) -> AuxiliaryWatch:
        watch = AuxiliaryWatch(paths, on_change)
        self.auxiliary.append(watch)
        return watch

    def close_auxiliary(self) -> None:
        """Close every auxiliary watch; the main set is left alone."""
        watches, self.auxiliary = self.auxiliary, []
        for watch in watches:
            watch.close()
