"""Bytecode compilation service.

The child's import hook asks for project sources to be compiled into the
cache directory; this module does the compiling on the supervisor side so a
restarted child finds fresh bytecode for everything it loaded before.

Failed compilations leave an error marker next to the compiled path: the
child then falls back to the regular source loader, which raises the real
``SyntaxError`` inside the user's program.
"""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import os
import py_compile
import shutil
from dataclasses import dataclass
from pathlib import Path

from respawn.child.cache import error_marker_for
from respawn.child.channel import ENV_CACHE_DIR, ENV_COMPILE_TIMEOUT, ENV_REQUEST_FILE
from respawn.config.models import CompileConfig, load_config
from respawn.exceptions import CompileError

logger = logging.getLogger("respawn.compiler")

CHILD_HOOK = "respawn.child.hook"
SOURCE_EXTENSIONS = (".py", ".pyw")
REQUEST_FILENAME = "compile-req"


@dataclass(frozen=True)
class CompileRequest:
    """Compile *source* into *compiled_path*; identified by the latter."""
    source: str
    compiled_path: str


class BytecodeCompiler:
    """Compile sources requested by the child into ``cache_dir``.

    Args:
        cache_dir: Directory holding compiled files; wiped by :meth:`init`.
        config_path: Build-configuration file; its ``compile`` section is
            re-read on every :meth:`init`.  A change to this file makes the
            supervisor re-initialize the compiler.
        options: Initial options (used when *config_path* does not exist).
        request_file: File the child writes compile requests to when its
            socket is unavailable.  Lives outside *cache_dir* so that
            :meth:`init` leaves it and its directory watch in place
            (default: next to *cache_dir*).
    """

    child_hook = CHILD_HOOK
    source_extensions = SOURCE_EXTENSIONS

    def __init__(
        self,
        cache_dir: Path,
        config_path: Path | None = None,
        options: CompileConfig | None = None,
        request_file: Path | None = None,
    ) -> None:
        self.cache_dir = cache_dir
        self._request_file = request_file or cache_dir.parent / REQUEST_FILENAME
        self.config_path = str(config_path.resolve()) if config_path else None
        self.options = options or CompileConfig()
        # source path -> compiled path, for every source compiled so far
        self._compiled: dict[str, str] = {}

    @property
    def compile_request_file(self) -> Path:
        return self._request_file

    @property
    def timeout(self) -> float:
        return self.options.timeout

    def init(self) -> None:
        """(Re)load options and start from an empty cache."""
        if self.config_path and os.path.isfile(self.config_path):
            self.options = load_config(Path(self.config_path)).compile
        if self.cache_dir.exists():
            shutil.rmtree(self.cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self._compiled.clear()
        logger.debug(
            "Compiler initialized: cache=%s optimize=%d", self.cache_dir, self.options.optimize,
        )

    def compile(self, request: CompileRequest) -> None:
        """Compile ``request.source`` to ``request.compiled_path``.

        Raises:
            CompileError: The source could not be compiled.  The error marker
                has been written before raising.
        """
        marker = error_marker_for(request.compiled_path)
        os.makedirs(os.path.dirname(request.compiled_path), exist_ok=True)
        self._compiled[os.path.abspath(request.source)] = request.compiled_path
        try:
            py_compile.compile(
                request.source,
                cfile=request.compiled_path,
                dfile=request.source,
                doraise=True,
                optimize=self.options.optimize,
            )
        except (py_compile.PyCompileError, OSError) as e:
            msg = getattr(e, "msg", None) or str(e)
            with open(marker, "w", encoding="utf-8") as f:
                f.write(msg)
            raise CompileError(msg, source=request.source) from e

        if os.path.exists(marker):
            os.unlink(marker)
        logger.debug("Compiled %s", request.source)

    def compile_changed(self, path: str) -> bool:
        """Recompile *path* if it was compiled before; False otherwise."""
        if not path:
            return False
        compiled = self._compiled.get(os.path.abspath(path))
        if compiled is None:
            return False
        self.compile(CompileRequest(source=path, compiled_path=compiled))
        return True

    def child_env(self) -> dict[str, str]:
        """Environment variables the child's compile hook reads."""
        return {
            ENV_CACHE_DIR: str(self.cache_dir),
            ENV_REQUEST_FILE: str(self.compile_request_file),
            ENV_COMPILE_TIMEOUT: str(self.timeout),
        }
