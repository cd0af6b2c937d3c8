# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Any

logger = logging.getLogger("respawn.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="respawn",
        description="Respawn - restart a Python script when the files it imports change",
    )
    parser.add_argument(
        "--config", default=None, metavar="PATH",
        help="Config file (default: ./.respawn.json if present)",
    )

    # ── Dependency depth ─────────────────────────────────
    deps = parser.add_mutually_exclusive_group()
    deps.add_argument(
        "--deps", type=int, default=None, metavar="N",
        help="Watch installed packages up to nesting level N (default: 1)",
    )
    deps.add_argument(
        "--all-deps", dest="deps", action="store_const", const=-1,
        help="Watch installed packages at any depth",
    )
    deps.add_argument(
        "--no-deps", dest="deps", action="store_const", const=0,
        help="Watch project files only",
    )

    # ── Watching ─────────────────────────────────────────
    parser.add_argument(
        "--ignore", action="append", default=[], metavar="RULE",
        help="Never watch paths starting with RULE; 're:PATTERN' for a regex (repeatable)",
    )
    parser.add_argument(
        "--watch", action="append", default=[], metavar="PATHS",
        help="Comma separated extra files or directories to watch",
    )
    parser.add_argument("--poll", action="store_true", default=None, help="Use polling to watch files")
    parser.add_argument("--interval", type=float, default=None, help="Polling interval in seconds")
    parser.add_argument("--debounce", type=float, default=None, help="Debounce window in seconds")

    # ── Child process ────────────────────────────────────
    parser.add_argument(
        "--respawn", action="store_true", default=None,
        help="Keep watching after the script exits",
    )
    parser.add_argument(
        "--clear", action="store_true", default=None,
        help="Clear the screen before each restart",
    )
    parser.add_argument(
        "--tree-kill", action="store_true", default=None,
        help="Terminate the whole child process tree on restart",
    )
    parser.add_argument(
        "--no-rs", dest="rs", action="store_false", default=None,
        help="Do not restart on 'rs' typed into the console",
    )
    parser.add_argument(
        "--no-notify", dest="notify", action="store_false", default=None,
        help="Disable desktop notifications",
    )
    parser.add_argument(
        "--no-compile", dest="compile", action="store_false", default=None,
        help="Load sources directly instead of through the compile cache",
    )
    parser.add_argument(
        "--interpreter-arg", action="append", default=[], metavar="ARG",
        help="Extra argument for the child interpreter (repeatable)",
    )

    # ── Logging ──────────────────────────────────────────
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--debug", action="store_true", help="Log debug information")
    verbosity.add_argument("--quiet", action="store_true", help="Only log warnings and errors")

    parser.add_argument("script", help="Script to run")
    parser.add_argument("args", nargs=argparse.REMAINDER, help="Arguments for the script")
    return parser


def _split_watch(values: list[str]) -> list[str]:
    return [p.strip() for v in values for p in v.split(",") if p.strip()]


def collect_overrides(args: argparse.Namespace, config: Any) -> dict[str, Any]:
    """Map parsed options onto config keys; unset options are None."""
    from respawn.config.models import parse_ignore_option

    level = None
    if args.debug:
        level = "DEBUG"
    elif args.quiet:
        level = "WARNING"

    ignore = [parse_ignore_option(v) for v in args.ignore]
    watch = _split_watch(args.watch)
    return {
        "deps": args.deps,
        "ignore": [*config.ignore, *ignore] if ignore else None,
        "watch": [*config.watch, *watch] if watch else None,
        "respawn": args.respawn,
        "clear": args.clear,
        "tree_kill": args.tree_kill,
        "rs": args.rs,
        "interpreter_args": args.interpreter_arg or None,
        "log_level": level,
        "watcher.poll": args.poll,
        "watcher.interval": args.interval,
        "watcher.debounce": args.debounce,
        "notification.enabled": args.notify,
        "compile.enabled": args.compile,
    }


def cli_main(argv: list[str] | None = None) -> None:
    from dotenv import load_dotenv

    load_dotenv()

    from respawn.logging_config import setup_logging

    setup_logging(level=os.environ.get("RESPAWN_LOG_LEVEL", "INFO"))

    args = build_parser().parse_args(argv)
    sys.exit(_run(args))


def _run(args: argparse.Namespace) -> int:
    import asyncio

    from respawn.config.models import get_config_path, load_config, merge_overrides
    from respawn.exceptions import ConfigError
    from respawn.logging_config import setup_logging
    from respawn.supervisor.manager import Supervisor
    from respawn.supervisor.process_handle import resolve_main

    config_path = Path(args.config) if args.config else get_config_path()
    try:
        config = load_config(config_path, required=args.config is not None)
        config = merge_overrides(config, collect_overrides(args, config))
    except ConfigError as e:
        logger.error("%s", e)
        return 1

    setup_logging(
        level=config.log_level,
        log_dir=Path(config.log_dir).expanduser() if config.log_dir else None,
    )

    try:
        script = resolve_main(args.script)
    except (ValueError, FileNotFoundError) as e:
        logger.error("%s", e)
        return 1

    supervisor = Supervisor(config, script, args.args, config_path=config_path)
    return asyncio.run(supervisor.run())
