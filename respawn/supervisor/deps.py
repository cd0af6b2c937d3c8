"""
Dependency depth filter: decides whether a file the child imported is watched.

The nesting level of a path is the number of ``site-packages`` directories in
it up to the last one, so project files are level 0, installed packages are
level 1 and packages vendored inside installed packages are level 2+.
"""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Union

from respawn.config.models import DEPS_UNLIMITED, RegexRule

PACKAGE_BOUNDARY = "site-packages"


# ── Ignore matchers ──────────────────────────────────────────────────

@dataclass(frozen=True)
class PrefixMatcher:
    """Literal path prefix."""
    prefix: str

    def matches(self, path: str) -> bool:
        return path.startswith(self.prefix)


@dataclass(frozen=True)
class PatternMatcher:
    """Regular expression searched anywhere in the path."""
    pattern: re.Pattern[str]

    def matches(self, path: str) -> bool:
        return self.pattern.search(path) is not None


IgnoreMatcher = Union[PrefixMatcher, PatternMatcher]


def compile_ignore_rules(
    rules: Iterable[str | re.Pattern[str] | RegexRule],
) -> tuple[IgnoreMatcher, ...]:
    """Compile ignore rules once into matchers."""
    matchers: list[IgnoreMatcher] = []
    for rule in rules:
        if isinstance(rule, str):
            matchers.append(PrefixMatcher(rule))
        elif isinstance(rule, RegexRule):
            matchers.append(PatternMatcher(re.compile(rule.regex)))
        elif isinstance(rule, re.Pattern):
            matchers.append(PatternMatcher(rule))
        else:
            raise TypeError(f"Unsupported ignore rule: {rule!r}")
    return tuple(matchers)


# ── Depth ────────────────────────────────────────────────────────────

def get_prefix(path: str) -> str:
    """Return *path* up to the end of its last ``site-packages``, or ``""``."""
    i = path.rfind(PACKAGE_BOUNDARY)
    if i == -1:
        return ""
    return path[: i + len(PACKAGE_BOUNDARY)]


def get_level(path: str) -> int:
    """Return the nesting level of *path* (0 for project files)."""
    return get_prefix(path).count(PACKAGE_BOUNDARY)


def is_ignored(path: str, matchers: Sequence[IgnoreMatcher]) -> bool:
    return any(m.matches(path) for m in matchers)


def should_watch(path: str, matchers: Sequence[IgnoreMatcher], max_depth: int) -> bool:
    """Whether a required *path* belongs in the watch set."""
    if is_ignored(path, matchers):
        return False
    return max_depth == DEPS_UNLIMITED or get_level(path) <= max_depth
