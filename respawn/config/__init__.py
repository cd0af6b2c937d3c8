# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from respawn.config.models import (
    DEPS_UNLIMITED,
    CompileConfig,
    NotificationConfig,
    RegexRule,
    RespawnConfig,
    WatchConfig,
    get_config_path,
    load_config,
    merge_overrides,
    parse_ignore_option,
)
