"""Restart a Python script whenever one of the files it imported changes."""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

__version__ = "0.1.0"
