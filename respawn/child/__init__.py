"""
Code that runs inside the supervised child interpreter.

Kept to the standard library: it is imported before the user's script and
must not drag the supervisor's dependencies into the child.
"""

# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0
