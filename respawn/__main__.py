# Respawn - Development Process Supervisor
# Copyright (C) 2026 Respawn Authors
# SPDX-License-Identifier: Apache-2.0

from respawn.cli.parser import cli_main

if __name__ == "__main__":
    cli_main()
