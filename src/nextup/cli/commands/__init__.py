# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/nextup/cli/commands/__init__.py

"""
Command handlers for nextup CLI operations.

This package contains the business logic for all CLI commands,
separated from the CLI interface layer. Commands are organized by type:

- info: Read-only information commands (check)
- actions: State-changing commands (update, switch, generate-manifest)
"""
