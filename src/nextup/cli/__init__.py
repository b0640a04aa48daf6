# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/nextup/cli/__init__.py

"""Command Line Interface package for nextup."""

from .main import cli_main as main, app

__all__ = ['main', 'app']
