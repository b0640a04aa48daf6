# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/nextup/cli/commands/info.py

"""
Info command handlers - read-only information commands.

Handles: check, validate-config
"""

from typing import Any

from rich.console import Console

from nextup.cli.utils import open_updater
from nextup.config.manager import Config
from nextup.config.manager import validate_config as validate_config_files
from nextup.system.display import display_check_result, print_check_machine


def check(
    console: Console,
    config: Config,
    verbose: bool = False,
    quiet: bool = False
) -> dict[str, Any]:
    """Report whether an update is available without changing anything.

    Non-interactive runs print one 'Key: value' fact per line for the
    launcher to parse.

    Args:
        console: Rich console for output
        config: Loaded configuration
        verbose: List every file that would change
        quiet: Minimize output

    Returns:
        Check result object
    """
    with open_updater(config) as updater:
        result = updater.check()

    if config.options.non_interactive:
        print_check_machine(console, result)
    else:
        display_check_result(console, result, verbose=verbose, install_root=config.install_root)

    return {
        "operation": "check",
        "channel": result.channel,
        "result": result,
    }


def validate_config(
    console: Console,
    config: Config,
    verbose: bool = False,
    quiet: bool = False
) -> dict[str, Any]:
    """Validate the merged configuration files.

    Args:
        console: Rich console for output
        config: Loaded configuration
        verbose: Show the effective settings
        quiet: Minimize output

    Returns:
        Validation result object
    """
    if not quiet:
        console.print("[dim]Validating configuration...[/dim]")

    errors = validate_config_files()
    for error in errors:
        console.print(f"[red]✗[/red] {error}", highlight=False)

    if not errors and not quiet:
        console.print("[green]✓[/green] Configuration is valid")
    if verbose:
        settings = config.updater
        console.print(f"  Installation root: {config.install_root}", highlight=False)
        console.print(f"  Repository: {settings.owner}/{settings.repo}", highlight=False)
        console.print(f"  Default channel: {settings.channel}", highlight=False)
        console.print(f"  Bulk mode above: {settings.zip_threshold} files", highlight=False)

    return {
        "operation": "validate-config",
        "valid": not errors,
        "errors": errors,
    }
