# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/nextup/cli/utils.py

"""
CLI utility functions shared by the nextup commands.

This module provides standardized functions for:
- Configuration loading with console error reporting
- Confirmation prompts that honor --yes and --non-interactive
- Building an Updater wired to the real GitHub catalog and HTTP transport
- Error handling with typer exits
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer
from rich.console import Console

from nextup.config.manager import Config, RunOptions
from nextup.core.lifecycle import ConfirmFn, Updater
from nextup.storage.io_transports import HttpTransport
from nextup.storage.remote import GitHubCatalog
from nextup.system.exceptions import ConfigError
from nextup.system.progress import ProgressObserver


def load_config_with_console(
    console: Console,
    install_root: Optional[Path] = None,
    options: Optional[RunOptions] = None,
) -> Config:
    """
    Load nextup configuration with proper error handling and console output.

    Args:
        console: Rich console for output
        install_root: Installation directory, current directory when None
        options: Flags for this run

    Returns:
        Loaded configuration object

    Raises:
        typer.Exit: If configuration loading fails
    """
    if options is not None and options.verbose:
        console.print("[dim]Loading configuration...[/dim]")

    try:
        return Config.load(install_root, options)
    except ConfigError as e:
        console.print(f"[red]✗[/red] Configuration error: {e}")
        raise typer.Exit(1)


def make_confirm(config: Config, assume_yes: bool = False) -> ConfirmFn:
    """Prompt on the terminal, or always accept when nobody is there to answer."""
    if assume_yes or config.options.non_interactive:
        return lambda prompt: True
    return lambda prompt: typer.confirm(prompt, default=False)


@contextmanager
def open_updater(
    config: Config,
    progress: Optional[ProgressObserver] = None,
    confirm: Optional[ConfirmFn] = None,
) -> Iterator[Updater]:
    """Updater for the configured installation, closing its HTTP clients on exit."""
    settings = config.updater
    with GitHubCatalog(settings) as catalog, HttpTransport(timeout=settings.request_timeout) as transport:
        yield Updater(
            config,
            catalog,
            file_transport=transport,
            archive_transport=transport,
            progress=progress,
            confirm=confirm,
        )


def handle_operation_error(console: Console, operation: str, error: Exception) -> None:
    """Handle operation errors with consistent formatting."""
    console.print(f"[red]✗[/red] Error {operation}: {error}")
    raise typer.Exit(1)
