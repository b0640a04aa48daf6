# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/nextup/cli/commands/actions.py

"""
Action command handlers - state-changing commands.

Handles: update (the default action), switch, generate-manifest
"""

import sys
from pathlib import Path
from typing import Any, Callable

import loguru
from rich.console import Console

from nextup.cli.utils import make_confirm, open_updater
from nextup.config.manager import Config
from nextup.core.lifecycle import MUSHCLIENT_EXE, PKG_VERSION, UpdateOutcome, Updater
from nextup.selfupdate import check_for_updater_update, cleanup_old_binary
from nextup.system.display import display_changelog, display_update_outcome
from nextup.system.exceptions import NextupError
from nextup.system.progress import UpdateProgressReporter

logger = loguru.logger


def _record_failure(updater: Updater, config: Config, error: Exception) -> None:
    """Leave a failure .update-result for the launcher of a non-interactive run."""
    if not config.options.non_interactive:
        return
    try:
        updater.write_update_result(message=str(error))
    except OSError as e:
        logger.warning(f"Could not write update result: {e}")


def _run_and_report(
    console: Console,
    config: Config,
    verbose: bool,
    quiet: bool,
    assume_yes: bool,
    operation: Callable[[Updater], UpdateOutcome],
) -> UpdateOutcome:
    confirm = make_confirm(config, assume_yes)
    cleanup_old_binary(Path(sys.argv[0]).resolve())

    with UpdateProgressReporter(console, verbose=verbose, quiet=quiet) as progress, \
            open_updater(config, progress=progress, confirm=confirm) as updater:
        try:
            outcome = operation(updater)
        except NextupError as e:
            _record_failure(updater, config, e)
            raise

    display_update_outcome(console, outcome, quiet=quiet)

    if outcome.changed:
        if verbose and outcome.applied is not None:
            for name in outcome.applied.written:
                console.print(f"  [green]+[/green] {name}", highlight=False)
            for name in outcome.plan.to_delete:
                console.print(f"  [red]-[/red] {name}", highlight=False)
        if outcome.plan.touches(MUSHCLIENT_EXE):
            console.print("[yellow]Note:[/yellow] Restart MUSHclient to finish the update.")
        if not config.options.non_interactive and confirm("Would you like to view the detailed changelog?"):
            display_changelog(console, outcome.changelog)

    _self_update_notice(console, config, quiet)
    return outcome


def _self_update_notice(console: Console, config: Config, quiet: bool) -> None:
    release = check_for_updater_update(config.updater, PKG_VERSION)
    if release is not None and not quiet:
        console.print(
            f"[cyan]A newer updater ({release.version}) is available; "
            f"you are running {PKG_VERSION}.[/cyan]"
        )


def update(
    console: Console,
    config: Config,
    verbose: bool = False,
    quiet: bool = False,
    **operation_params
) -> dict[str, Any]:
    """Bring the installation up to date with its channel.

    Args:
        console: Rich console for output
        config: Loaded configuration
        verbose: Show every file changed
        quiet: Minimize output
        assume_yes: Answer yes to every prompt

    Returns:
        Update result object
    """
    assume_yes = operation_params.get("assume_yes", False)
    if not quiet:
        console.print(f"[dim]Checking for updates in {config.install_root}...[/dim]")

    outcome = _run_and_report(
        console, config, verbose, quiet, assume_yes,
        lambda updater: updater.run_update(),
    )
    return {
        "operation": "update",
        "channel": outcome.channel,
        "outcome": outcome,
    }


def switch(
    console: Console,
    config: Config,
    verbose: bool = False,
    quiet: bool = False,
    **operation_params
) -> dict[str, Any]:
    """Switch the installation to another channel and update to it.

    Args:
        console: Rich console for output
        config: Loaded configuration
        verbose: Show every file changed
        quiet: Minimize output
        channel: stable, dev, or the name of an experimental branch
        assume_yes: Answer yes to every prompt

    Returns:
        Switch result object
    """
    channel = operation_params["channel"]
    assume_yes = operation_params.get("assume_yes", False)
    if not quiet:
        console.print(f"[dim]Switching to the {channel} channel...[/dim]")

    outcome = _run_and_report(
        console, config, verbose, quiet, assume_yes,
        lambda updater: updater.switch_channel(channel),
    )
    if not quiet:
        console.print(f"[green]✓[/green] Update channel is now {outcome.channel}")
    return {
        "operation": "switch",
        "channel": outcome.channel,
        "outcome": outcome,
    }


def generate_manifest(
    console: Console,
    config: Config,
    verbose: bool = False,
    quiet: bool = False,
    **operation_params
) -> dict[str, Any]:
    """Rebuild the local manifest from the files present on disk."""
    with open_updater(config) as updater:
        manifest = updater.generate_manifest()

    if not quiet:
        console.print(
            f"[green]✓[/green] Wrote {updater.store.manifest_path} "
            f"({len(manifest)} files, channel {updater.channel.name})"
        )
    return {
        "operation": "generate-manifest",
        "path": updater.store.manifest_path,
        "files": len(manifest),
    }
