# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/nextup/system/display.py

# Standard library imports
from pathlib import Path
from typing import Optional

# Third-party imports
import humanize
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

# Local imports
from nextup.core.lifecycle import CheckResult, UpdateOutcome
from nextup.core.paths import find_actual_case
from nextup.data.manifest_comparison import UpdatePlan
from nextup.data.version import Version


def _version_text(version: Optional[Version]) -> str:
    return str(version) if version is not None else "unknown"


def _local_size(install_root: Path, name: str) -> str:
    path = find_actual_case(install_root / name)
    try:
        return humanize.naturalsize(path.stat().st_size)
    except OSError:
        return "-"


def plan_to_table(plan: UpdatePlan, install_root: Optional[Path] = None) -> Table:
    """Convert an update plan to a rich Table for display.

    Args:
        plan: The files to fetch and delete
        install_root: When given, the current on-disk size of each file is shown

    Returns:
        Rich Table object ready for display
    """
    table = Table()
    table.add_column("Action")
    table.add_column("Path")
    if install_root is not None:
        table.add_column("Local size", justify="right")

    for record in plan.to_fetch:
        row = ["update", record.name]
        if install_root is not None:
            row.append(_local_size(install_root, record.name))
        table.add_row(*row)

    for name in plan.to_delete:
        row = ["[red]delete[/red]", name]
        if install_root is not None:
            row.append(_local_size(install_root, name))
        table.add_row(*row)

    return table


def print_check_machine(console: Console, result: CheckResult) -> None:
    """Line-oriented check output for launchers that parse it."""
    out = lambda line: console.print(line, markup=False, highlight=False)
    plan = result.pending.plan

    if not result.installed:
        out("Update available: Unknown")
        out("Status: Not installed")
        return

    if not result.has_updates:
        out("Update available: No")
        if result.local_version is not None:
            out(f"Version: {result.local_version}")
        return

    out("Update available: Yes")
    if result.latest_version is not None:
        out(f"Version: {result.latest_version}")
    if result.local_version is not None:
        out(f"Current version: {result.local_version}")
    out(f"Restart required: {'Yes' if result.restart_required else 'No'}")
    out(f"Changes: {plan.total_changes}")
    out(f"Updates: {len(plan.to_fetch)}")
    out(f"Deletions: {len(plan.to_delete)}")


def display_check_result(
    console: Console, result: CheckResult, verbose: bool = False, install_root: Optional[Path] = None
) -> None:
    plan = result.pending.plan
    if not result.has_updates:
        console.print("\n[green]✓[/green] Already up to date!")
        if result.local_version is not None:
            console.print(f"Current version: {result.local_version}", highlight=False)
        return

    console.print(f"\nAn update is available with {humanize.intcomma(plan.total_changes)} total changes.")
    if plan.to_fetch:
        console.print(f"   {humanize.intcomma(len(plan.to_fetch))} files will be updated")
    if plan.to_delete:
        console.print(f"   {humanize.intcomma(len(plan.to_delete))} files will be deleted")

    if result.local_version is not None and result.latest_version is not None:
        console.print(f"\nCurrent version: {result.local_version}", highlight=False)
        console.print(f"New version: {result.latest_version}", highlight=False)

    if verbose:
        console.print(plan_to_table(plan, install_root))

    if result.restart_required:
        console.print("\n[yellow]Note:[/yellow] This update requires MUSHclient to be restarted.")
    console.print("\nRun the updater again without 'check' to install the update.")


def display_update_outcome(console: Console, outcome: UpdateOutcome, quiet: bool = False) -> None:
    if outcome.cancelled:
        console.print("[yellow]Update cancelled.[/yellow]")
        return

    plan = outcome.plan
    if not outcome.changed:
        if not quiet:
            console.print(f"[green]✓[/green] Already up to date on the {outcome.channel} channel.")
        return

    kept = len(outcome.applied.preserved) if outcome.applied is not None else 0
    if outcome.deletions is not None:
        kept += len(outcome.deletions.preserved)
    if kept and not quiet:
        console.print(f"[dim]Kept {kept} user configuration files unchanged[/dim]")

    for warning in outcome.warnings:
        console.print(f"[yellow]![/yellow] {warning}")

    console.print(
        f"\n{humanize.intcomma(plan.total_changes)} files were changed "
        f"({len(plan.to_fetch)} updated, {len(plan.to_delete)} deleted)"
    )
    if not quiet:
        console.print(f"[green]✓[/green] Now at version {_version_text(outcome.version)}", highlight=False)


def display_changelog(console: Console, changelog: str) -> None:
    console.print(Panel(Text(changelog.rstrip()), title="Changelog", expand=False))
