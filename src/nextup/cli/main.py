# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/nextup/cli/main.py

"""
CLI dispatcher that routes commands to handlers.

Global options are parsed once by the callback. Each command then loads the
configuration for the installation root, sets up logging, and runs its
handler from nextup.cli.commands. Running nextup with no command updates.
"""

# Standard library imports
from dataclasses import dataclass, field
from importlib.metadata import version
from pathlib import Path
from typing import Any, Callable, Optional

# Third-party imports
import typer
from rich.console import Console

# Local imports
from nextup.cli.commands import actions as action_commands
from nextup.cli.commands import info as info_commands
from nextup.cli.utils import handle_operation_error, load_config_with_console
from nextup.config.manager import BUILTIN_CHANNELS, RunOptions
from nextup.data.channel import load_channel
from nextup.system.exceptions import NextupError
from nextup.system.logging_setup import setup_logging

# Initialize Typer app
app = typer.Typer(
    help="""nextup - Miriani-Next installer and updater

[bold green]Core Operations:[/bold green] (no command) update, check
[bold blue]Channels:[/bold blue] switch
[bold magenta]Maintenance:[/bold magenta] generate-manifest
[bold red]Validation:[/bold red] validate-config
""",
    rich_markup_mode="rich",
)

console = Console()


@dataclass
class CliState:
    root: Optional[Path]
    options: RunOptions = field(default_factory=RunOptions)
    debug: bool = False
    assume_yes: bool = False


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        try:
            pkg_version = version("nextup")
        except Exception as e:
            handle_operation_error(console, "retrieving version", e)
        console.print(f"nextup version {pkg_version}")
        raise typer.Exit()


def _run_command(state: CliState, operation: str, handler: Callable[..., dict[str, Any]], **params) -> dict[str, Any]:
    config = load_config_with_console(console, state.root, state.options)
    setup_logging(config, verbose=state.options.verbose, debug=state.debug)
    try:
        return handler(
            console, config,
            verbose=state.options.verbose,
            quiet=state.options.quiet,
            **params,
        )
    except NextupError as e:
        handle_operation_error(console, operation, e)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(
        None, "--version", callback=version_callback, is_eager=True,
        help="Show version and exit"
    ),
    root: Optional[Path] = typer.Option(
        None, "--root", "-C", file_okay=False,
        help="Installation directory (default: current directory)"
    ),
    channel: Optional[str] = typer.Option(
        None, "--channel", help="Update channel for this run: stable, dev, or a branch name"
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show every file changed"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress output"),
    non_interactive: bool = typer.Option(
        False, "--non-interactive",
        help="No prompts; write updater.log and .update-result for the launcher"
    ),
    assume_yes: bool = typer.Option(False, "--yes", "-y", help="Answer yes to every prompt"),
) -> None:
    """nextup - keeps a Miriani-Next installation in step with its repository."""
    state = CliState(
        root=root,
        options=RunOptions(
            quiet=quiet,
            verbose=verbose,
            non_interactive=non_interactive,
            channel=channel,
        ),
        debug=debug,
        assume_yes=assume_yes,
    )
    ctx.obj = state

    if ctx.invoked_subcommand is None:
        _run_command(state, "updating", action_commands.update, assume_yes=state.assume_yes)


# =============================================================================
# INFO COMMANDS - Read-only
# =============================================================================

@app.command()
def check(ctx: typer.Context) -> Any:
    """[bold green]Core Operations[/bold green]: Report whether an update is available."""
    return _run_command(ctx.obj, "checking for updates", info_commands.check)


@app.command(name="validate-config")
def validate_config_command(ctx: typer.Context) -> Any:
    """[bold red]Validation[/bold red]: Validate configuration files."""
    result = _run_command(ctx.obj, "validating configuration", info_commands.validate_config)
    if not result["valid"]:
        raise typer.Exit(1)
    return result


# =============================================================================
# ACTION COMMANDS - Change the installation
# =============================================================================

@app.command()
def switch(
    ctx: typer.Context,
    channel: Optional[str] = typer.Argument(None, help="stable, dev, or an experimental branch name"),
    allow_downgrade: bool = typer.Option(
        False, "--allow-downgrade", help="Accept switching to an older version without asking"
    ),
) -> Any:
    """[bold blue]Channels[/bold blue]: Switch update channel and update to it."""
    state: CliState = ctx.obj
    if channel is None:
        config = load_config_with_console(console, state.root, state.options)
        current = load_channel(config.install_root, config.updater.channel_file) or config.updater.channel
        console.print(f"Current channel: [bold]{current}[/bold]")
        console.print(f"Available: {', '.join(sorted(BUILTIN_CHANNELS))}, or any branch name")
        return None

    state.options.allow_downgrade = allow_downgrade
    return _run_command(
        state, f"switching to {channel}", action_commands.switch,
        channel=channel, assume_yes=state.assume_yes,
    )


@app.command(name="generate-manifest")
def generate_manifest_command(ctx: typer.Context) -> Any:
    """[bold magenta]Maintenance[/bold magenta]: Rebuild the local manifest from files on disk."""
    return _run_command(ctx.obj, "generating manifest", action_commands.generate_manifest)


# =============================================================================
# ENTRY POINT
# =============================================================================

def cli_main() -> None:  # pragma: no cover - entry point
    """Entry point for the nextup CLI application."""
    app()


if __name__ == "__main__":  # pragma: no cover
    cli_main()
