"""
Main Typer application for the skillkeeper CLI.

This module defines the root CLI application and registers all command groups.
"""

import time
from pathlib import Path
from typing import Annotated

import typer

from skillkeeper import __version__
from skillkeeper.cli.commands import bundle, config, preset, skill
from skillkeeper.cli.context import repository_session
from skillkeeper.cli.output import console, print_error, print_info, setup_logging
from skillkeeper.config import ConfigurationError, get_settings

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Create the main Typer app
app = typer.Typer(
    name="skillkeeper",
    help="Collect, curate and share agent skills from one local repository.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        print_info(f"skillkeeper version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    root: Annotated[
        Path | None,
        typer.Option(
            "--root",
            "-r",
            help="Repository storage root (default: from settings).",
            envvar="SKILLKEEPER_ROOT",
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            "-l",
            help="Log level: DEBUG, INFO, WARNING or ERROR.",
        ),
    ] = None,
) -> None:
    """
    [bold]skillkeeper[/bold] - a local repository for agent skills.

    Scan global and workspace skill folders or GitHub repositories, import
    skills into one place, group them into presets and share them as bundles.
    """
    try:
        level = log_level or get_settings().logging.level
    except ConfigurationError as e:
        print_error(f"Configuration error: {e}")
        raise typer.Exit(1)
    if level.upper() not in LOG_LEVELS:
        print_error(f"Invalid log level: {level}")
        raise typer.Exit(1)
    setup_logging(level)

    ctx.ensure_object(dict)
    ctx.obj["root"] = root


# Register command groups
app.add_typer(skill.app, name="skill")
app.add_typer(preset.app, name="preset")
app.add_typer(bundle.app, name="bundle")
app.add_typer(config.app, name="config")


@app.command()
def watch(
    ctx: typer.Context,
    debounce: Annotated[
        float | None,
        typer.Option(
            "--debounce",
            "-d",
            help="Seconds of quiet before reconciling (default: from settings).",
        ),
    ] = None,
) -> None:
    """Keep the repository in sync while other tools edit skills."""
    with repository_session(ctx) as repo:
        watcher = repo.watch(debounce)
        print_info(f"Watching {watcher.watch_path} [dim](Ctrl+C to stop)[/dim]")
        try:
            while watcher.is_running:
                time.sleep(1.0)
        except KeyboardInterrupt:
            console.print("\n[dim]Stopped.[/dim]")


if __name__ == "__main__":
    app()
