"""
Output formatting utilities for the CLI.

Provides consistent output formatting across all CLI commands.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

from skillkeeper.skills.models import SourceError

# Global console instances
console = Console()
err_console = Console(stderr=True)

# Digest characters shown in tables
SHORT_ID_LENGTH = 8


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red]✗[/red] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]![/yellow] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]i[/blue] {message}")


def print_source_errors(errors: list[SourceError]) -> None:
    """Print sources that could not be scanned."""
    for error in errors:
        print_warning(f"{error.source}: {error.error}")


def short_id(digest: str) -> str:
    """Shorten a digest for display."""
    return digest[:SHORT_ID_LENGTH]


def setup_logging(level: str) -> None:
    """Route log records to stderr through rich."""
    handler = RichHandler(
        console=err_console,
        show_path=False,
        rich_tracebacks=True,
    )
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level.upper())
