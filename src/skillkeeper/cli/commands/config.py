"""
skillkeeper config - Settings commands.

Usage:
    skillkeeper config show
    skillkeeper config show github
    skillkeeper config set github.timeout 10
    skillkeeper config path
"""

import json
from typing import Annotated

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax

from skillkeeper.config import (
    ConfigurationError,
    clear_settings_cache,
    Settings,
    deep_merge,
    get_nested_value,
    get_settings,
    load_yaml_file,
    parse_value,
    save_yaml_file,
    set_nested_value,
)
from skillkeeper.storage.paths import get_settings_path

app = typer.Typer(
    name="config",
    help="Settings management.",
    no_args_is_help=True,
)

console = Console()


@app.command()
def show(
    section: Annotated[
        str | None,
        typer.Argument(
            help="Section or dotted key to show (e.g., 'github').",
        ),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
) -> None:
    """Show effective settings."""
    try:
        data = get_settings(reload=True).model_dump()
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(1)

    if section:
        data = get_nested_value(data, section)
        if data is None:
            console.print(f"[red]Setting '{section}' not found.[/red]")
            raise typer.Exit(1)

    if json_output:
        console.print(Syntax(json.dumps(data, indent=2, default=str), "json", theme="monokai"))
        return

    output = yaml.safe_dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)
    if section:
        console.print(Panel(Syntax(output, "yaml", theme="monokai"), title=f"[cyan]{section}[/cyan]"))
    else:
        console.print(Syntax(output, "yaml", theme="monokai"))


@app.command("set")
def set_value(
    key: Annotated[
        str,
        typer.Argument(
            help="Dotted setting key (e.g., 'github.timeout').",
        ),
    ],
    value: Annotated[
        str,
        typer.Argument(
            help="Value to set.",
        ),
    ],
) -> None:
    """Set a value in the settings file."""
    settings_path = get_settings_path()

    try:
        data = load_yaml_file(settings_path)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    parsed_value = parse_value(value)
    data = set_nested_value(data, key, parsed_value)

    try:
        Settings.model_validate(deep_merge(Settings().model_dump(), data))
    except ValidationError as e:
        console.print(f"[red]Invalid value for {key}:[/red]")
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"])
            console.print(f"  [red]- {location}: {error['msg']}[/red]")
        raise typer.Exit(1)

    try:
        save_yaml_file(settings_path, data)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    clear_settings_cache()
    console.print(f"[green]Set {key} = {parsed_value!r}[/green]")
    console.print(f"[dim]{settings_path}[/dim]")


@app.command()
def path() -> None:
    """Show where the settings file lives."""
    settings_path = get_settings_path()
    status = "[green]exists[/green]" if settings_path.exists() else "[dim]not created yet[/dim]"
    console.print(f"{settings_path} ({status})")
