"""
Bundle commands.

Usage:
    skillkeeper bundle export team.zip --preset writing
    skillkeeper bundle import team.zip [--overwrite] [--as-is]
"""

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from skillkeeper.cli.context import repository_session, require_preset, require_skill
from skillkeeper.cli.output import print_success

app = typer.Typer(
    name="bundle",
    help="Share skills and presets as directories or zip archives.",
    no_args_is_help=True,
)

console = Console()


@app.command("export")
def export_bundle(
    ctx: typer.Context,
    destination: Annotated[
        Path,
        typer.Argument(
            help="Bundle directory, or a path ending in .zip for an archive.",
        ),
    ],
    skills: Annotated[
        list[str] | None,
        typer.Option(
            "--skill",
            "-s",
            help="Skill name or ID to include.",
        ),
    ] = None,
    presets: Annotated[
        list[str] | None,
        typer.Option(
            "--preset",
            "-p",
            help="Preset name or ID to include (with its skills).",
        ),
    ] = None,
    all_presets: Annotated[
        bool,
        typer.Option(
            "--all-presets",
            help="Include every preset.",
        ),
    ] = False,
) -> None:
    """Export skills and presets to a bundle."""
    with repository_session(ctx) as repo:
        skill_ids = [require_skill(repo, ref).id for ref in skills or []]
        if all_presets:
            preset_ids = "all"
        else:
            preset_ids = [require_preset(repo, ref).id for ref in presets or []]
        written = repo.export_bundle(destination, skill_ids=skill_ids, preset_ids=preset_ids)

    print_success(f"Bundle written to {written}")


@app.command("import")
def import_bundle(
    ctx: typer.Context,
    source: Annotated[
        Path,
        typer.Argument(
            help="Bundle directory or .zip archive.",
        ),
    ],
    overwrite: Annotated[
        bool,
        typer.Option(
            "--overwrite",
            "-o",
            help="Replace same-named skills and presets.",
        ),
    ] = False,
    as_is: Annotated[
        bool,
        typer.Option(
            "--as-is",
            help="Keep the bundle's preset skill IDs when they all exist here.",
        ),
    ] = False,
) -> None:
    """Import a bundle."""
    with repository_session(ctx) as repo:
        result = repo.import_bundle(source, allow_overwrite=overwrite, as_is=as_is)

    table = Table(title=f"Imported {source.name}")
    table.add_column("", style="cyan")
    table.add_column("Imported", style="green")
    table.add_column("Overwritten", style="yellow")
    table.add_column("Skipped", style="dim")
    table.add_row("Skills", str(result.imported), str(result.overwritten), str(result.skipped))
    table.add_row(
        "Presets",
        str(result.presets_imported),
        str(result.presets_overwritten),
        str(result.presets_skipped),
    )

    console.print(table)
    console.print(f"\n[dim]Skills in bundle: {result.total_skills}[/dim]")
    if result.skipped or result.presets_skipped:
        console.print("[dim]Use --overwrite to replace existing entries.[/dim]")
