"""
Preset management commands.

Usage:
    skillkeeper preset list
    skillkeeper preset create <name> <skill>...
    skillkeeper preset add <preset> <skill>...
    skillkeeper preset apply <preset> [--mode merge|replace] [--target DIR]
"""

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from skillkeeper.cli.context import repository_session, require_preset, require_skill
from skillkeeper.cli.output import print_success, print_warning, short_id

app = typer.Typer(
    name="preset",
    help="Group skills into presets and apply them to workspaces.",
    no_args_is_help=True,
)

console = Console()

SkillRefs = Annotated[
    list[str],
    typer.Argument(
        help="Skill names or IDs.",
    ),
]


@app.command("list")
def list_presets(ctx: typer.Context) -> None:
    """List presets."""
    with repository_session(ctx) as repo:
        presets = repo.list_presets()
        names = {skill.id: skill.name for skill in repo.list_skills()}

    if not presets:
        console.print("[dim]No presets.[/dim]")
        console.print("Create one with [cyan]skillkeeper preset create <name> <skill>...[/cyan]")
        return

    table = Table(title="Presets")
    table.add_column("Name", style="cyan")
    table.add_column("ID", style="dim")
    table.add_column("Skills")
    table.add_column("Description")

    for preset in presets:
        members = [names.get(sid, short_id(sid)) for sid in preset.skill_ids]
        table.add_row(
            preset.name,
            short_id(preset.id),
            ", ".join(members) or "[dim]empty[/dim]",
            preset.description or "",
        )

    console.print(table)
    console.print(f"\n[dim]Total: {len(presets)} preset(s)[/dim]")


@app.command()
def create(
    ctx: typer.Context,
    name: Annotated[
        str,
        typer.Argument(
            help="Preset name.",
        ),
    ],
    skills: Annotated[
        list[str] | None,
        typer.Argument(
            help="Skill names or IDs.",
        ),
    ] = None,
    description: Annotated[
        str | None,
        typer.Option(
            "--description",
            "-d",
            help="Short description.",
        ),
    ] = None,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Replace a preset with the same name.",
        ),
    ] = False,
) -> None:
    """Create a preset."""
    with repository_session(ctx) as repo:
        skill_ids = [require_skill(repo, ref).id for ref in skills or []]
        preset = repo.create_preset(name, skill_ids, description=description, allow_overwrite=force)

    print_success(f"Created preset {preset.name} with {len(preset.skill_ids)} skill(s)")


@app.command()
def rename(
    ctx: typer.Context,
    ref: Annotated[
        str,
        typer.Argument(
            help="Preset name or ID.",
        ),
    ],
    name: Annotated[
        str,
        typer.Argument(
            help="New preset name.",
        ),
    ],
) -> None:
    """Rename a preset."""
    with repository_session(ctx) as repo:
        preset = require_preset(repo, ref)
        old_name = preset.name
        preset.name = name
        saved = repo.save_preset(preset)

    print_success(f"Renamed preset {old_name} to {saved.name}")


@app.command()
def add(
    ctx: typer.Context,
    ref: Annotated[
        str,
        typer.Argument(
            help="Preset name or ID.",
        ),
    ],
    skills: SkillRefs,
) -> None:
    """Add skills to a preset."""
    with repository_session(ctx) as repo:
        preset = require_preset(repo, ref)
        skill_ids = [require_skill(repo, skill_ref).id for skill_ref in skills]
        updated = repo.add_skills_to_preset(preset.id, skill_ids)

    print_success(f"{updated.name} now has {len(updated.skill_ids)} skill(s)")


@app.command()
def remove(
    ctx: typer.Context,
    ref: Annotated[
        str,
        typer.Argument(
            help="Preset name or ID.",
        ),
    ],
    skills: SkillRefs,
) -> None:
    """Remove skills from a preset."""
    with repository_session(ctx) as repo:
        preset = require_preset(repo, ref)
        skill_ids = [require_skill(repo, skill_ref).id for skill_ref in skills]
        updated = repo.remove_skills_from_preset(preset.id, skill_ids)

    print_success(f"{updated.name} now has {len(updated.skill_ids)} skill(s)")


@app.command()
def delete(
    ctx: typer.Context,
    ref: Annotated[
        str,
        typer.Argument(
            help="Preset name or ID.",
        ),
    ],
    yes: Annotated[
        bool,
        typer.Option(
            "--yes",
            "-y",
            help="Skip confirmation.",
        ),
    ] = False,
) -> None:
    """Delete a preset (its skills are kept)."""
    with repository_session(ctx) as repo:
        preset = require_preset(repo, ref)

        if not yes and not typer.confirm(f"Delete preset '{preset.name}'?"):
            console.print("[dim]Cancelled.[/dim]")
            return

        repo.delete_preset(preset.id)

    print_success(f"Deleted preset {preset.name}")


@app.command()
def apply(
    ctx: typer.Context,
    ref: Annotated[
        str,
        typer.Argument(
            help="Preset name or ID.",
        ),
    ],
    mode: Annotated[
        str,
        typer.Option(
            "--mode",
            "-m",
            help="merge: keep existing entries; replace: empty the target first.",
        ),
    ] = "merge",
    target: Annotated[
        Path | None,
        typer.Option(
            "--target",
            "-t",
            help="Target directory (default: the export path under the current directory).",
        ),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option(
            "--yes",
            "-y",
            help="Skip confirmation in replace mode.",
        ),
    ] = False,
) -> None:
    """Copy a preset's skills into a workspace."""
    if mode not in ("merge", "replace"):
        console.print(f"[red]Invalid mode: {mode}. Use 'merge' or 'replace'.[/red]")
        raise typer.Exit(1)

    with repository_session(ctx) as repo:
        preset = require_preset(repo, ref)
        target_dir = target if target is not None else Path.cwd() / repo.default_export_path

        if mode == "replace" and not yes:
            console.print(f"[yellow]Everything in {target_dir} will be removed first.[/yellow]")
            if not typer.confirm("Continue?"):
                console.print("[dim]Cancelled.[/dim]")
                return

        result = repo.apply_preset(preset.id, mode, target_dir)

    for skill_id in result.missing:
        print_warning(f"Skipped missing skill {short_id(skill_id)}")
    print_success(f"Applied {preset.name} to {result.target}: {len(result.applied)} skill(s)")
