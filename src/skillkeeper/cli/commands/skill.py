"""
Skill management commands.

Usage:
    skillkeeper skill list
    skillkeeper skill show <ref>
    skillkeeper skill scan [--workspace DIR] [--path DIR] [--github URL]
    skillkeeper skill import <name-or-id>... [--path DIR] [--github URL]
    skillkeeper skill tag <ref> <tag>... [--remove]
    skillkeeper skill rename <ref> <name>
    skillkeeper skill describe <ref> <text>
    skillkeeper skill delete <ref>
    skillkeeper skill export <ref> [--to DIR]
"""

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from skillkeeper.cli.context import repository_session, require_skill
from skillkeeper.cli.output import print_source_errors, print_success, print_warning, short_id
from skillkeeper.skills import (
    ConflictError,
    DiscoveredCandidate,
    ScanResult,
    SkillRepository,
    normalize_name,
)
from skillkeeper.skills.manager import MIN_ID_PREFIX

app = typer.Typer(
    name="skill",
    help="Scan, import and curate skills.",
    no_args_is_help=True,
)

console = Console()

WorkspaceOption = Annotated[
    list[Path] | None,
    typer.Option(
        "--workspace",
        "-w",
        help="Workspace root to scan (default: current directory).",
    ),
]
PathOption = Annotated[
    list[Path] | None,
    typer.Option(
        "--path",
        "-p",
        help="Additional directory to scan recursively.",
    ),
]
GitHubOption = Annotated[
    list[str] | None,
    typer.Option(
        "--github",
        "-g",
        help="GitHub repository to scan (owner/repo or URL, optionally /tree/<ref>/<path>).",
    ),
]


def _run_scan(
    repo: SkillRepository,
    workspaces: list[Path] | None,
    paths: list[Path] | None,
    repos: list[str] | None,
) -> ScanResult:
    """Feed extra sources into the scan session, then scan everything."""
    for path in paths or []:
        added, found = repo.scan_custom_path(path)
        console.print(f"[dim]{path}: {found} skill(s), {added} new[/dim]")

    for repo_ref in repos or []:
        console.print(f"[dim]Scanning {repo_ref}...[/dim]")
        remote = repo.scan_remote(repo_ref)
        print_source_errors(remote.errors)
        console.print(f"[dim]{repo_ref}: {len(remote.candidates)} skill(s)[/dim]")

    return repo.scan(workspaces if workspaces else [Path.cwd()])


def _match_candidate(candidates: list[DiscoveredCandidate], ref: str) -> DiscoveredCandidate | None:
    """Pick the candidate a user reference points at (digest, prefix or name)."""
    ref = ref.strip()
    lowered = ref.lower()
    for candidate in candidates:
        if candidate.digest == lowered:
            return candidate
    for candidate in candidates:
        if normalize_name(candidate.name) == normalize_name(ref):
            return candidate
    if len(ref) >= MIN_ID_PREFIX:
        matches = [c for c in candidates if c.digest.startswith(lowered)]
        if len(matches) == 1:
            return matches[0]
    return None


@app.command("list")
def list_skills(
    ctx: typer.Context,
    tag: Annotated[
        str | None,
        typer.Option(
            "--tag",
            "-t",
            help="Only show skills with this tag.",
        ),
    ] = None,
) -> None:
    """List imported skills."""
    with repository_session(ctx) as repo:
        skills = repo.list_skills()

    if tag:
        skills = [s for s in skills if normalize_name(tag) in {normalize_name(t) for t in s.tags}]

    if not skills:
        console.print("[dim]No skills imported.[/dim]")
        console.print("Run [cyan]skillkeeper skill scan[/cyan] to find skills to import.")
        return

    table = Table(title="Imported Skills")
    table.add_column("Name", style="cyan")
    table.add_column("ID", style="dim")
    table.add_column("Description")
    table.add_column("Tags", style="green")
    table.add_column("Source", style="dim")

    for skill in skills:
        description = skill.description or ""
        if len(description) > 50:
            description = description[:47] + "..."
        table.add_row(
            skill.name,
            short_id(skill.id),
            description,
            ", ".join(skill.tags),
            skill.source or "-",
        )

    console.print(table)
    console.print(f"\n[dim]Total: {len(skills)} skill(s)[/dim]")


@app.command()
def show(
    ctx: typer.Context,
    ref: Annotated[
        str,
        typer.Argument(
            help="Skill name or ID.",
        ),
    ],
    full: Annotated[
        bool,
        typer.Option(
            "--full",
            "-f",
            help="Print the whole SKILL.md.",
        ),
    ] = False,
) -> None:
    """Show details of an imported skill."""
    with repository_session(ctx) as repo:
        skill = require_skill(repo, ref)
        presets = [p.name for p in repo.list_presets() if skill.id in p.skill_ids]

    console.print(f"\n[bold cyan]{skill.name}[/bold cyan]")
    console.print(f"[dim]{skill.id}[/dim]")
    if skill.description:
        console.print(f"\n{skill.description}")

    console.print(f"\n[bold]Tags:[/bold] {', '.join(skill.tags) or '-'}")
    console.print(f"[bold]Presets:[/bold] {', '.join(presets) or '-'}")
    console.print(f"[bold]Source:[/bold] {skill.source or '-'}")
    console.print(f"[bold]Location:[/bold] {skill.path}")

    if full:
        content = skill.manifest_path.read_text(encoding="utf-8", errors="replace")
        console.print(Panel(content, title="SKILL.md"))


@app.command()
def scan(
    ctx: typer.Context,
    workspace: WorkspaceOption = None,
    path: PathOption = None,
    github: GitHubOption = None,
) -> None:
    """Scan known locations for skills that are not imported yet."""
    with repository_session(ctx) as repo:
        result = _run_scan(repo, workspace, path, github)

    print_source_errors(result.errors)
    if result.truncated:
        print_warning("A repository listing was truncated; some skills may be missing.")

    if not result.discoverable:
        console.print("[dim]No new skills found.[/dim]")
        console.print(f"[dim]Imported: {len(result.imported)} skill(s)[/dim]")
        return

    table = Table(title="Discovered Skills")
    table.add_column("Name", style="cyan")
    table.add_column("ID", style="dim")
    table.add_column("Location")
    table.add_column("Status")

    for candidate in result.discoverable:
        conflict = result.conflict_for(candidate)
        status = (
            f"[yellow]replaces {short_id(conflict.existing.id)}[/yellow]" if conflict else "[green]new[/green]"
        )
        table.add_row(
            candidate.name,
            short_id(candidate.digest),
            candidate.remote_url or candidate.source_location,
            status,
        )

    console.print(table)
    console.print(
        f"\n[dim]Discovered: {len(result.discoverable)} new, {len(result.imported)} imported[/dim]"
    )
    console.print("Import with [cyan]skillkeeper skill import <name>[/cyan].")


@app.command("import")
def import_skills(
    ctx: typer.Context,
    refs: Annotated[
        list[str] | None,
        typer.Argument(
            help="Names or IDs of discovered skills.",
        ),
    ] = None,
    import_all: Annotated[
        bool,
        typer.Option(
            "--all",
            "-a",
            help="Import every discovered skill without a name conflict.",
        ),
    ] = False,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Replace same-named skills without asking.",
        ),
    ] = False,
    workspace: WorkspaceOption = None,
    path: PathOption = None,
    github: GitHubOption = None,
) -> None:
    """Import discovered skills into the repository."""
    if not refs and not import_all:
        console.print("[red]Name a skill to import, or use --all.[/red]")
        raise typer.Exit(1)

    with repository_session(ctx) as repo:
        result = _run_scan(repo, workspace, path, github)
        print_source_errors(result.errors)

        if import_all:
            selected = [c for c in result.discoverable if result.conflict_for(c) is None]
        else:
            selected = []
            for ref in refs or []:
                candidate = _match_candidate(result.all_discovered, ref)
                if candidate is None:
                    console.print(f"[red]No discovered skill matches: {ref}[/red]")
                    raise typer.Exit(1)
                selected.append(candidate)

        imported = 0
        for candidate in selected:
            conflict = result.conflict_for(candidate)
            if conflict is not None and not force:
                console.print(
                    f"[yellow]'{conflict.existing.name}' is already imported with different content.[/yellow]"
                )
                if not typer.confirm("Replace it?"):
                    console.print(f"[dim]Skipped {candidate.name}.[/dim]")
                    continue
            try:
                skill_id = repo.import_candidate(candidate, allow_overwrite=True)
            except ConflictError as e:
                print_warning(str(e))
                continue
            imported += 1
            print_success(f"Imported {candidate.name} [dim]({short_id(skill_id)})[/dim]")

    console.print(f"\n[dim]Imported {imported} of {len(selected)} skill(s)[/dim]")


@app.command()
def tag(
    ctx: typer.Context,
    ref: Annotated[
        str,
        typer.Argument(
            help="Skill name or ID.",
        ),
    ],
    tags: Annotated[
        list[str],
        typer.Argument(
            help="Tags to add (or remove with --remove).",
        ),
    ],
    remove: Annotated[
        bool,
        typer.Option(
            "--remove",
            "-r",
            help="Remove the tags instead of adding them.",
        ),
    ] = False,
) -> None:
    """Add or remove tags on a skill."""
    with repository_session(ctx) as repo:
        skill = require_skill(repo, ref)
        if remove:
            dropped = {normalize_name(t) for t in tags}
            updated = [t for t in skill.tags if normalize_name(t) not in dropped]
        else:
            updated = [*skill.tags, *tags]
        meta = repo.update_metadata(skill.id, tags=updated)

    print_success(f"Tags of {skill.name}: {', '.join(meta.tags) or '-'}")


@app.command()
def rename(
    ctx: typer.Context,
    ref: Annotated[
        str,
        typer.Argument(
            help="Skill name or ID.",
        ),
    ],
    name: Annotated[
        str | None,
        typer.Argument(
            help="New display name (omit with --reset).",
        ),
    ] = None,
    reset: Annotated[
        bool,
        typer.Option(
            "--reset",
            help="Drop the custom name.",
        ),
    ] = False,
) -> None:
    """Give a skill a custom display name."""
    if name is None and not reset:
        console.print("[red]Give a new name, or use --reset.[/red]")
        raise typer.Exit(1)

    with repository_session(ctx) as repo:
        skill = require_skill(repo, ref)
        repo.update_metadata(skill.id, custom_name=None if reset else name)
        renamed = repo.get_skill(skill.id)

    print_success(f"Renamed {skill.name} to {renamed.name if renamed else name}")


@app.command()
def describe(
    ctx: typer.Context,
    ref: Annotated[
        str,
        typer.Argument(
            help="Skill name or ID.",
        ),
    ],
    text: Annotated[
        str | None,
        typer.Argument(
            help="Custom description (omit with --reset).",
        ),
    ] = None,
    reset: Annotated[
        bool,
        typer.Option(
            "--reset",
            help="Drop the custom description.",
        ),
    ] = False,
) -> None:
    """Give a skill a custom description."""
    if text is None and not reset:
        console.print("[red]Give a description, or use --reset.[/red]")
        raise typer.Exit(1)

    with repository_session(ctx) as repo:
        skill = require_skill(repo, ref)
        repo.update_metadata(skill.id, custom_description=None if reset else text)

    print_success(f"Updated description of {skill.name}")


@app.command()
def delete(
    ctx: typer.Context,
    ref: Annotated[
        str,
        typer.Argument(
            help="Skill name or ID.",
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
    """Delete an imported skill."""
    with repository_session(ctx) as repo:
        skill = require_skill(repo, ref)

        if not yes:
            console.print(f"[yellow]This will delete '{skill.name}' from {skill.path}[/yellow]")
            if not typer.confirm("Are you sure?"):
                console.print("[dim]Cancelled.[/dim]")
                return

        if not repo.delete_skill(skill.id):
            console.print(f"[red]Skill not found: {ref}[/red]")
            raise typer.Exit(1)

    print_success(f"Deleted {skill.name}")


@app.command()
def export(
    ctx: typer.Context,
    refs: Annotated[
        list[str],
        typer.Argument(
            help="Skill names or IDs.",
        ),
    ],
    to: Annotated[
        Path | None,
        typer.Option(
            "--to",
            "-t",
            help="Target directory (default: the export path under the current directory).",
        ),
    ] = None,
) -> None:
    """Copy skills into a directory, named after their display names."""
    with repository_session(ctx) as repo:
        target = to if to is not None else Path.cwd() / repo.default_export_path
        for ref in refs:
            skill = require_skill(repo, ref)
            destination = repo.export_to_directory(skill.id, target)
            print_success(f"Exported {skill.name} to {destination}")


@app.command("export-path")
def export_path(
    ctx: typer.Context,
    value: Annotated[
        str | None,
        typer.Argument(
            help="New workspace-relative export directory.",
        ),
    ] = None,
) -> None:
    """Show or change the default export directory."""
    with repository_session(ctx) as repo:
        if value is None:
            console.print(repo.default_export_path)
            return
        repo.set_default_export_path(value)

    print_success(f"Default export path set to {value.strip()}")
