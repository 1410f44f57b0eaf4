"""
Repository access for CLI commands.

Commands open the repository through ``repository_session`` so that
configuration and repository errors are reported the same way everywhere.
"""

from collections.abc import Iterator
from contextlib import contextmanager

import typer

from skillkeeper.cli.output import print_error
from skillkeeper.config import ConfigurationError, get_settings
from skillkeeper.skills import Preset, Skill, SkillRepository, SkillRepositoryError, open_repository


@contextmanager
def repository_session(ctx: typer.Context) -> Iterator[SkillRepository]:
    """Open the repository selected on the command line.

    Raises:
        typer.Exit: On configuration or repository errors.
    """
    root = (ctx.obj or {}).get("root")
    try:
        repo = open_repository(root, get_settings())
    except ConfigurationError as e:
        print_error(f"Configuration error: {e}")
        raise typer.Exit(1)

    try:
        yield repo
    except SkillRepositoryError as e:
        print_error(str(e))
        raise typer.Exit(1)
    finally:
        repo.close()


def require_skill(repo: SkillRepository, ref: str) -> Skill:
    """Resolve a skill reference or exit."""
    skill = repo.find_skill(ref)
    if skill is None:
        print_error(f"Skill not found: {ref}")
        raise typer.Exit(1)
    return skill


def require_preset(repo: SkillRepository, ref: str) -> Preset:
    """Resolve a preset reference or exit."""
    preset = repo.find_preset(ref)
    if preset is None:
        print_error(f"Preset not found: {ref}")
        raise typer.Exit(1)
    return preset
