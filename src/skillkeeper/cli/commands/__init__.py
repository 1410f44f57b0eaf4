"""CLI command modules."""

from skillkeeper.cli.commands import bundle, config, preset, skill

__all__ = ["bundle", "config", "preset", "skill"]
