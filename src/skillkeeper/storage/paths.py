"""
Path utilities for skillkeeper.

Provides consistent path resolution for the storage root, the settings file
and the well-known skill locations used by AI coding tools.
"""

import os
import sys
from pathlib import Path

MANIFEST_FILENAME = "SKILL.md"
CONFIG_FILENAME = "config.json"
SKILLS_DIRNAME = "skills"

# Locations where tools keep user-wide skills.
GLOBAL_SKILL_PATHS = [
    "~/.claude/skills/",
    "~/.copilot/skills/",
    "~/.cursor/skills/",
    "~/.gemini/antigravity/skills/",
    "~/.config/opencode/skill/",
    "~/.codex/skills/",
    "/etc/codex/skills/",
    "~/AppData/Roaming/OpenCode/skill/",
]

# Locations relative to a workspace (project) root.
WORKSPACE_SKILL_PATHS = [
    ".claude/skills/",
    ".github/skills/",
    ".cursor/skills/",
    ".agent/skills/",
    ".opencode/skill/",
    ".codex/skills/",
]

# Common repository layouts probed during a GitHub scan, in addition to
# WORKSPACE_SKILL_PATHS (e.g. skills/<skill-name>/SKILL.md).
GITHUB_EXTRA_SKILL_PATHS = [
    "skills/",
    "skill/",
]


def get_config_home() -> Path:
    """
    Get the base directory for per-user configuration.

    Returns:
        %APPDATA% on Windows, $XDG_CONFIG_HOME or ~/.config elsewhere.
    """
    home = Path.home()
    if sys.platform == "win32":
        app_data = os.environ.get("APPDATA")
        return Path(app_data) if app_data else home / "AppData" / "Roaming"

    xdg_config_home = os.environ.get("XDG_CONFIG_HOME", "").strip()
    if xdg_config_home:
        return Path(xdg_config_home)
    return home / ".config"


def get_default_storage_root() -> Path:
    """
    Get the default storage root.

    Resolution order:
    1. SKILLKEEPER_HOME environment variable
    2. <config home>/skillkeeper

    Returns:
        Path to the storage root.
    """
    env_home = os.environ.get("SKILLKEEPER_HOME")
    if env_home:
        return Path(env_home).expanduser().resolve()
    return get_config_home() / "skillkeeper"


def get_legacy_storage_root() -> Path:
    """
    Get the storage root used by earlier releases.

    Returns:
        Path to ~/.skillkeeper
    """
    return Path.home() / ".skillkeeper"


def get_settings_path() -> Path:
    """
    Get the path to the settings file.

    Returns:
        Path to <config home>/skillkeeper/settings.yaml
    """
    return get_config_home() / "skillkeeper" / "settings.yaml"


def get_skills_dir(root: Path) -> Path:
    """Get the skills directory of a storage root."""
    return root / SKILLS_DIRNAME


def get_config_path(root: Path) -> Path:
    """Get the repository document path of a storage root."""
    return root / CONFIG_FILENAME


def resolve_path(path: str | Path) -> Path:
    """
    Resolve a user supplied path.

    A leading ``~`` followed by either separator is expanded to the home
    directory so Windows style entries work on every platform.

    Args:
        path: Path string or Path object.

    Returns:
        Absolute path.
    """
    text = str(path)
    if text.startswith("~"):
        relative = text[1:].lstrip("/\\")
        return Path.home() / relative
    return Path(text).resolve()


def is_same_or_nested(path: Path, other: Path) -> bool:
    """
    Check whether two paths are equal or one contains the other.

    Args:
        path: First path.
        other: Second path.

    Returns:
        True if the paths overlap.
    """
    a = Path(os.path.normpath(os.path.abspath(path)))
    b = Path(os.path.normpath(os.path.abspath(other)))
    return a == b or a in b.parents or b in a.parents


def ensure_directory(path: Path, mode: int = 0o755) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path.
        mode: Permission mode for created directories.

    Returns:
        The path (for chaining).
    """
    path.mkdir(parents=True, exist_ok=True, mode=mode)
    return path
