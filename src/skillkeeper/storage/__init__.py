"""
Storage layer for skillkeeper.

Path resolution for the storage root and the well-known skill locations.
The repository document itself lives in ``skillkeeper.storage.document``.
"""

from skillkeeper.storage.paths import (
    CONFIG_FILENAME,
    GITHUB_EXTRA_SKILL_PATHS,
    GLOBAL_SKILL_PATHS,
    MANIFEST_FILENAME,
    SKILLS_DIRNAME,
    WORKSPACE_SKILL_PATHS,
    ensure_directory,
    get_config_home,
    get_config_path,
    get_default_storage_root,
    get_legacy_storage_root,
    get_settings_path,
    get_skills_dir,
    is_same_or_nested,
    resolve_path,
)

__all__ = [
    "CONFIG_FILENAME",
    "GITHUB_EXTRA_SKILL_PATHS",
    "GLOBAL_SKILL_PATHS",
    "MANIFEST_FILENAME",
    "SKILLS_DIRNAME",
    "WORKSPACE_SKILL_PATHS",
    "ensure_directory",
    "get_config_home",
    "get_config_path",
    "get_default_storage_root",
    "get_legacy_storage_root",
    "get_settings_path",
    "get_skills_dir",
    "is_same_or_nested",
    "resolve_path",
]
