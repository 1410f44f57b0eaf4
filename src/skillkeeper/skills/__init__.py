"""
skillkeeper skill repository.

Skills are directories holding a SKILL.md manifest plus optional assets.
Imported skills live under ``<root>/skills/<digest>/``, where the digest of
the manifest is the skill's identity; tags, name overrides and presets are
kept in ``<root>/config.json``.

Usage:
    from skillkeeper.skills import open_repository

    with open_repository() as repo:
        result = repo.scan(workspaces=["."])
        for candidate in result.discoverable:
            repo.import_candidate(candidate)

        repo.create_preset("frontend", [s.id for s in repo.list_skills()])
"""

# Models
from skillkeeper.skills.models import (
    ApplyMode,
    ApplyResult,
    BundleImportResult,
    DiscoveredCandidate,
    NameConflict,
    Preset,
    ReconcileReport,
    RemoteScanResult,
    RepositoryDocument,
    ScanResult,
    Skill,
    SkillMetadata,
    SourceError,
    normalize_name,
)

# Exceptions
from skillkeeper.skills.exceptions import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    RemoteFetchError,
    SkillRepositoryError,
)

# Hashing & parsing
from skillkeeper.skills.hashing import digest_bytes, digest_file
from skillkeeper.skills.parser import ManifestInfo, parse_manifest, read_manifest

# Sources
from skillkeeper.skills.github import GitHubClient, parse_repo_ref
from skillkeeper.skills.scanner import find_skill_directories, scan_directory

# Repository
from skillkeeper.skills.manager import SkillRepository, open_repository
from skillkeeper.skills.presets import new_preset_id
from skillkeeper.skills.watcher import SkillWatcher

__all__ = [
    # Models
    "ApplyMode",
    "ApplyResult",
    "BundleImportResult",
    "DiscoveredCandidate",
    "NameConflict",
    "Preset",
    "ReconcileReport",
    "RemoteScanResult",
    "RepositoryDocument",
    "ScanResult",
    "Skill",
    "SkillMetadata",
    "SourceError",
    "normalize_name",
    # Exceptions
    "ConflictError",
    "InvalidInputError",
    "NotFoundError",
    "RemoteFetchError",
    "SkillRepositoryError",
    # Hashing & parsing
    "ManifestInfo",
    "digest_bytes",
    "digest_file",
    "parse_manifest",
    "read_manifest",
    # Sources
    "GitHubClient",
    "find_skill_directories",
    "parse_repo_ref",
    "scan_directory",
    # Repository
    "SkillRepository",
    "SkillWatcher",
    "new_preset_id",
    "open_repository",
]
