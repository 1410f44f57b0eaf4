"""
Skill models for skillkeeper.

Defines the in-memory views the engine hands to callers: imported skills,
discovered candidates and operation reports. The persisted document models
live in ``skillkeeper.storage.schema`` and are re-exported here.
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from skillkeeper.storage.paths import MANIFEST_FILENAME
from skillkeeper.storage.schema import (
    DOCUMENT_VERSION,
    Preset,
    RepositoryDocument,
    SkillMetadata,
    normalize_name,
    utc_now_iso,
)

__all__ = [
    "ApplyMode",
    "ApplyResult",
    "BUNDLE_VERSION",
    "BundleImportResult",
    "DOCUMENT_VERSION",
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
    "utc_now_iso",
]

BUNDLE_VERSION = 2

ApplyMode = Literal["merge", "replace"]


# =============================================================================
# In-memory views
# =============================================================================


class Skill(BaseModel):
    """An imported skill, as resolved from storage and metadata."""

    id: str = Field(..., description="Digest of the manifest at import time")
    name: str
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    path: Path = Field(..., description="Skill directory under canonical storage")
    dir_name: str = Field(..., description="Storage directory name")
    source: str | None = None
    source_name: str | None = None

    @property
    def manifest_path(self) -> Path:
        """Path to the skill's manifest file."""
        return self.path / MANIFEST_FILENAME


class DiscoveredCandidate(BaseModel):
    """A skill-shaped directory found by scanning, not yet imported."""

    name: str
    path: str = Field(..., description="Local directory or remote contents-API URL")
    digest: str
    description: str | None = None
    source_location: str = ""
    is_remote: bool = False
    remote_url: str | None = None


class SourceError(BaseModel):
    """A scan source that could not be read."""

    source: str
    error: str


class NameConflict(BaseModel):
    """A discoverable candidate whose name matches a different imported skill."""

    candidate: DiscoveredCandidate
    existing: Skill


class ScanResult(BaseModel):
    """Result of a full scan."""

    discoverable: list[DiscoveredCandidate] = Field(default_factory=list)
    imported: list[Skill] = Field(default_factory=list)
    all_discovered: list[DiscoveredCandidate] = Field(default_factory=list)
    conflicts: list[NameConflict] = Field(default_factory=list)
    errors: list[SourceError] = Field(default_factory=list)
    truncated: bool = False

    def conflict_for(self, candidate: DiscoveredCandidate) -> NameConflict | None:
        """Get the name conflict reported for a candidate, if any."""
        for conflict in self.conflicts:
            if conflict.candidate.digest == candidate.digest:
                return conflict
        return None


class RemoteScanResult(BaseModel):
    """Result of scanning a GitHub repository."""

    candidates: list[DiscoveredCandidate] = Field(default_factory=list)
    errors: list[SourceError] = Field(default_factory=list)
    truncated: bool = False


class BundleImportResult(BaseModel):
    """Counters reported by a bundle import."""

    total_skills: int = 0
    imported: int = 0
    overwritten: int = 0
    skipped: int = 0
    presets_imported: int = 0
    presets_overwritten: int = 0
    presets_skipped: int = 0


class ApplyResult(BaseModel):
    """Outcome of applying a preset to a directory."""

    target: Path
    applied: list[str] = Field(default_factory=list)
    missing: list[str] = Field(default_factory=list)


class ReconcileReport(BaseModel):
    """What a reconciliation pass found and repaired."""

    valid_ids: set[str] = Field(default_factory=set)
    removed_metadata: list[str] = Field(default_factory=list)
    stripped_presets: list[str] = Field(default_factory=list)
    created_metadata: list[str] = Field(default_factory=list)
    relocated: list[str] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        """Whether the document was modified."""
        return bool(
            self.removed_metadata
            or self.stripped_presets
            or self.created_metadata
            or self.relocated
        )
