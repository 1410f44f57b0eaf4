"""
Pydantic settings schema for skillkeeper.

Settings tune where the repository lives and how sources are scanned. They
are read from ``settings.yaml`` and ``SKILLKEEPER_*`` environment variables;
per-repository state (metadata, presets) lives in the repository document.
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from skillkeeper.storage.paths import (
    GITHUB_EXTRA_SKILL_PATHS,
    GLOBAL_SKILL_PATHS,
    WORKSPACE_SKILL_PATHS,
    get_default_storage_root,
    get_legacy_storage_root,
    resolve_path,
)

# =============================================================================
# Scan Configuration
# =============================================================================


class ScanConfig(BaseModel):
    """Local scanning configuration."""

    model_config = ConfigDict(extra="allow")

    max_depth: int = Field(default=5, ge=0, le=50, description="Recursion depth for local scans")
    bundle_max_depth: int = Field(default=10, ge=0, le=50, description="Recursion depth inside bundles")
    global_paths: list[str] = Field(
        default_factory=lambda: list(GLOBAL_SKILL_PATHS),
        description="User-wide skill locations",
    )
    workspace_paths: list[str] = Field(
        default_factory=lambda: list(WORKSPACE_SKILL_PATHS),
        description="Skill locations relative to a workspace root",
    )


# =============================================================================
# GitHub Configuration
# =============================================================================


class GitHubConfig(BaseModel):
    """Remote scanning configuration."""

    model_config = ConfigDict(extra="allow")

    api_url: str = "https://api.github.com"
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")
    max_candidates: int = Field(
        default=200,
        ge=1,
        description="Cap on manifests taken from a recursive repository listing",
    )
    extra_paths: list[str] = Field(
        default_factory=lambda: list(GITHUB_EXTRA_SKILL_PATHS),
        description="Repository locations probed in addition to the workspace paths",
    )
    user_agent: str = "skillkeeper"


# =============================================================================
# Watcher & Logging Configuration
# =============================================================================


class WatcherConfig(BaseModel):
    """Storage watcher configuration."""

    debounce_seconds: float = Field(default=0.5, ge=0.0, le=60.0)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"


# =============================================================================
# Root Settings Model
# =============================================================================


class Settings(BaseModel):
    """
    Root settings model for skillkeeper.

    Settings are merged from defaults, the settings file and environment
    variables, in that order.
    """

    model_config = ConfigDict(extra="allow")

    storage_path: str | None = Field(
        default=None,
        description="Storage root (default: SKILLKEEPER_HOME or <config home>/skillkeeper)",
    )
    migrate_legacy: bool = Field(default=True, description="Copy data over from ~/.skillkeeper")
    default_export_path: str = Field(
        default=".claude/skills/",
        description="Workspace-relative directory skills are exported and applied to",
    )

    scan: ScanConfig = Field(default_factory=ScanConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    watcher: WatcherConfig = Field(default_factory=WatcherConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def storage_root(self) -> Path:
        """Resolve the storage root."""
        if self.storage_path:
            return resolve_path(self.storage_path)
        return get_default_storage_root()

    def legacy_root(self) -> Path | None:
        """Get the legacy storage root to migrate from, if enabled."""
        return get_legacy_storage_root() if self.migrate_legacy else None

    def github_standard_paths(self) -> list[str]:
        """Repository locations probed before a recursive listing."""
        return [*self.scan.workspace_paths, *self.github.extra_paths]
