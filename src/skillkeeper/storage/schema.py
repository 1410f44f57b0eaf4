"""
Persisted document schema for skillkeeper.

Pydantic models for the repository document stored at ``<root>/config.json``:
per-skill metadata keyed by digest, presets and repository settings.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

DOCUMENT_VERSION = 2


def _unique(values: list[str]) -> list[str]:
    """Drop duplicates, keeping the first occurrence."""
    seen: set[str] = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def utc_now_iso() -> str:
    """Current time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class SkillMetadata(BaseModel):
    """User-assigned metadata for an imported skill, keyed by digest."""

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    tags: list[str] = Field(default_factory=list, description="User-assigned tags")
    custom_name: str | None = Field(default=None, alias="customName")
    custom_description: str | None = Field(default=None, alias="customDescription")
    source: str | None = Field(default=None, description="Where the skill was imported from")
    imported_at: str | None = Field(default=None, alias="importedAt")
    source_name: str | None = Field(default=None, alias="sourceName", description="Directory name first imported from")

    @field_validator("tags", mode="before")
    @classmethod
    def _clean_tags(cls, value: object) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list):
            return []
        tags = [str(tag).strip() for tag in value if str(tag).strip()]
        return _unique(tags)


class Preset(BaseModel):
    """A named set of skill IDs."""

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    id: str = Field(..., description="Opaque identifier assigned at creation")
    name: str = Field(..., description="Unique (case-insensitive) preset name")
    skill_ids: list[str] = Field(default_factory=list, alias="skillIds")
    description: str | None = None

    @field_validator("skill_ids", mode="before")
    @classmethod
    def _collapse_ids(cls, value: object) -> list[str]:
        if not isinstance(value, list):
            return []
        return _unique([item for item in value if isinstance(item, str) and item])


class RepositoryDocument(BaseModel):
    """The persisted repository document (config.json)."""

    model_config = ConfigDict(populate_by_name=True)

    version: int = DOCUMENT_VERSION
    skills: dict[str, SkillMetadata] = Field(default_factory=dict)
    presets: list[Preset] = Field(default_factory=list)
    default_export_path: str = Field(default="", alias="defaultExportPath")

    def to_json_dict(self) -> dict:
        """Serialize with the on-disk key names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def find_preset(self, preset_id: str) -> Preset | None:
        """Find a preset by ID."""
        for preset in self.presets:
            if preset.id == preset_id:
                return preset
        return None

    def find_preset_by_name(self, name: str, exclude_id: str | None = None) -> Preset | None:
        """Find a preset by case-insensitive name, optionally ignoring one ID."""
        wanted = normalize_name(name)
        for preset in self.presets:
            if preset.id != exclude_id and normalize_name(preset.name) == wanted:
                return preset
        return None


def normalize_name(value: str) -> str:
    """Normalize a name for case-insensitive comparison."""
    return value.strip().lower()
