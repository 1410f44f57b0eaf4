"""
Repository document storage for skillkeeper.

Loads and persists the JSON document (per-skill metadata, presets and
settings) kept at ``<root>/config.json``, migrates older document shapes to
the current schema and moves data over from a legacy storage root.
"""

import json
import logging
import os
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from skillkeeper.storage.paths import ensure_directory, get_config_path, get_skills_dir
from skillkeeper.storage.schema import DOCUMENT_VERSION, Preset, RepositoryDocument, SkillMetadata

logger = logging.getLogger(__name__)

CORRUPT_SUFFIX = ".corrupt"


class CorruptDocumentError(Exception):
    """The persisted document cannot be parsed or has a broken shape."""

    pass


def _drop_invalid_fields(model: type[BaseModel], data: dict[str, Any], label: str) -> dict[str, Any] | None:
    """Remove the fields of one entry that fail validation.

    Returns:
        The entry without its invalid fields, or None if it is still invalid.
    """
    try:
        model.model_validate(data)
        return data
    except ValidationError as e:
        bad = {str(error["loc"][0]) for error in e.errors() if error["loc"]}

    for name, field in model.model_fields.items():
        if name in bad or field.alias in bad:
            bad.update(key for key in (name, field.alias) if key)
    cleaned = {key: value for key, value in data.items() if key not in bad}
    try:
        model.model_validate(cleaned)
    except ValidationError:
        logger.warning(f"Dropping invalid {label}")
        return None
    logger.warning(f"Dropping invalid fields of {label}: {', '.join(sorted(key for key in data if key in bad))}")
    return cleaned


def _repair(raw: dict[str, Any]) -> dict[str, Any]:
    """Drop or default every field that does not have the current shape."""
    skills_raw = raw.get("skills")
    skills: dict[str, Any] = {}
    if isinstance(skills_raw, dict):
        for skill_id, meta in skills_raw.items():
            if not isinstance(skill_id, str) or not skill_id:
                continue
            if not isinstance(meta, dict):
                skills[skill_id] = {"tags": []}
                continue
            skills[skill_id] = _drop_invalid_fields(SkillMetadata, meta, f"metadata of {skill_id}") or {"tags": []}

    presets: list[dict[str, Any]] = []
    presets_raw = raw.get("presets")
    if isinstance(presets_raw, list):
        for item in presets_raw:
            if not isinstance(item, dict):
                continue
            name = item.get("name")
            if not isinstance(name, str) or not name.strip():
                continue
            preset_id = item.get("id")
            if not isinstance(preset_id, str) or not preset_id.strip():
                preset_id = uuid.uuid4().hex
            preset = _drop_invalid_fields(
                Preset,
                {
                    "id": preset_id,
                    "name": name.strip(),
                    "description": item.get("description")
                    if isinstance(item.get("description"), str)
                    else None,
                    "skillIds": item.get("skillIds") if isinstance(item.get("skillIds"), list) else [],
                },
                f"preset {name.strip()}",
            )
            if preset is not None:
                presets.append(preset)

    export_path = raw.get("defaultExportPath")
    return {
        "version": DOCUMENT_VERSION,
        "skills": skills,
        "presets": presets,
        "defaultExportPath": export_path if isinstance(export_path, str) else "",
    }


def _upgrade_v1(raw: dict[str, Any]) -> dict[str, Any]:
    """Version 1 documents carried no version key; the fields are unchanged."""
    data = dict(raw)
    data["version"] = 2
    return data


# Maps a document version to the function upgrading it to the next one.
_MIGRATIONS = {
    1: _upgrade_v1,
}


def migrate_document(raw: Any) -> dict[str, Any]:
    """Upgrade a raw document of any known version to the current schema.

    Args:
        raw: Parsed JSON value.

    Returns:
        Document dictionary in the current shape.

    Raises:
        CorruptDocumentError: If the value is not a JSON object or claims a
            version newer than this release understands.
    """
    if not isinstance(raw, dict):
        raise CorruptDocumentError(f"Expected a JSON object, got {type(raw).__name__}")

    version = raw.get("version", 1)
    if not isinstance(version, int) or version < 1:
        version = 1
    if version > DOCUMENT_VERSION:
        raise CorruptDocumentError(f"Unsupported document version: {version}")

    data = dict(raw)
    while version < DOCUMENT_VERSION:
        data = _MIGRATIONS[version](data)
        version = data["version"]

    return _repair(data)


def document_from_raw(raw: Any) -> RepositoryDocument:
    """Build a validated document from a raw JSON value.

    Raises:
        CorruptDocumentError: If the value cannot be turned into a document.
    """
    data = migrate_document(raw)
    try:
        return RepositoryDocument.model_validate(data)
    except ValidationError as e:
        raise CorruptDocumentError(f"Invalid document: {e}") from e


def _copy_missing(source: Path, destination: Path) -> None:
    """Copy a tree into destination without overwriting existing files."""
    for dirpath, _dirnames, filenames in os.walk(source):
        relative = Path(dirpath).relative_to(source)
        target_dir = destination / relative
        target_dir.mkdir(parents=True, exist_ok=True)
        for filename in filenames:
            target = target_dir / filename
            if not target.exists():
                shutil.copy2(Path(dirpath) / filename, target)


def _has_entries(directory: Path) -> bool:
    return directory.is_dir() and any(directory.iterdir())


class DocumentStore:
    """Owns the repository document of one storage root.

    The document is read fully into memory, mutated by the engine and
    rewritten as a whole by ``save``.
    """

    def __init__(self, root: Path | str, legacy_root: Path | str | None = None):
        """Initialize the store.

        Args:
            root: Storage root directory.
            legacy_root: Previous storage root to migrate from when this
                root is still empty.
        """
        self.root = Path(root).expanduser().resolve()
        self.legacy_root = Path(legacy_root).expanduser().resolve() if legacy_root else None
        self.skills_dir = get_skills_dir(self.root)
        self.config_path = get_config_path(self.root)
        self.document = RepositoryDocument()

    def open(self) -> RepositoryDocument:
        """Create the storage layout, migrate legacy data and load the document.

        Returns:
            The loaded document.
        """
        ensure_directory(self.root)
        if self.legacy_root is not None:
            self.migrate_from(self.legacy_root)
        ensure_directory(self.skills_dir)
        return self.load()

    def migrate_from(self, legacy_root: Path) -> bool:
        """Copy data from a legacy root if this root holds nothing yet.

        Args:
            legacy_root: The previous storage root.

        Returns:
            True if anything was copied.
        """
        legacy_root = Path(legacy_root)
        if legacy_root.resolve() == self.root:
            return False

        if self.config_path.exists() or _has_entries(self.skills_dir):
            return False

        legacy_config = get_config_path(legacy_root)
        legacy_skills = get_skills_dir(legacy_root)
        if not legacy_config.exists() and not _has_entries(legacy_skills):
            return False

        try:
            _copy_missing(legacy_root, self.root)
        except OSError as e:
            logger.error(f"Failed to migrate storage from {legacy_root}: {e}")
            return False

        logger.info(f"Migrated storage from {legacy_root} to {self.root}")
        return True

    def load(self) -> RepositoryDocument:
        """Load the document from disk.

        A missing document is created with defaults. A corrupt one is kept
        aside as ``config.json.corrupt`` and replaced by a defaulted
        document so the repository stays usable.

        Returns:
            The loaded document.
        """
        if not self.config_path.exists():
            self.document = RepositoryDocument()
            self.save()
            return self.document

        try:
            raw = json.loads(self.config_path.read_text(encoding="utf-8"))
            self.document = document_from_raw(raw)
        except (json.JSONDecodeError, UnicodeDecodeError, CorruptDocumentError) as e:
            backup = self.config_path.with_name(self.config_path.name + CORRUPT_SUFFIX)
            logger.error(
                f"Repository document {self.config_path} is corrupt ({e}); "
                f"keeping a copy at {backup} and starting from an empty document"
            )
            try:
                shutil.copy2(self.config_path, backup)
            except OSError as copy_error:
                logger.error(f"Could not back up corrupt document: {copy_error}")
            self.document = RepositoryDocument()
            self.save()

        return self.document

    def save(self) -> None:
        """Write the whole document to disk.

        The content goes to a temporary file next to the document which then
        replaces it.
        """
        ensure_directory(self.root)
        payload = json.dumps(self.document.to_json_dict(), indent=2, ensure_ascii=False)
        fd, temp_name = tempfile.mkstemp(prefix=".config-", suffix=".json", dir=self.root)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.write("\n")
            os.replace(temp_name, self.config_path)
        except BaseException:
            if os.path.exists(temp_name):
                os.unlink(temp_name)
            raise
