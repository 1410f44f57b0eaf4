"""
Preset registry for skillkeeper.

Presets are named sets of skill IDs that can be applied to a target
directory, either merged into it or replacing its contents.
"""

import logging
import shutil
import uuid
from collections.abc import Iterable
from pathlib import Path

from skillkeeper.skills.exceptions import ConflictError, InvalidInputError, NotFoundError
from skillkeeper.skills.models import ApplyMode, ApplyResult, Preset, Skill
from skillkeeper.storage.document import DocumentStore

logger = logging.getLogger(__name__)

APPLY_MODES = ("merge", "replace")


def new_preset_id() -> str:
    """Generate an identifier for a new preset."""
    return uuid.uuid4().hex


def sanitize_dir_name(name: str) -> str:
    """Turn a display name into a single safe path component."""
    cleaned = name.strip().replace("/", "-").replace("\\", "-")
    if cleaned in ("", ".", ".."):
        return "skill"
    return cleaned


def export_names(skills: Iterable[Skill]) -> dict[str, str]:
    """Assign each skill a unique directory name.

    Names are sanitized display names; repeats get ``-2``, ``-3``... suffixes
    (compared case-insensitively).

    Returns:
        Mapping of skill ID to directory name.
    """
    names: dict[str, str] = {}
    taken: set[str] = set()
    for skill in skills:
        base = sanitize_dir_name(skill.name)
        name = base
        counter = 2
        while name.lower() in taken:
            name = f"{base}-{counter}"
            counter += 1
        taken.add(name.lower())
        names[skill.id] = name
    return names


def clear_directory(directory: Path) -> None:
    """Remove everything inside a directory, keeping the directory itself."""
    for entry in directory.iterdir():
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()


class PresetRegistry:
    """CRUD and apply operations over the presets of one repository."""

    def __init__(self, store: DocumentStore):
        self.store = store

    @property
    def presets(self) -> list[Preset]:
        return self.store.document.presets

    def list_all(self) -> list[Preset]:
        """Get copies of all presets."""
        return [preset.model_copy(deep=True) for preset in self.presets]

    def get(self, preset_id: str) -> Preset | None:
        """Get a copy of a preset by ID."""
        preset = self.store.document.find_preset(preset_id)
        return preset.model_copy(deep=True) if preset else None

    def _require(self, preset_id: str) -> Preset:
        preset = self.store.document.find_preset(preset_id)
        if preset is None:
            raise NotFoundError("preset", preset_id)
        return preset

    def save(self, preset: Preset, valid_ids: set[str], allow_overwrite: bool = False) -> Preset:
        """Create or update a preset.

        Args:
            preset: The preset to store; an existing preset with the same ID
                is replaced.
            valid_ids: Digests of the currently imported skills.
            allow_overwrite: Replace another preset that has the same name.

        Returns:
            The stored preset.

        Raises:
            InvalidInputError: If the name is empty, or a new preset is
                created while no skill is imported.
            ConflictError: If another preset has the same name and
                overwriting is not allowed.
        """
        name = preset.name.strip()
        if not name:
            raise InvalidInputError("Preset name cannot be empty")

        document = self.store.document
        is_new = document.find_preset(preset.id) is None
        if is_new and not valid_ids:
            raise InvalidInputError("Creating a preset requires at least one imported skill")

        conflict = document.find_preset_by_name(name, exclude_id=preset.id)
        if conflict is not None:
            if not allow_overwrite:
                raise ConflictError(f'Preset name "{name}" already exists', existing=conflict)
            document.presets = [p for p in document.presets if p.id != conflict.id]
            logger.info(f"Replacing preset {conflict.name} ({conflict.id})")

        stored = Preset(
            id=preset.id,
            name=name,
            description=preset.description,
            skill_ids=[sid for sid in preset.skill_ids if sid in valid_ids],
        )
        for i, current in enumerate(document.presets):
            if current.id == stored.id:
                document.presets[i] = stored
                break
        else:
            document.presets.append(stored)

        self.store.save()
        logger.info(f"Saved preset {stored.name} ({stored.id})")
        return stored.model_copy(deep=True)

    def delete(self, preset_id: str) -> bool:
        """Delete a preset.

        Returns:
            True if the preset existed.
        """
        document = self.store.document
        remaining = [p for p in document.presets if p.id != preset_id]
        if len(remaining) == len(document.presets):
            return False
        document.presets = remaining
        self.store.save()
        logger.info(f"Deleted preset {preset_id}")
        return True

    def add_skills(self, preset_id: str, skill_ids: Iterable[str], valid_ids: set[str]) -> Preset:
        """Add skills to a preset, ignoring unknown IDs.

        Raises:
            NotFoundError: If the preset does not exist.
        """
        preset = self._require(preset_id)
        preset.skill_ids = [*preset.skill_ids, *(sid for sid in skill_ids if sid in valid_ids)]
        self.store.save()
        return preset.model_copy(deep=True)

    def remove_skills(self, preset_id: str, skill_ids: Iterable[str]) -> Preset:
        """Remove skills from a preset.

        Raises:
            NotFoundError: If the preset does not exist.
        """
        preset = self._require(preset_id)
        removed = set(skill_ids)
        preset.skill_ids = [sid for sid in preset.skill_ids if sid not in removed]
        self.store.save()
        return preset.model_copy(deep=True)

    def apply(
        self,
        preset_id: str,
        skills: list[Skill],
        mode: ApplyMode,
        target_dir: Path,
    ) -> ApplyResult:
        """Copy a preset's skills into a directory.

        Members that no longer resolve are skipped. In ``replace`` mode the
        target directory is emptied first; in ``merge`` mode existing
        entries are kept and same-named skills are overwritten. Members
        sharing a display name land in ``-2``, ``-3``... suffixed directories.

        Args:
            preset_id: Preset to apply.
            skills: Currently imported skills.
            mode: ``merge`` or ``replace``.
            target_dir: Directory receiving one subdirectory per skill.

        Returns:
            Names applied and member IDs that were missing.

        Raises:
            InvalidInputError: If the mode is unknown.
            NotFoundError: If the preset does not exist.
        """
        if mode not in APPLY_MODES:
            raise InvalidInputError(f"Unknown apply mode: {mode}")

        preset = self._require(preset_id)
        by_id = {skill.id: skill for skill in skills}
        target_dir = Path(target_dir)
        result = ApplyResult(target=target_dir)

        if mode == "replace" and target_dir.is_dir():
            clear_directory(target_dir)
        target_dir.mkdir(parents=True, exist_ok=True)

        members = [by_id[skill_id] for skill_id in preset.skill_ids if skill_id in by_id]
        result.missing = [skill_id for skill_id in preset.skill_ids if skill_id not in by_id]
        names = export_names(members)
        for skill in members:
            shutil.copytree(skill.path, target_dir / names[skill.id], dirs_exist_ok=True)
            result.applied.append(names[skill.id])

        logger.info(f"Applied preset {preset.name} to {target_dir} ({mode}): {len(result.applied)} skill(s)")
        return result
