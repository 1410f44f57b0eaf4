"""
Bundle import and export for skillkeeper.

A bundle is a directory or zip archive holding ``skills/<name>/...`` and an
optional top-level ``presets.json``. Bundles are name-addressed: skill
directories are named after display names, presets carry member names
next to their IDs and skill tags are listed by directory name.
"""

import json
import logging
import shutil
import tempfile
import zipfile
from collections.abc import Iterable
from pathlib import Path, PurePosixPath
from typing import Any

from skillkeeper.skills.dedup import dedupe_by_name, find_same_skill
from skillkeeper.skills.exceptions import InvalidInputError
from skillkeeper.skills.importer import ImportCoordinator
from skillkeeper.skills.models import (
    BUNDLE_VERSION,
    BundleImportResult,
    DiscoveredCandidate,
    Preset,
    Skill,
    normalize_name,
)
from skillkeeper.skills.presets import export_names, new_preset_id
from skillkeeper.skills.reconciler import Reconciler
from skillkeeper.skills.scanner import build_candidate, find_skill_directories
from skillkeeper.storage.document import DocumentStore
from skillkeeper.storage.paths import SKILLS_DIRNAME

logger = logging.getLogger(__name__)

PRESETS_FILENAME = "presets.json"
DEFAULT_BUNDLE_MAX_DEPTH = 10


def presets_payload(
    presets: Iterable[Preset],
    names: dict[str, str],
    skills: Iterable[Skill] = (),
) -> dict[str, Any]:
    """Build the ``presets.json`` document.

    Tags travel in an optional ``skills`` list of ``{name, tags}`` entries
    keyed by export directory name.

    Args:
        presets: Presets to export.
        names: Export directory name per skill ID.
        skills: Exported skills whose tags are carried.

    Returns:
        The JSON-serializable bundle presets document.
    """
    items = []
    for preset in presets:
        item: dict[str, Any] = {"id": preset.id, "name": preset.name}
        if preset.description is not None:
            item["description"] = preset.description
        item["skillIds"] = list(preset.skill_ids)
        item["skillNames"] = [names[sid] for sid in preset.skill_ids if sid in names]
        items.append(item)
    payload: dict[str, Any] = {"version": BUNDLE_VERSION, "presets": items}
    tagged = [
        {"name": names[skill.id], "tags": list(skill.tags)} for skill in skills if skill.tags and skill.id in names
    ]
    if tagged:
        payload["skills"] = tagged
    return payload


def read_manifest(path: Path) -> dict[str, Any] | None:
    """Read a bundle's ``presets.json``; None when missing or unreadable."""
    if not path.is_file():
        return None
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error(f"Cannot read {path}: {e}")
        return None
    return raw if isinstance(raw, dict) else None


def carried_tags(manifest: dict[str, Any]) -> dict[str, list[str]]:
    """Map normalized export names to the tags a bundle carries for them."""
    tags: dict[str, list[str]] = {}
    items = manifest.get("skills")
    for item in items if isinstance(items, list) else []:
        if isinstance(item, dict) and isinstance(item.get("name"), str) and isinstance(item.get("tags"), list):
            tags[normalize_name(item["name"])] = [tag for tag in item["tags"] if isinstance(tag, str)]
    return tags


def extract_zip(archive: Path, destination: Path) -> None:
    """Extract an archive, rejecting members that would land outside it.

    Raises:
        InvalidInputError: If the archive is invalid or has unsafe paths.
    """
    try:
        with zipfile.ZipFile(archive) as zf:
            for member in zf.infolist():
                name = member.filename.replace("\\", "/")
                parts = PurePosixPath(name).parts
                if name.startswith("/") or ".." in parts or (parts and ":" in parts[0]):
                    raise InvalidInputError(f"Unsafe path in archive: {member.filename}")
            zf.extractall(destination)
    except zipfile.BadZipFile as e:
        raise InvalidInputError(f"Not a valid zip archive: {archive}") from e


class BundleTransfer:
    """Exports and imports bundles for one repository."""

    def __init__(
        self,
        store: DocumentStore,
        importer: ImportCoordinator,
        reconciler: Reconciler,
        max_depth: int = DEFAULT_BUNDLE_MAX_DEPTH,
    ):
        self.store = store
        self.importer = importer
        self.reconciler = reconciler
        self.max_depth = max_depth

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    def export(self, skills: list[Skill], presets: list[Preset], destination: Path) -> Path:
        """Write skills and presets to a bundle.

        A destination ending in ``.zip`` produces an archive; anything else
        a directory.

        Args:
            skills: Skills to include.
            presets: Presets to include (``presets.json`` is omitted when
                there are no presets and no tagged skills).
            destination: Archive path or directory.

        Returns:
            The written bundle path.

        Raises:
            InvalidInputError: If there is nothing to export.
        """
        if not skills and not presets:
            raise InvalidInputError("Nothing selected for export")

        destination = Path(destination)
        names = export_names(skills)
        tagged = any(skill.tags for skill in skills)
        payload = presets_payload(presets, names, skills) if presets or tagged else None

        if destination.suffix.lower() == ".zip":
            self._write_zip(skills, names, payload, destination)
        else:
            self._write_directory(skills, names, payload, destination)

        logger.info(f"Exported {len(skills)} skill(s) and {len(presets)} preset(s) to {destination}")
        return destination

    def _write_zip(
        self,
        skills: list[Skill],
        names: dict[str, str],
        payload: dict[str, Any] | None,
        destination: Path,
    ) -> None:
        destination.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(destination, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for skill in skills:
                prefix = PurePosixPath(SKILLS_DIRNAME, names[skill.id])
                for file in sorted(skill.path.rglob("*")):
                    if file.is_file():
                        arcname = prefix.joinpath(*file.relative_to(skill.path).parts)
                        zf.write(file, str(arcname))
            if payload is not None:
                zf.writestr(PRESETS_FILENAME, json.dumps(payload, indent=2, ensure_ascii=False))

    def _write_directory(
        self,
        skills: list[Skill],
        names: dict[str, str],
        payload: dict[str, Any] | None,
        destination: Path,
    ) -> None:
        skills_root = destination / SKILLS_DIRNAME
        skills_root.mkdir(parents=True, exist_ok=True)
        for skill in skills:
            shutil.copytree(skill.path, skills_root / names[skill.id], dirs_exist_ok=True)
        if payload is not None:
            (destination / PRESETS_FILENAME).write_text(
                json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
            )

    # -------------------------------------------------------------------------
    # Import
    # -------------------------------------------------------------------------

    def import_bundle(self, source: Path, allow_overwrite: bool = False, as_is: bool = False) -> BundleImportResult:
        """Import a bundle directory or zip archive.

        Args:
            source: Bundle directory or ``.zip`` file.
            allow_overwrite: Replace same-named skills with different
                content and same-named or same-ID presets.
            as_is: Use the carried preset member IDs when all of them exist
                in this repository.

        Returns:
            Import counters.

        Raises:
            InvalidInputError: If the source is missing, unsupported or an
                unsafe archive.
        """
        source = Path(source)
        if source.is_dir():
            return self._import_directory(source, allow_overwrite, as_is)
        if source.is_file() and source.suffix.lower() == ".zip":
            with tempfile.TemporaryDirectory(prefix="skillkeeper-") as temp_dir:
                extract_zip(source, Path(temp_dir))
                return self._import_directory(Path(temp_dir), allow_overwrite, as_is)
        if not source.exists():
            raise InvalidInputError(f"Bundle not found: {source}")
        raise InvalidInputError(f"Unsupported bundle (use a directory or .zip file): {source}")

    def _discover(self, source: Path) -> list[DiscoveredCandidate]:
        candidates = []
        for skill_dir in find_skill_directories(source, self.max_depth):
            try:
                candidates.append(build_candidate(skill_dir, str(skill_dir.parent)))
            except OSError as e:
                logger.warning(f"Skipping unreadable bundle entry {skill_dir}: {e}")
        return dedupe_by_name(candidates)

    def _import_directory(self, source: Path, allow_overwrite: bool, as_is: bool) -> BundleImportResult:
        candidates = self._discover(source)
        result = BundleImportResult(total_skills=len(candidates))

        manifest = read_manifest(source / PRESETS_FILENAME)
        tags = carried_tags(manifest) if manifest is not None else {}

        skills, _ = self.reconciler.run()
        imported_names: dict[str, str] = {}

        for candidate in candidates:
            key = normalize_name(candidate.name)
            existing = find_same_skill(candidate, skills)
            replaces = existing is not None and existing.id != candidate.digest
            if replaces and not allow_overwrite:
                logger.info(f"Skipping {candidate.name}: a different skill with that name exists")
                result.skipped += 1
                continue

            digest = self.importer.import_candidate(candidate, existing)
            imported_names[key] = digest
            if tags.get(key):
                meta = self.store.document.skills[digest]
                meta.tags = meta.tags + tags[key]
            if replaces:
                result.overwritten += 1
            else:
                result.imported += 1

        if tags:
            self.store.save()
        if manifest is not None:
            self._import_presets(manifest, imported_names, allow_overwrite, as_is, result)

        logger.info(
            f"Bundle import from {source}: {result.imported} imported, "
            f"{result.overwritten} overwritten, {result.skipped} skipped"
        )
        return result

    def _import_presets(
        self,
        manifest: dict[str, Any],
        imported_names: dict[str, str],
        allow_overwrite: bool,
        as_is: bool,
        result: BundleImportResult,
    ) -> None:
        items = manifest.get("presets")
        if not isinstance(items, list) or not items:
            return

        skills, _ = self.reconciler.run()
        name_to_id = {normalize_name(skill.name): skill.id for skill in skills}
        name_to_id.update(imported_names)
        ids_in_store = {skill.id for skill in skills}
        document = self.store.document

        for item in items:
            if not isinstance(item, dict):
                continue
            name = item.get("name").strip() if isinstance(item.get("name"), str) else ""
            if not name:
                continue

            carried_ids = [sid for sid in item.get("skillIds") or [] if isinstance(sid, str)]
            if as_is and carried_ids and all(sid in ids_in_store for sid in carried_ids):
                skill_ids = carried_ids
            else:
                skill_ids = [
                    name_to_id[normalize_name(n)]
                    for n in item.get("skillNames") or []
                    if isinstance(n, str) and normalize_name(n) in name_to_id
                ]
            if not skill_ids:
                logger.info(f"Dropping preset {name}: none of its skills are available")
                continue

            preset_id = item.get("id").strip() if isinstance(item.get("id"), str) else ""
            preset_id = preset_id or new_preset_id()
            wanted = normalize_name(name)
            conflicts = [p for p in document.presets if p.id == preset_id or normalize_name(p.name) == wanted]

            if conflicts and not allow_overwrite:
                result.presets_skipped += 1
                continue
            if conflicts:
                replaced = {p.id for p in conflicts}
                document.presets = [p for p in document.presets if p.id not in replaced]
                preset_id = conflicts[0].id
                result.presets_overwritten += 1
            else:
                result.presets_imported += 1

            description = item.get("description")
            document.presets.append(
                Preset(
                    id=preset_id,
                    name=name,
                    description=description if isinstance(description, str) else None,
                    skill_ids=skill_ids,
                )
            )

        self.store.save()
