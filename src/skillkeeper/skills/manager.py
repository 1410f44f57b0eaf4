"""
Skill repository for skillkeeper.

Provides the main interface for working with a local skill repository:
scanning sources, importing, editing metadata, presets and bundles.
"""

import logging
import shutil
import threading
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Literal

from skillkeeper.config import Settings, get_settings
from skillkeeper.skills.bundle import BundleTransfer
from skillkeeper.skills.dedup import dedupe_by_digest, find_same_skill, partition
from skillkeeper.skills.exceptions import ConflictError, InvalidInputError, NotFoundError
from skillkeeper.skills.github import GitHubClient
from skillkeeper.skills.importer import ImportCoordinator
from skillkeeper.skills.models import (
    ApplyMode,
    ApplyResult,
    BundleImportResult,
    DiscoveredCandidate,
    Preset,
    ReconcileReport,
    RemoteScanResult,
    ScanResult,
    Skill,
    SkillMetadata,
    normalize_name,
)
from skillkeeper.skills.presets import PresetRegistry, new_preset_id, sanitize_dir_name
from skillkeeper.skills.reconciler import Reconciler
from skillkeeper.skills.scanner import global_roots, scan_directory, scan_roots, workspace_roots
from skillkeeper.skills.watcher import SkillWatcher
from skillkeeper.storage.document import DocumentStore
from skillkeeper.storage.paths import is_same_or_nested, resolve_path

logger = logging.getLogger(__name__)

# Fields of SkillMetadata that update_metadata accepts
EDITABLE_FIELDS = ("tags", "custom_name", "custom_description")

# Minimum length of an ID prefix accepted by find_skill
MIN_ID_PREFIX = 6


class SkillRepository:
    """Handle on one local skill repository.

    Every public operation runs under a per-handle re-entrant lock, and
    every read path reconciles the document against the skills directory
    first. Candidates found by ``scan_custom_path`` and ``scan_remote`` are
    kept in memory for the lifetime of the handle (the scan session).

    Usage:
        with open_repository() as repo:
            result = repo.scan(workspaces=[Path.cwd()])
            for candidate in result.discoverable:
                repo.import_candidate(candidate)
    """

    def __init__(
        self,
        root: Path,
        settings: Settings | None = None,
        legacy_root: Path | None = None,
        github: GitHubClient | None = None,
    ):
        """Initialize the handle (call ``open`` before use).

        Args:
            root: Storage root.
            settings: Settings (default: process-wide settings).
            legacy_root: Previous storage root to migrate from.
            github: GitHub client (default: one built from settings).
        """
        self.settings = settings or get_settings()
        self.store = DocumentStore(root, legacy_root)
        self._owns_github = github is None
        self.github = github or GitHubClient(
            api_url=self.settings.github.api_url,
            timeout=self.settings.github.timeout,
            max_candidates=self.settings.github.max_candidates,
            user_agent=self.settings.github.user_agent,
            standard_paths=self.settings.github_standard_paths(),
        )
        self.importer = ImportCoordinator(self.store, self.github)
        self.reconciler = Reconciler(self.store)
        self.presets = PresetRegistry(self.store)
        self.bundles = BundleTransfer(
            self.store,
            self.importer,
            self.reconciler,
            max_depth=self.settings.scan.bundle_max_depth,
        )

        self._lock = threading.RLock()
        self._discovered: list[DiscoveredCandidate] = []
        self._session_truncated = False
        self._watcher: SkillWatcher | None = None

    @property
    def root(self) -> Path:
        return self.store.root

    @property
    def skills_dir(self) -> Path:
        return self.store.skills_dir

    @property
    def lock(self) -> threading.RLock:
        """The lock serializing operations on this handle."""
        return self._lock

    def open(self) -> "SkillRepository":
        """Create the storage layout and load the document."""
        with self._lock:
            self.store.open()
            for name in self.reconciler.cleanup_staging():
                logger.info(f"Removed leftover staging directory {name}")
        return self

    def close(self) -> None:
        """Stop the watcher and release network resources."""
        with self._lock:
            if self._watcher is not None:
                self._watcher.stop()
                self._watcher = None
            if self._owns_github:
                self.github.close()

    def __enter__(self) -> "SkillRepository":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Read path
    # -------------------------------------------------------------------------

    def reconcile(self) -> ReconcileReport:
        """Reconcile the document against the skills directory."""
        with self._lock:
            _, report = self.reconciler.run()
            return report

    def _skills(self) -> list[Skill]:
        skills, _ = self.reconciler.run()
        return skills

    def _require_skill(self, skill_id: str) -> Skill:
        for skill in self._skills():
            if skill.id == skill_id:
                return skill
        raise NotFoundError("skill", skill_id)

    def list_skills(self) -> list[Skill]:
        """List imported skills, sorted by name."""
        with self._lock:
            return sorted(self._skills(), key=lambda s: (s.name.lower(), s.id))

    def get_skill(self, skill_id: str) -> Skill | None:
        """Get an imported skill by ID."""
        with self._lock:
            return next((s for s in self._skills() if s.id == skill_id), None)

    def get_skill_file(self, skill_id: str) -> Path | None:
        """Get the manifest path of an imported skill."""
        skill = self.get_skill(skill_id)
        return skill.manifest_path if skill else None

    def find_skill(self, ref: str) -> Skill | None:
        """Find a skill by ID, unique ID prefix or case-insensitive name.

        Args:
            ref: Skill reference as typed by a user.

        Returns:
            The matching skill, or None if nothing (or more than one skill)
            matches.
        """
        with self._lock:
            skills = self._skills()
        ref = ref.strip()
        for skill in skills:
            if skill.id == ref:
                return skill

        by_name = [s for s in skills if normalize_name(s.name) == normalize_name(ref)]
        if len(by_name) == 1:
            return by_name[0]

        if len(ref) >= MIN_ID_PREFIX:
            by_prefix = [s for s in skills if s.id.startswith(ref.lower())]
            if len(by_prefix) == 1:
                return by_prefix[0]
        return None

    def list_presets(self) -> list[Preset]:
        """List presets."""
        with self._lock:
            self.reconciler.run()
            return self.presets.list_all()

    def get_preset(self, preset_id: str) -> Preset | None:
        """Get a preset by ID."""
        with self._lock:
            self.reconciler.run()
            return self.presets.get(preset_id)

    def find_preset(self, ref: str) -> Preset | None:
        """Find a preset by ID or case-insensitive name."""
        with self._lock:
            preset = self.get_preset(ref)
            if preset is not None:
                return preset
            match = self.store.document.find_preset_by_name(ref)
            return match.model_copy(deep=True) if match else None

    # -------------------------------------------------------------------------
    # Scanning
    # -------------------------------------------------------------------------

    def scan(self, workspaces: Iterable[Path | str] = ()) -> ScanResult:
        """Scan the global and workspace locations plus the scan session.

        Candidates are deduplicated by digest (first occurrence wins) and
        classified against the imported skills.

        Args:
            workspaces: Workspace root directories.

        Returns:
            The scan result.
        """
        with self._lock:
            scan_settings = self.settings.scan
            roots = global_roots(scan_settings.global_paths)
            roots += workspace_roots(workspaces, scan_settings.workspace_paths)

            found, errors = scan_roots(roots, scan_settings.max_depth, exclude=self.root)
            candidates = dedupe_by_digest([*found, *self._discovered])

            skills = self._skills()
            result = partition(candidates, skills)
            logger.debug(
                f"Scan found {len(candidates)} candidate(s), "
                f"{len(result.discoverable)} not imported, {len(errors)} error(s)"
            )
            return ScanResult(
                discoverable=result.discoverable,
                imported=sorted(skills, key=lambda s: (s.name.lower(), s.id)),
                all_discovered=candidates,
                conflicts=result.conflicts,
                errors=errors,
                truncated=self._session_truncated,
            )

    def _add_to_session(self, candidates: Iterable[DiscoveredCandidate]) -> int:
        known = {c.digest for c in self._discovered}
        added = 0
        for candidate in candidates:
            if candidate.digest not in known:
                known.add(candidate.digest)
                self._discovered.append(candidate)
                added += 1
        return added

    def scan_custom_path(self, path: Path | str) -> tuple[int, int]:
        """Scan an arbitrary directory and add its skills to the scan session.

        Args:
            path: Directory to scan recursively.

        Returns:
            Tuple of (candidates added to the session, candidates found).

        Raises:
            InvalidInputError: If the path overlaps the storage root or is
                not a directory.
        """
        target = resolve_path(path)
        if is_same_or_nested(target, self.root):
            raise InvalidInputError(
                f"Cannot scan the repository storage ({self.root}); choose a workspace or another folder"
            )
        if not target.is_dir():
            raise InvalidInputError(f"Not a directory: {target}")

        with self._lock:
            found, errors = scan_directory(target, self.settings.scan.max_depth)
            for error in errors:
                logger.warning(f"Partial scan failure in {error.source}: {error.error}")
            added = self._add_to_session(found)
            logger.info(f"Scanned {target}: {len(found)} skill(s), {added} new")
            return added, len(found)

    def scan_remote(self, repo_ref: str) -> RemoteScanResult:
        """Scan a GitHub repository and add its skills to the scan session.

        Raises:
            InvalidInputError: If the repository reference is malformed.
        """
        with self._lock:
            result = self.github.scan(repo_ref)
            added = self._add_to_session(result.candidates)
            self._session_truncated = self._session_truncated or result.truncated
            logger.info(f"Scanned {repo_ref}: {len(result.candidates)} skill(s), {added} new")
            return result

    def clear_discovered(self) -> None:
        """Forget the candidates of the scan session."""
        with self._lock:
            self._discovered = []
            self._session_truncated = False

    # -------------------------------------------------------------------------
    # Import, export, delete
    # -------------------------------------------------------------------------

    def import_candidate(self, candidate: DiscoveredCandidate, *, allow_overwrite: bool = True) -> str:
        """Import a candidate.

        An imported skill with the same name, or first imported from a
        directory of that name, is replaced, carrying its metadata and
        preset membership over to the new digest.

        Args:
            candidate: Candidate from a scan.
            allow_overwrite: If False, refuse to replace a same-named skill
                with different content.

        Returns:
            The imported skill's ID.

        Raises:
            ConflictError: If a same-named skill exists and overwriting is
                not allowed.
            RemoteFetchError: If downloading a remote candidate fails.
        """
        with self._lock:
            existing = find_same_skill(candidate, self._skills())
            if existing is not None and existing.id != candidate.digest and not allow_overwrite:
                raise ConflictError(
                    f'A different skill named "{existing.name}" is already imported',
                    existing=existing,
                )
            return self.importer.import_candidate(candidate, existing)

    def import_bundle(
        self,
        path: Path | str,
        allow_overwrite: bool = False,
        as_is: bool = False,
    ) -> BundleImportResult:
        """Import a bundle directory or zip archive."""
        with self._lock:
            return self.bundles.import_bundle(resolve_path(path), allow_overwrite, as_is)

    def export_bundle(
        self,
        destination: Path | str,
        skill_ids: Iterable[str] = (),
        preset_ids: Iterable[str] | Literal["all"] = (),
    ) -> Path:
        """Export skills and presets to a bundle.

        The exported skills are the given skills plus every member of the
        given presets.

        Args:
            destination: ``.zip`` archive path or directory.
            skill_ids: Skills to export.
            preset_ids: Presets to export, or ``"all"``.

        Returns:
            The written bundle path.

        Raises:
            NotFoundError: If a skill or preset ID is unknown.
            InvalidInputError: If nothing is selected.
        """
        with self._lock:
            skills = self._skills()
            by_id = {skill.id: skill for skill in skills}
            document = self.store.document

            if preset_ids == "all":
                presets = [p.model_copy(deep=True) for p in document.presets]
            else:
                presets = []
                for preset_id in preset_ids:
                    preset = document.find_preset(preset_id)
                    if preset is None:
                        raise NotFoundError("preset", preset_id)
                    presets.append(preset.model_copy(deep=True))

            selected: dict[str, Skill] = {}
            for skill_id in skill_ids:
                if skill_id not in by_id:
                    raise NotFoundError("skill", skill_id)
                selected[skill_id] = by_id[skill_id]
            for preset in presets:
                for skill_id in preset.skill_ids:
                    if skill_id in by_id:
                        selected.setdefault(skill_id, by_id[skill_id])

            return self.bundles.export(list(selected.values()), presets, resolve_path(destination))

    def export_to_directory(self, skill_id: str, target_dir: Path | str) -> Path:
        """Copy one skill into a directory, named after its display name.

        Returns:
            The created skill directory.

        Raises:
            NotFoundError: If the skill does not exist.
        """
        with self._lock:
            skill = self._require_skill(skill_id)
            destination = resolve_path(target_dir) / sanitize_dir_name(skill.name)
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copytree(skill.path, destination, dirs_exist_ok=True)
            logger.info(f"Exported {skill.name} to {destination}")
            return destination

    def delete_skill(self, skill_id: str) -> bool:
        """Delete a skill, its metadata and its preset memberships.

        Returns:
            False if the skill does not exist.
        """
        with self._lock:
            skill = next((s for s in self._skills() if s.id == skill_id), None)
            if skill is None:
                return False

            shutil.rmtree(skill.path)
            document = self.store.document
            document.skills.pop(skill_id, None)
            for preset in document.presets:
                if skill_id in preset.skill_ids:
                    preset.skill_ids = [sid for sid in preset.skill_ids if sid != skill_id]
            self.store.save()
            logger.info(f"Deleted skill {skill.name} ({skill_id})")
            return True

    # -------------------------------------------------------------------------
    # Metadata
    # -------------------------------------------------------------------------

    def update_metadata(self, skill_id: str, **partial: Any) -> SkillMetadata:
        """Update the user metadata of a skill.

        Args:
            skill_id: Skill to update.
            **partial: Any of ``tags``, ``custom_name``,
                ``custom_description``. None clears a name or description.

        Returns:
            The updated metadata.

        Raises:
            NotFoundError: If the skill does not exist.
            InvalidInputError: For unknown fields or an empty name.
            ConflictError: If another skill already has the name.
        """
        unknown = set(partial) - set(EDITABLE_FIELDS)
        if unknown:
            raise InvalidInputError(f"Unknown metadata field(s): {', '.join(sorted(unknown))}")

        with self._lock:
            skills = self._skills()
            if not any(s.id == skill_id for s in skills):
                raise NotFoundError("skill", skill_id)

            if partial.get("custom_name") is not None:
                name = str(partial["custom_name"]).strip()
                if not name:
                    raise InvalidInputError("Skill name cannot be empty")
                for other in skills:
                    if other.id != skill_id and normalize_name(other.name) == normalize_name(name):
                        raise ConflictError(f'Another skill is already named "{other.name}"', existing=other)
                partial["custom_name"] = name

            if "custom_description" in partial and partial["custom_description"] is not None:
                partial["custom_description"] = str(partial["custom_description"]).strip() or None

            meta = self.store.document.skills.setdefault(skill_id, SkillMetadata())
            for key, value in partial.items():
                setattr(meta, key, value)
            self.store.save()
            logger.info(f"Updated metadata of {skill_id}: {', '.join(sorted(partial))}")
            return meta.model_copy(deep=True)

    @property
    def default_export_path(self) -> str:
        """Workspace-relative directory used by export and apply."""
        return self.store.document.default_export_path or self.settings.default_export_path

    def set_default_export_path(self, value: str) -> None:
        """Persist the workspace-relative export directory.

        Raises:
            InvalidInputError: If the value is empty.
        """
        value = value.strip()
        if not value:
            raise InvalidInputError("Export path cannot be empty")
        with self._lock:
            self.store.document.default_export_path = value
            self.store.save()

    # -------------------------------------------------------------------------
    # Presets
    # -------------------------------------------------------------------------

    def save_preset(self, preset: Preset, allow_overwrite: bool = False) -> Preset:
        """Create or update a preset (see PresetRegistry.save)."""
        with self._lock:
            valid_ids = {s.id for s in self._skills()}
            return self.presets.save(preset, valid_ids, allow_overwrite)

    def create_preset(
        self,
        name: str,
        skill_ids: Iterable[str] = (),
        description: str | None = None,
        allow_overwrite: bool = False,
    ) -> Preset:
        """Create a preset with a fresh ID."""
        preset = Preset(id=new_preset_id(), name=name, skill_ids=list(skill_ids), description=description)
        return self.save_preset(preset, allow_overwrite)

    def delete_preset(self, preset_id: str) -> bool:
        """Delete a preset; False if it does not exist."""
        with self._lock:
            return self.presets.delete(preset_id)

    def add_skills_to_preset(self, preset_id: str, skill_ids: Iterable[str]) -> Preset:
        """Add imported skills to a preset."""
        with self._lock:
            valid_ids = {s.id for s in self._skills()}
            return self.presets.add_skills(preset_id, skill_ids, valid_ids)

    def remove_skills_from_preset(self, preset_id: str, skill_ids: Iterable[str]) -> Preset:
        """Remove skills from a preset."""
        with self._lock:
            return self.presets.remove_skills(preset_id, skill_ids)

    def apply_preset(self, preset_id: str, mode: ApplyMode, target_dir: Path | str) -> ApplyResult:
        """Copy a preset's skills into a directory (merge or replace)."""
        with self._lock:
            return self.presets.apply(preset_id, self._skills(), mode, resolve_path(target_dir))

    # -------------------------------------------------------------------------
    # Watching
    # -------------------------------------------------------------------------

    def watch(self, debounce_seconds: float | None = None) -> SkillWatcher:
        """Start reconciling automatically after external changes.

        Returns:
            The running watcher (stopped by ``close``).
        """
        with self._lock:
            if self._watcher is None:
                delay = self.settings.watcher.debounce_seconds if debounce_seconds is None else debounce_seconds
                self._watcher = SkillWatcher(self, debounce_seconds=delay)
                self._watcher.start()
            return self._watcher


def open_repository(
    root: Path | str | None = None,
    settings: Settings | None = None,
    github: GitHubClient | None = None,
) -> SkillRepository:
    """Open a skill repository.

    Args:
        root: Storage root (default: from settings). Data from the legacy
            root is only migrated into the default root.
        settings: Settings (default: process-wide settings).
        github: GitHub client to use for remote scans and downloads.

    Returns:
        An opened repository handle.
    """
    settings = settings or get_settings()
    if root is None:
        storage_root = settings.storage_root()
        legacy_root = settings.legacy_root()
    else:
        storage_root = resolve_path(root)
        legacy_root = None
    return SkillRepository(storage_root, settings, legacy_root=legacy_root, github=github).open()
