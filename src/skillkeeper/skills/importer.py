"""
Skill import for skillkeeper.

Materializes a discovered candidate into digest-keyed storage and carries
metadata and preset membership over when a skill's content (and therefore
its identity) changes.
"""

import logging
import os
import shutil
import uuid
from pathlib import Path

from skillkeeper.skills.github import GitHubClient
from skillkeeper.skills.hashing import digest_bytes
from skillkeeper.skills.models import DiscoveredCandidate, Skill, SkillMetadata, utc_now_iso
from skillkeeper.skills.parser import parse_manifest_bytes
from skillkeeper.storage.document import DocumentStore
from skillkeeper.storage.paths import MANIFEST_FILENAME
from skillkeeper.storage.schema import RepositoryDocument

logger = logging.getLogger(__name__)

STAGING_PREFIX = ".staging-"


def migrate_identity(document: RepositoryDocument, old_id: str, new_id: str) -> None:
    """Move metadata and preset references from one digest to another.

    Existing metadata under ``new_id`` wins; the old entry is then dropped
    without merging fields.

    Args:
        document: Document to mutate in place.
        old_id: Previous digest.
        new_id: New digest.
    """
    if old_id == new_id:
        return

    old_meta = document.skills.pop(old_id, None)
    if old_meta is not None and new_id not in document.skills:
        document.skills[new_id] = old_meta

    for preset in document.presets:
        if old_id in preset.skill_ids:
            preset.skill_ids = [new_id if sid == old_id else sid for sid in preset.skill_ids]


class ImportCoordinator:
    """Imports candidates into canonical storage.

    The coordinator always overwrites once invoked; conflict policy is the
    caller's responsibility.
    """

    def __init__(self, store: DocumentStore, github: GitHubClient | None = None):
        """Initialize the coordinator.

        Args:
            store: Document store of the repository.
            github: Client used to download remote candidates.
        """
        self.store = store
        self._github = github

    @property
    def github(self) -> GitHubClient:
        """GitHub client (created on first use)."""
        if self._github is None:
            self._github = GitHubClient()
        return self._github

    def _materialize(self, candidate: DiscoveredCandidate, staging: Path) -> None:
        if candidate.is_remote:
            staging.mkdir(parents=True)
            self.github.download_directory(candidate.remote_url or candidate.path, staging)
        else:
            shutil.copytree(candidate.path, staging)

    def import_candidate(self, candidate: DiscoveredCandidate, existing: Skill | None = None) -> str:
        """Import a candidate and return its digest.

        Content is written to a staging directory first; its digest is
        recomputed from the manifest as written and the staging directory
        is then moved to ``skills/<digest>``. Metadata is only touched once
        the content is in place.

        Args:
            candidate: The candidate to import.
            existing: Imported skill the candidate replaces (same display
                name), if any. A different digest triggers identity
                migration and removes the old directory.

        Returns:
            The digest of the imported manifest.

        Raises:
            RemoteFetchError: If a remote download fails.
            OSError: If the content cannot be copied or has no manifest.
        """
        skills_dir = self.store.skills_dir
        skills_dir.mkdir(parents=True, exist_ok=True)
        staging = skills_dir / f"{STAGING_PREFIX}{uuid.uuid4().hex}"

        try:
            self._materialize(candidate, staging)
            content = (staging / MANIFEST_FILENAME).read_bytes()
            new_digest = digest_bytes(content)

            target = skills_dir / new_digest
            if target.exists():
                shutil.rmtree(target)
            os.replace(staging, target)
        except BaseException:
            if staging.exists():
                shutil.rmtree(staging, ignore_errors=True)
            raise

        if new_digest != candidate.digest:
            logger.info(f"Content of {candidate.name} changed while importing: {candidate.digest} -> {new_digest}")

        document = self.store.document
        if existing is not None and existing.id != new_digest:
            if existing.path.exists() and existing.path != target:
                shutil.rmtree(existing.path)
            migrate_identity(document, existing.id, new_digest)
            logger.info(f"Migrated {existing.name} from {existing.id} to {new_digest}")

        meta = document.skills.get(new_digest)
        if meta is None:
            meta = SkillMetadata(source="github" if candidate.is_remote else "local")
            document.skills[new_digest] = meta
        elif meta.source is None:
            meta.source = "github" if candidate.is_remote else "local"
        meta.imported_at = utc_now_iso()
        if meta.source_name is None:
            meta.source_name = candidate.name

        # Keep a readable name for manifests without one
        if meta.custom_name is None and parse_manifest_bytes(content).name is None:
            meta.custom_name = candidate.name

        self.store.save()
        logger.info(f"Imported {candidate.name} as {new_digest}")
        return new_digest
