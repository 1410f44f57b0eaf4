"""
Reconciliation for skillkeeper.

Treats the skill directories on disk as ground truth: relocates directories
whose name is not their manifest's digest, creates missing metadata, prunes
metadata without a directory and strips dangling preset members.
"""

import logging
import re
import shutil
from pathlib import Path

from skillkeeper.skills.hashing import digest_bytes
from skillkeeper.skills.importer import STAGING_PREFIX, migrate_identity
from skillkeeper.skills.models import ReconcileReport, Skill, SkillMetadata
from skillkeeper.skills.parser import parse_manifest_bytes
from skillkeeper.storage.document import DocumentStore
from skillkeeper.storage.paths import MANIFEST_FILENAME

logger = logging.getLogger(__name__)

_DIGEST_PATTERN = re.compile(r"^[0-9a-f]{32}$")


def looks_like_digest(name: str) -> bool:
    """Check whether a directory name has the shape of a digest."""
    return bool(_DIGEST_PATTERN.match(name))


class Reconciler:
    """Brings the repository document in line with the skills directory."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def _relocate(self, entry: Path, digest: str, report: ReconcileReport) -> Path:
        """Move a skill directory to ``skills/<digest>``."""
        target = self.store.skills_dir / digest
        if target.exists():
            shutil.rmtree(entry)
            logger.info(f"Removed {entry.name}: same content as {digest}")
        else:
            entry.rename(target)
            logger.info(f"Relocated {entry.name} to {digest}")
        report.relocated.append(entry.name)
        return target

    def run(self) -> tuple[list[Skill], ReconcileReport]:
        """Reconcile and list the imported skills.

        The document is persisted once, and only if something changed.

        Returns:
            Tuple of (imported skills in directory order, report).
        """
        document = self.store.document
        skills_dir = self.store.skills_dir
        report = ReconcileReport()
        skills: list[Skill] = []

        try:
            entries = sorted(skills_dir.iterdir()) if skills_dir.is_dir() else []
        except OSError as e:
            logger.error(f"Cannot list skills directory {skills_dir}: {e}")
            entries = []

        for entry in entries:
            if entry.name.startswith(".") or not entry.is_dir():
                continue
            manifest = entry / MANIFEST_FILENAME
            if not manifest.is_file():
                continue

            try:
                content = manifest.read_bytes()
            except OSError as e:
                logger.warning(f"Cannot read {manifest}: {e}")
                continue

            digest = digest_bytes(content)
            info = parse_manifest_bytes(content)
            path = entry

            if entry.name != digest:
                try:
                    path = self._relocate(entry, digest, report)
                except OSError as e:
                    logger.warning(f"Cannot relocate {entry}: {e}")

                if looks_like_digest(entry.name) or entry.name in document.skills:
                    # Edited in place or keyed by name: carry tags and preset membership over
                    migrate_identity(document, entry.name, digest)
                if not looks_like_digest(entry.name) and info.name is None:
                    moved = document.skills.get(digest)
                    if moved is None:
                        document.skills[digest] = SkillMetadata(custom_name=entry.name)
                        report.created_metadata.append(digest)
                    elif moved.custom_name is None:
                        moved.custom_name = entry.name

            if digest in report.valid_ids:
                continue
            report.valid_ids.add(digest)

            meta = document.skills.get(digest)
            if meta is None:
                meta = SkillMetadata()
                document.skills[digest] = meta
                report.created_metadata.append(digest)

            skills.append(
                Skill(
                    id=digest,
                    name=info.name or meta.custom_name or path.name,
                    description=info.description or meta.custom_description,
                    tags=list(meta.tags),
                    path=path,
                    dir_name=path.name,
                    source=meta.source,
                    source_name=meta.source_name,
                )
            )

        for skill_id in list(document.skills):
            if skill_id not in report.valid_ids:
                del document.skills[skill_id]
                report.removed_metadata.append(skill_id)
                logger.warning(f"Removed metadata of missing skill {skill_id}")

        for preset in document.presets:
            kept = [sid for sid in preset.skill_ids if sid in report.valid_ids]
            if kept != preset.skill_ids:
                preset.skill_ids = kept
                report.stripped_presets.append(preset.id)
                logger.info(f"Removed missing skills from preset {preset.name}")

        if report.changed:
            self.store.save()

        return skills, report

    def cleanup_staging(self) -> list[str]:
        """Remove leftover staging directories of interrupted imports."""
        removed = []
        skills_dir = self.store.skills_dir
        if not skills_dir.is_dir():
            return removed
        for entry in skills_dir.iterdir():
            if entry.name.startswith(STAGING_PREFIX) and entry.is_dir():
                shutil.rmtree(entry, ignore_errors=True)
                removed.append(entry.name)
        return removed
