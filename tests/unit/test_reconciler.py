"""
Unit tests for reconciliation of storage and the repository document.
"""

import shutil
from pathlib import Path

from skillkeeper.skills import digest_bytes
from skillkeeper.skills.reconciler import looks_like_digest
from skillkeeper.skills.scanner import build_candidate


def import_skill(repo, parent: Path, write_skill, name: str, **kwargs) -> str:
    source = write_skill(parent, name, **kwargs)
    return repo.import_candidate(build_candidate(source, str(parent)))


class TestReconcile:
    """Tests for the reconciliation pass."""

    def test_idempotent(self, repo, workspace: Path, write_skill):
        """Test a second pass changes nothing."""
        import_skill(repo, workspace, write_skill, "writer")

        repo.reconcile()
        report = repo.reconcile()
        assert report.changed is False

    def test_removed_directory_prunes_metadata_and_presets(self, repo, workspace: Path, write_skill):
        """Test deleting a skill directory externally cleans up references."""
        keep = import_skill(repo, workspace, write_skill, "keep")
        gone = import_skill(repo, workspace, write_skill, "gone")
        preset = repo.create_preset("Both", [keep, gone])

        shutil.rmtree(repo.skills_dir / gone)
        report = repo.reconcile()

        assert report.removed_metadata == [gone]
        assert report.stripped_presets == [preset.id]
        assert gone not in repo.store.document.skills
        assert repo.get_preset(preset.id).skill_ids == [keep]

    def test_missing_metadata_created(self, repo, write_skill):
        """Test a skill directory without metadata gets a default entry."""
        content = "---\nname: dropped-in\n---\n"
        digest = digest_bytes(content.encode("utf-8"))
        write_skill(repo.skills_dir, digest, content=content)

        report = repo.reconcile()

        assert report.created_metadata == [digest]
        assert repo.store.document.skills[digest].tags == []
        assert repo.get_skill(digest).name == "dropped-in"

    def test_ignores_non_skill_entries(self, repo):
        """Test hidden entries and directories without a manifest are ignored."""
        (repo.skills_dir / ".staging-x").mkdir()
        (repo.skills_dir / "empty").mkdir()
        (repo.skills_dir / "notes.txt").write_text("hi")

        assert repo.list_skills() == []
        assert (repo.skills_dir / "empty").exists()

    def test_document_saved_only_on_change(self, repo, workspace: Path, write_skill):
        """Test an unchanged pass does not rewrite the document."""
        import_skill(repo, workspace, write_skill, "writer")
        repo.reconcile()
        before = repo.store.config_path.stat().st_mtime_ns

        repo.list_skills()
        assert repo.store.config_path.stat().st_mtime_ns == before


class TestRelocation:
    """Tests for directories whose name is not their digest."""

    def test_legacy_name_keyed_directory(self, repo, write_skill):
        """Test a name-keyed directory moves to its digest and keeps its name."""
        content = "# Legacy\n\nOld style skill\n"
        digest = digest_bytes(content.encode("utf-8"))
        write_skill(repo.skills_dir, "legacy-skill", content=content)

        report = repo.reconcile()

        assert report.relocated == ["legacy-skill"]
        assert not (repo.skills_dir / "legacy-skill").exists()
        assert (repo.skills_dir / digest / "SKILL.md").is_file()
        skill = repo.get_skill(digest)
        assert skill.name == "legacy-skill"
        assert skill.description == "Old style skill"

    def test_legacy_duplicate_removed(self, repo, workspace: Path, write_skill):
        """Test a name-keyed copy of an imported skill is dropped."""
        skill_id = import_skill(repo, workspace, write_skill, "writer")
        shutil.copytree(repo.skills_dir / skill_id, repo.skills_dir / "writer")

        repo.reconcile()

        assert not (repo.skills_dir / "writer").exists()
        assert [s.id for s in repo.list_skills()] == [skill_id]

    def test_edited_in_place(self, repo, workspace: Path, write_skill):
        """Test a manifest edited inside storage keeps its tags and presets."""
        old_id = import_skill(repo, workspace, write_skill, "writer")
        repo.update_metadata(old_id, tags=["docs"])
        preset = repo.create_preset("Docs", [old_id])

        manifest = repo.skills_dir / old_id / "SKILL.md"
        manifest.write_bytes(manifest.read_bytes() + b"\nEdited.\n")
        new_id = digest_bytes(manifest.read_bytes())

        repo.reconcile()

        assert not (repo.skills_dir / old_id).exists()
        assert repo.get_skill(new_id).tags == ["docs"]
        assert repo.get_preset(preset.id).skill_ids == [new_id]
        assert old_id not in repo.store.document.skills


class TestHelpers:
    """Tests for reconciliation helpers."""

    def test_looks_like_digest(self):
        """Test digest-shaped directory names."""
        assert looks_like_digest("5eb63bbbe01eeed093cb22bb8f5acdc3")
        assert not looks_like_digest("writer")
        assert not looks_like_digest("5EB63BBBE01EEED093CB22BB8F5ACDC3")
