"""
Unit tests for presets.
"""

from pathlib import Path

import pytest

from skillkeeper.skills import ConflictError, InvalidInputError, NotFoundError, Preset
from skillkeeper.skills.presets import new_preset_id, sanitize_dir_name
from skillkeeper.skills.scanner import build_candidate


@pytest.fixture
def skill_ids(repo, workspace: Path, write_skill) -> list[str]:
    """Import two skills and return their IDs."""
    ids = []
    for name in ("alpha", "beta"):
        source = write_skill(workspace, name)
        ids.append(repo.import_candidate(build_candidate(source, str(workspace))))
    return ids


class TestSavePreset:
    """Tests for creating and updating presets."""

    def test_create(self, repo, skill_ids):
        """Test creating a preset."""
        preset = repo.create_preset("  Core  ", skill_ids, description="Basics")

        assert preset.name == "Core"
        assert preset.skill_ids == skill_ids
        assert repo.list_presets() == [preset]

    def test_requires_imported_skill(self, repo):
        """Test a preset cannot be created in an empty repository."""
        with pytest.raises(InvalidInputError):
            repo.create_preset("Core")

    def test_empty_name(self, repo, skill_ids):
        """Test an empty name is rejected."""
        with pytest.raises(InvalidInputError):
            repo.create_preset("   ", skill_ids)

    def test_name_conflict(self, repo, skill_ids):
        """Test names are unique case-insensitively."""
        existing = repo.create_preset("Core", skill_ids[:1])

        with pytest.raises(ConflictError) as exc_info:
            repo.create_preset("core", skill_ids)
        assert exc_info.value.existing.id == existing.id

        replacement = repo.create_preset("core", skill_ids, allow_overwrite=True)
        assert [p.id for p in repo.list_presets()] == [replacement.id]

    def test_unknown_ids_dropped(self, repo, skill_ids):
        """Test members must be imported skills."""
        preset = repo.create_preset("Core", [skill_ids[0], "f" * 32])
        assert preset.skill_ids == [skill_ids[0]]

    def test_update_keeps_id(self, repo, skill_ids):
        """Test saving an existing preset updates it in place."""
        preset = repo.create_preset("Core", skill_ids)
        renamed = repo.save_preset(Preset(id=preset.id, name="Renamed", skill_ids=skill_ids[1:]))

        assert renamed.id == preset.id
        assert [p.name for p in repo.list_presets()] == ["Renamed"]
        assert repo.get_preset(preset.id).skill_ids == skill_ids[1:]

    def test_returned_copy_is_detached(self, repo, skill_ids):
        """Test mutating a returned preset does not change stored state."""
        preset = repo.create_preset("Core", skill_ids)
        preset.skill_ids.clear()
        assert repo.get_preset(preset.id).skill_ids == skill_ids


class TestMembership:
    """Tests for adding and removing members."""

    def test_add_and_remove(self, repo, skill_ids):
        """Test membership changes."""
        preset = repo.create_preset("Core", skill_ids[:1])

        added = repo.add_skills_to_preset(preset.id, [skill_ids[1], skill_ids[0], "0" * 32])
        assert added.skill_ids == skill_ids

        removed = repo.remove_skills_from_preset(preset.id, [skill_ids[0]])
        assert removed.skill_ids == skill_ids[1:]

    def test_unknown_preset(self, repo, skill_ids):
        """Test membership changes on an unknown preset."""
        with pytest.raises(NotFoundError):
            repo.add_skills_to_preset("missing", skill_ids)
        with pytest.raises(NotFoundError):
            repo.remove_skills_from_preset("missing", skill_ids)

    def test_delete(self, repo, skill_ids):
        """Test deleting presets."""
        preset = repo.create_preset("Core", skill_ids)
        assert repo.delete_preset(preset.id) is True
        assert repo.delete_preset(preset.id) is False
        assert len(repo.list_skills()) == 2


class TestApply:
    """Tests for applying presets to a directory."""

    def test_merge_keeps_existing(self, repo, skill_ids, workspace: Path):
        """Test merge mode leaves unrelated entries alone."""
        preset = repo.create_preset("Core", skill_ids)
        target = workspace / ".claude" / "skills"
        (target / "mine").mkdir(parents=True)

        result = repo.apply_preset(preset.id, "merge", target)

        assert result.applied == ["alpha", "beta"]
        assert result.missing == []
        assert sorted(p.name for p in target.iterdir()) == ["alpha", "beta", "mine"]
        assert (target / "alpha" / "SKILL.md").is_file()

    def test_replace_clears_target(self, repo, skill_ids, workspace: Path):
        """Test replace mode empties the target first."""
        preset = repo.create_preset("Core", skill_ids[:1])
        target = workspace / "out"
        (target / "mine").mkdir(parents=True)
        (target / "file.txt").write_text("x")

        repo.apply_preset(preset.id, "replace", target)

        assert [p.name for p in target.iterdir()] == ["alpha"]

    def test_creates_target(self, repo, skill_ids, workspace: Path):
        """Test a missing target directory is created."""
        preset = repo.create_preset("Core", skill_ids)
        target = workspace / "new" / "dir"

        repo.apply_preset(preset.id, "replace", target)

        assert sorted(p.name for p in target.iterdir()) == ["alpha", "beta"]

    def test_missing_members_reported(self, repo, skill_ids, workspace: Path):
        """Test members that no longer resolve are skipped."""
        preset = repo.create_preset("Core", skill_ids)
        skills = [s for s in repo.list_skills() if s.id == skill_ids[0]]

        result = repo.presets.apply(preset.id, skills, "merge", workspace / "out")

        assert result.applied == ["alpha"]
        assert result.missing == [skill_ids[1]]

    def test_same_display_name_kept_apart(self, repo, workspace: Path, write_skill):
        """Test members sharing a display name are copied to separate directories."""
        ids = []
        for dir_name, description in (("team-writer", "Team"), ("my-writer", "Mine")):
            source = write_skill(workspace / "src", dir_name, name="Writer", description=description)
            ids.append(repo.import_candidate(build_candidate(source, str(workspace / "src"))))
        preset = repo.create_preset("Writers", ids)
        target = workspace / "out"

        result = repo.apply_preset(preset.id, "replace", target)

        assert result.applied == ["Writer", "Writer-2"]
        assert sorted(p.name for p in target.iterdir()) == ["Writer", "Writer-2"]
        assert "Mine" in (target / "Writer-2" / "SKILL.md").read_text(encoding="utf-8")

    def test_invalid_mode(self, repo, skill_ids, workspace: Path):
        """Test an unknown mode is rejected."""
        preset = repo.create_preset("Core", skill_ids)
        with pytest.raises(InvalidInputError):
            repo.apply_preset(preset.id, "overwrite", workspace)

    def test_unknown_preset(self, repo, workspace: Path):
        """Test applying an unknown preset."""
        with pytest.raises(NotFoundError):
            repo.apply_preset("missing", "merge", workspace)


class TestHelpers:
    """Tests for preset helpers."""

    def test_new_preset_id_unique(self):
        """Test generated IDs are distinct."""
        assert new_preset_id() != new_preset_id()

    def test_sanitize_dir_name(self):
        """Test display names become single path components."""
        assert sanitize_dir_name("a/b\\c") == "a-b-c"
        assert sanitize_dir_name("..") == "skill"
        assert sanitize_dir_name("  Writer ") == "Writer"
