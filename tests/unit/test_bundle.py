"""
Unit tests for bundle export and import.
"""

import json
import shutil
import zipfile
from pathlib import Path

import pytest

from skillkeeper.skills import InvalidInputError, Skill, open_repository
from skillkeeper.skills.bundle import PRESETS_FILENAME, extract_zip
from skillkeeper.skills.presets import export_names
from skillkeeper.skills.scanner import build_candidate


def import_skill(repo, parent: Path, write_skill, dir_name: str, **kwargs) -> str:
    source = write_skill(parent, dir_name, **kwargs)
    return repo.import_candidate(build_candidate(source, str(parent)))


@pytest.fixture
def other_repo(temp_dir: Path, settings):
    """Provide a second, empty repository."""
    repository = open_repository(temp_dir / "other-store", settings)
    yield repository
    repository.close()


@pytest.fixture
def populated(repo, workspace: Path, write_skill):
    """Provide a repository with three skills and a preset holding all of them."""
    ids = [import_skill(repo, workspace, write_skill, name) for name in ("alpha", "beta", "gamma")]
    preset = repo.create_preset("Team", ids, description="Everything")
    return repo, ids, preset


class TestExportNames:
    """Tests for export directory naming."""

    def test_collisions_get_suffixes(self):
        """Test repeated display names get numeric suffixes."""
        skills = [
            Skill(id=f"id{i}", name=name, path=Path("/x"), dir_name=f"id{i}")
            for i, name in enumerate(["Writer", "writer", "a/b", "Writer"])
        ]
        assert export_names(skills) == {"id0": "Writer", "id1": "writer-2", "id2": "a-b", "id3": "Writer-3"}


class TestExport:
    """Tests for writing bundles."""

    def test_directory_bundle(self, populated, temp_dir: Path):
        """Test a directory bundle holds skills by name and the presets file."""
        repo, ids, preset = populated
        destination = temp_dir / "bundle"

        repo.export_bundle(destination, preset_ids=[preset.id])

        assert sorted(p.name for p in (destination / "skills").iterdir()) == ["alpha", "beta", "gamma"]
        payload = json.loads((destination / PRESETS_FILENAME).read_text(encoding="utf-8"))
        assert payload["version"] == 2
        assert payload["presets"] == [
            {
                "id": preset.id,
                "name": "Team",
                "description": "Everything",
                "skillIds": ids,
                "skillNames": ["alpha", "beta", "gamma"],
            }
        ]

    def test_zip_bundle(self, populated, temp_dir: Path):
        """Test a zip bundle has the same layout."""
        repo, ids, _ = populated
        archive = temp_dir / "out" / "team.zip"

        repo.export_bundle(archive, skill_ids=[ids[0]], preset_ids="all")

        with zipfile.ZipFile(archive) as zf:
            names = set(zf.namelist())
        assert "skills/alpha/SKILL.md" in names
        assert "skills/gamma/SKILL.md" in names
        assert PRESETS_FILENAME in names

    def test_skills_only_has_no_presets_file(self, populated, temp_dir: Path):
        """Test the presets file is omitted without presets."""
        repo, ids, _ = populated
        destination = temp_dir / "bundle"

        repo.export_bundle(destination, skill_ids=[ids[1]])

        assert [p.name for p in (destination / "skills").iterdir()] == ["beta"]
        assert not (destination / PRESETS_FILENAME).exists()

    def test_tags_written_without_presets(self, populated, temp_dir: Path):
        """Test tagged skills get a presets file listing their tags."""
        repo, ids, _ = populated
        repo.update_metadata(ids[1], tags=["review"])
        destination = temp_dir / "bundle"

        repo.export_bundle(destination, skill_ids=ids[:2])

        payload = json.loads((destination / PRESETS_FILENAME).read_text(encoding="utf-8"))
        assert payload["presets"] == []
        assert payload["skills"] == [{"name": "beta", "tags": ["review"]}]

    def test_nothing_selected(self, repo, temp_dir: Path):
        """Test an empty export is rejected."""
        with pytest.raises(InvalidInputError):
            repo.export_bundle(temp_dir / "bundle")


class TestImport:
    """Tests for reading bundles."""

    def test_round_trip(self, populated, other_repo, temp_dir: Path):
        """Test skills, tags and presets arrive in another repository."""
        repo, ids, preset = populated
        repo.update_metadata(ids[0], tags=["docs", "prose"])
        archive = temp_dir / "team.zip"
        repo.export_bundle(archive, preset_ids="all")

        result = other_repo.import_bundle(archive)

        assert (result.total_skills, result.imported, result.overwritten, result.skipped) == (3, 3, 0, 0)
        assert result.presets_imported == 1
        assert sorted(s.id for s in other_repo.list_skills()) == sorted(ids)
        imported_preset = other_repo.get_preset(preset.id)
        assert imported_preset.name == "Team"
        assert imported_preset.description == "Everything"
        assert imported_preset.skill_ids == ids
        assert other_repo.get_skill(ids[0]).tags == ["docs", "prose"]
        assert other_repo.get_skill(ids[1]).tags == []

    def test_partial_preset(self, populated, other_repo, temp_dir: Path):
        """Test a preset keeps only the members shipped in the bundle."""
        repo, ids, preset = populated
        destination = temp_dir / "bundle"
        repo.export_bundle(destination, preset_ids=[preset.id])
        shutil.rmtree(destination / "skills" / "gamma")

        result = other_repo.import_bundle(destination)

        assert result.imported == 2
        assert other_repo.get_preset(preset.id).skill_ids == ids[:2]

    def test_preset_without_members_dropped(self, populated, other_repo, temp_dir: Path):
        """Test a preset none of whose skills arrive is not created."""
        repo, _, preset = populated
        destination = temp_dir / "bundle"
        repo.export_bundle(destination, preset_ids=[preset.id])
        shutil.rmtree(destination / "skills")

        result = other_repo.import_bundle(destination)

        assert result.presets_imported == 0
        assert other_repo.list_presets() == []

    def test_same_name_different_content(self, populated, other_repo, temp_dir: Path, write_skill):
        """Test counters for skipped and overwritten skills."""
        repo, _, _ = populated
        destination = temp_dir / "bundle"
        repo.export_bundle(destination, preset_ids="all")
        local_alpha = import_skill(other_repo, temp_dir / "local", write_skill, "alpha", description="Local")

        skipped = other_repo.import_bundle(destination)
        assert (skipped.imported, skipped.overwritten, skipped.skipped) == (2, 0, 1)
        assert other_repo.get_skill(local_alpha) is not None

        overwritten = other_repo.import_bundle(destination, allow_overwrite=True)
        assert overwritten.overwritten == 1
        assert other_repo.get_skill(local_alpha) is None

    def test_overwrite_skill_named_apart_from_its_directory(self, repo, other_repo, temp_dir: Path, write_skill):
        """Test a bundle replaces a local skill whose display name differs from its directory."""
        shipped = import_skill(repo, temp_dir / "src", write_skill, "pdf", name="PDF Tools", description="Shipped")
        repo.update_metadata(shipped, tags=["docs"])
        destination = temp_dir / "bundle"
        repo.export_bundle(destination, skill_ids=[shipped])
        assert [p.name for p in (destination / "skills").iterdir()] == ["PDF Tools"]

        local = import_skill(other_repo, temp_dir / "local", write_skill, "pdf", name="PDF Tools", description="Local")
        other_repo.update_metadata(local, tags=["mine"])
        preset = other_repo.create_preset("Documents", [local])

        skipped = other_repo.import_bundle(destination)
        assert (skipped.imported, skipped.skipped) == (0, 1)

        result = other_repo.import_bundle(destination, allow_overwrite=True)

        assert result.overwritten == 1
        assert [s.id for s in other_repo.list_skills()] == [shipped]
        assert other_repo.get_skill(shipped).tags == ["mine", "docs"]
        assert other_repo.get_preset(preset.id).skill_ids == [shipped]

    def test_existing_preset_skipped_or_overwritten(self, populated, temp_dir: Path):
        """Test presets with a known ID or name are skipped unless overwriting."""
        repo, ids, preset = populated
        destination = temp_dir / "bundle"
        repo.export_bundle(destination, preset_ids="all")
        repo.remove_skills_from_preset(preset.id, [ids[2]])

        skipped = repo.import_bundle(destination)
        assert skipped.presets_skipped == 1
        assert skipped.imported == 3
        assert repo.get_preset(preset.id).skill_ids == ids[:2]

        replaced = repo.import_bundle(destination, allow_overwrite=True, as_is=True)
        assert replaced.presets_overwritten == 1
        assert repo.get_preset(preset.id).skill_ids == ids
        assert len(repo.list_presets()) == 1

    def test_missing_source(self, repo, temp_dir: Path):
        """Test a missing bundle is rejected."""
        with pytest.raises(InvalidInputError):
            repo.import_bundle(temp_dir / "nope.zip")

    def test_unsupported_file(self, repo, temp_dir: Path):
        """Test a regular file that is not an archive is rejected."""
        path = temp_dir / "bundle.tar"
        path.write_text("x")
        with pytest.raises(InvalidInputError):
            repo.import_bundle(path)


class TestExtractZip:
    """Tests for safe archive extraction."""

    def test_rejects_parent_paths(self, temp_dir: Path):
        """Test members escaping the destination are rejected."""
        archive = temp_dir / "evil.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("skills/ok/SKILL.md", "# ok\n")
            zf.writestr("../evil.txt", "gotcha")
        destination = temp_dir / "out"
        destination.mkdir()

        with pytest.raises(InvalidInputError):
            extract_zip(archive, destination)

        assert not (temp_dir / "evil.txt").exists()
        assert list(destination.iterdir()) == []

    def test_rejects_absolute_paths(self, temp_dir: Path):
        """Test absolute member paths are rejected."""
        archive = temp_dir / "abs.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("/etc/evil", "gotcha")

        with pytest.raises(InvalidInputError):
            extract_zip(archive, temp_dir / "out")

    def test_not_a_zip(self, temp_dir: Path):
        """Test a corrupt archive is rejected."""
        archive = temp_dir / "bad.zip"
        archive.write_text("not a zip")
        with pytest.raises(InvalidInputError):
            extract_zip(archive, temp_dir / "out")
