"""
Unit tests for the GitHub skill scanner.

All requests go through an httpx mock transport; no network access.
"""

from pathlib import Path

import httpx
import pytest

from skillkeeper.skills import InvalidInputError, RemoteFetchError, digest_bytes, parse_repo_ref
from skillkeeper.skills.github import normalize_subpath, with_ref

API = "https://api.github.com"
RAW = "https://raw.githubusercontent.com"

ALPHA = b"---\nname: alpha\ndescription: First remote skill\n---\n# Alpha\n"
BETA = b"---\nname: beta\ndescription: Second remote skill\n---\n# Beta\n"


def add_manifest(fake, repo_path: str, content: bytes, branch: str = "main") -> None:
    """Register contents metadata and raw content for a manifest path."""
    raw_path = f"/octo/skills/{branch}/{repo_path}"
    fake.add(f"/repos/octo/skills/contents/{repo_path}", {"download_url": f"{RAW}{raw_path}"})
    fake.add(raw_path, content)


def add_tree(fake, paths: list[str], branch: str = "main", sha: str = "abc123") -> None:
    """Register a branch and its recursive tree listing."""
    fake.add(f"/repos/octo/skills/branches/{branch}", {"commit": {"sha": sha}})
    fake.add(
        f"/repos/octo/skills/git/trees/{sha}",
        {"tree": [{"path": p, "type": "blob"} for p in paths] + [{"path": "docs", "type": "tree"}]},
    )


class TestParseRepoRef:
    """Tests for repository reference parsing."""

    def test_plain_url(self):
        """Test a repository URL."""
        ref = parse_repo_ref("https://github.com/octo/skills")
        assert (ref.owner, ref.repo, ref.ref, ref.subpath) == ("octo", "skills", None, None)

    def test_git_suffix(self):
        """Test a clone URL."""
        assert parse_repo_ref("https://github.com/octo/skills.git").repo == "skills"

    def test_tree_with_subpath(self):
        """Test a tree URL with a ref and subpath."""
        ref = parse_repo_ref("https://github.com/octo/skills/tree/dev/tools/writing/")
        assert ref.ref == "dev"
        assert ref.subpath == "tools/writing"

    def test_shorthand(self):
        """Test the owner/repo shorthand."""
        ref = parse_repo_ref("octo/skills")
        assert (ref.owner, ref.repo, ref.ref) == ("octo", "skills", None)

    @pytest.mark.parametrize("value", ["", "not a url", "https://gitlab.com/octo/skills/x"])
    def test_invalid(self, value):
        """Test malformed references are rejected."""
        with pytest.raises(InvalidInputError):
            parse_repo_ref(value)


class TestUrlHelpers:
    """Tests for URL helpers."""

    def test_with_ref_adds_param(self):
        """Test a ref is added to a URL without one."""
        assert with_ref(f"{API}/repos/o/r/contents/x", "dev") == f"{API}/repos/o/r/contents/x?ref=dev"

    def test_with_ref_keeps_existing(self):
        """Test an existing ref is kept."""
        url = f"{API}/repos/o/r/contents/x?ref=main"
        assert with_ref(url, "dev") == url

    def test_normalize_subpath(self):
        """Test subpath normalization."""
        assert normalize_subpath("/a/b") == "a/b/"
        assert normalize_subpath("/") == ""


class TestScanStandardPaths:
    """Tests for probing conventional locations."""

    def test_finds_skill(self, fake_github):
        """Test a skill under a conventional location."""
        fake_github.add("/repos/octo/skills", {"default_branch": "main"})
        fake_github.add(
            "/repos/octo/skills/contents/skills",
            [
                {"type": "dir", "name": "alpha", "url": f"{API}/repos/octo/skills/contents/skills/alpha?ref=main"},
                {"type": "file", "name": "README.md", "url": f"{API}/repos/octo/skills/contents/skills/README.md"},
            ],
        )
        fake_github.add(
            "/repos/octo/skills/contents/skills/alpha",
            [{"name": "SKILL.md", "type": "file", "download_url": f"{RAW}/octo/skills/main/skills/alpha/SKILL.md"}],
        )
        fake_github.add("/octo/skills/main/skills/alpha/SKILL.md", ALPHA)

        with fake_github.client(standard_paths=["skills/"], user_agent="tests") as client:
            result = client.scan("https://github.com/octo/skills")

        assert result.errors == []
        assert result.truncated is False
        assert len(result.candidates) == 1
        candidate = result.candidates[0]
        assert candidate.name == "alpha"
        assert candidate.digest == digest_bytes(ALPHA)
        assert candidate.description == "First remote skill"
        assert candidate.is_remote is True
        assert candidate.remote_url == f"{API}/repos/octo/skills/contents/skills/alpha?ref=main"
        assert candidate.source_location == "https://github.com/octo/skills"
        assert all(r.headers["User-Agent"] == "tests" for r in fake_github.requests)
        assert "/repos/octo/skills/git/trees/abc123" not in fake_github.paths()

    def test_non_404_failure_reported(self, fake_github):
        """Test a failing location is reported while others are probed."""
        fake_github.add("/repos/octo/skills/contents/skills", {"message": "boom"}, status=500)
        add_tree(fake_github, ["tools/beta/SKILL.md"])
        add_manifest(fake_github, "tools/beta/SKILL.md", BETA)

        with fake_github.client(standard_paths=["skills/", "skill/"]) as client:
            result = client.scan("octo/skills")

        assert [c.name for c in result.candidates] == ["beta"]
        assert len(result.errors) == 1
        assert "500" in result.errors[0].error


class TestScanTree:
    """Tests for the recursive listing."""

    def test_fallback_when_no_standard_paths(self, fake_github):
        """Test the whole repository is listed when conventional locations are empty."""
        add_tree(fake_github, ["tools/beta/SKILL.md", "README.md", "SKILL.md"])
        add_manifest(fake_github, "tools/beta/SKILL.md", BETA)

        with fake_github.client(standard_paths=["skills/"]) as client:
            result = client.scan("https://github.com/octo/skills")

        assert [c.name for c in result.candidates] == ["beta"]
        assert result.candidates[0].path == f"{API}/repos/octo/skills/contents/tools/beta?ref=main"
        assert result.errors == []

    def test_subpath_scopes_listing(self, fake_github):
        """Test a subpath restricts the listing and skips the default branch lookup."""
        add_tree(fake_github, ["tools/beta/SKILL.md", "other/alpha/SKILL.md"], branch="dev")
        add_manifest(fake_github, "tools/beta/SKILL.md", BETA, branch="dev")
        add_manifest(fake_github, "other/alpha/SKILL.md", ALPHA, branch="dev")

        with fake_github.client() as client:
            result = client.scan("https://github.com/octo/skills/tree/dev/tools")

        assert [c.name for c in result.candidates] == ["beta"]
        assert "/repos/octo/skills" not in fake_github.paths()
        assert all(
            r.url.params.get("ref") == "dev" for r in fake_github.requests if "/contents/" in r.url.path
        )

    def test_truncation(self, fake_github):
        """Test the manifest cap truncates the listing."""
        paths = [f"s{i}/SKILL.md" for i in range(3)]
        add_tree(fake_github, paths)
        for i, path in enumerate(paths):
            add_manifest(fake_github, path, f"# Skill {i}\n".encode())

        with fake_github.client(standard_paths=[], max_candidates=2) as client:
            result = client.scan("octo/skills")

        assert result.truncated is True
        assert [c.name for c in result.candidates] == ["s0", "s1"]

    def test_candidate_failure_skipped(self, fake_github):
        """Test one failing candidate does not abort the scan."""
        add_tree(fake_github, ["a/SKILL.md", "b/SKILL.md"])
        fake_github.add("/repos/octo/skills/contents/a/SKILL.md", {"message": "boom"}, status=500)
        add_manifest(fake_github, "b/SKILL.md", BETA)

        with fake_github.client(standard_paths=[]) as client:
            result = client.scan("octo/skills")

        assert [c.name for c in result.candidates] == ["b"]
        assert len(result.errors) == 1
        assert result.errors[0].source.startswith(f"{API}/repos/octo/skills/contents/a")

    def test_branch_failure_reported(self, fake_github):
        """Test a failing branch lookup yields an error and no candidates."""
        with fake_github.client(standard_paths=[]) as client:
            result = client.scan("octo/skills")

        assert result.candidates == []
        assert len(result.errors) == 1

    def test_transport_errors_reported(self, fake_github):
        """Test connection failures are reported, not raised."""
        fake_github.add("/repos/octo/skills/contents/skills", httpx.ConnectError("offline"))
        fake_github.add("/repos/octo/skills/branches/main", httpx.ConnectError("offline"))

        with fake_github.client(standard_paths=["skills/"]) as client:
            result = client.scan("octo/skills")

        assert result.candidates == []
        assert len(result.errors) == 2


class TestDefaultBranch:
    """Tests for default branch lookup."""

    def test_lookup(self, fake_github):
        """Test the repository's default branch is used."""
        fake_github.add("/repos/octo/skills", {"default_branch": "trunk"})
        with fake_github.client() as client:
            assert client.default_branch("octo", "skills") == "trunk"

    def test_fallback(self, fake_github):
        """Test a failed lookup falls back to main."""
        with fake_github.client() as client:
            assert client.default_branch("octo", "missing") == "main"


class TestDownloadDirectory:
    """Tests for recursive directory download."""

    def test_download_keeps_ref(self, fake_github, temp_dir: Path):
        """Test nested listings keep the ref and unsafe names are skipped."""
        fake_github.add(
            "/repos/octo/skills/contents/skills/alpha",
            [
                {"name": "SKILL.md", "type": "file", "download_url": f"{RAW}/octo/skills/dev/skills/alpha/SKILL.md"},
                {"name": "scripts", "type": "dir", "url": f"{API}/repos/octo/skills/contents/skills/alpha/scripts"},
                {"name": "..", "type": "file", "download_url": f"{RAW}/evil"},
            ],
        )
        fake_github.add(
            "/repos/octo/skills/contents/skills/alpha/scripts",
            [{"name": "run.sh", "type": "file", "download_url": f"{RAW}/octo/skills/dev/skills/alpha/scripts/run.sh"}],
        )
        fake_github.add("/octo/skills/dev/skills/alpha/SKILL.md", ALPHA)
        fake_github.add("/octo/skills/dev/skills/alpha/scripts/run.sh", b"echo hi\n")

        with fake_github.client() as client:
            client.download_directory(f"{API}/repos/octo/skills/contents/skills/alpha?ref=dev", temp_dir)

        assert (temp_dir / "SKILL.md").read_bytes() == ALPHA
        assert (temp_dir / "scripts" / "run.sh").read_bytes() == b"echo hi\n"
        scripts_request = next(r for r in fake_github.requests if r.url.path.endswith("/scripts"))
        assert scripts_request.url.params.get("ref") == "dev"
        assert "/evil" not in fake_github.paths()

    def test_download_failure_raises(self, fake_github, temp_dir: Path):
        """Test a failed listing raises."""
        with fake_github.client() as client:
            with pytest.raises(RemoteFetchError):
                client.download_directory(f"{API}/repos/octo/skills/contents/missing?ref=main", temp_dir)
