"""
Pytest configuration and fixtures for skillkeeper tests.
"""

import logging
import os
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import httpx
import pytest
from typer.testing import CliRunner

from skillkeeper.config import ScanConfig, Settings, clear_settings_cache
from skillkeeper.skills import GitHubClient, SkillRepository, open_repository

SKILL_TEMPLATE = """---
name: {name}
description: {description}
---

# {name}

Follow these instructions.
"""


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture(autouse=True)
def isolated_home(temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Point HOME and the config home at a temporary directory."""
    home = temp_dir / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.delenv("APPDATA", raising=False)
    for key in list(os.environ):
        if key.startswith("SKILLKEEPER_"):
            monkeypatch.delenv(key, raising=False)

    root_logger = logging.getLogger()
    handlers, level = list(root_logger.handlers), root_logger.level
    clear_settings_cache()

    yield home

    clear_settings_cache()
    root_logger.handlers = handlers
    root_logger.setLevel(level)


@pytest.fixture
def storage_root(temp_dir: Path) -> Path:
    """Provide the storage root of a test repository (not yet created)."""
    return temp_dir / "store"


@pytest.fixture
def settings() -> Settings:
    """Provide settings that scan no global locations and skip legacy data."""
    return Settings(migrate_legacy=False, scan=ScanConfig(global_paths=[]))


@pytest.fixture
def write_skill() -> Callable[..., Path]:
    """Provide a helper creating a skill directory.

    ``write_skill(parent, "writer")`` creates ``parent/writer/SKILL.md`` with
    front-matter naming the skill after its directory; pass ``name`` for a
    different front-matter name, ``content`` for a custom manifest and
    ``files`` for extra assets.
    """

    def _write(
        parent: Path,
        dir_name: str,
        content: str | None = None,
        files: dict[str, str] | None = None,
        description: str = "A test skill",
        name: str | None = None,
    ) -> Path:
        skill_dir = parent / dir_name
        skill_dir.mkdir(parents=True, exist_ok=True)
        if content is None:
            content = SKILL_TEMPLATE.format(name=name or dir_name, description=description)
        (skill_dir / "SKILL.md").write_bytes(content.encode("utf-8"))
        for relative, text in (files or {}).items():
            target = skill_dir / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(text, encoding="utf-8")
        return skill_dir

    return _write


@pytest.fixture
def repo(storage_root: Path, settings: Settings) -> Generator[SkillRepository, None, None]:
    """Provide an opened repository in a temporary storage root."""
    repository = open_repository(storage_root, settings)
    yield repository
    repository.close()


@pytest.fixture
def workspace(temp_dir: Path) -> Path:
    """Provide an empty workspace directory."""
    path = temp_dir / "workspace"
    path.mkdir()
    return path


class FakeGitHub:
    """Serves canned GitHub API responses keyed by URL path."""

    def __init__(self) -> None:
        self.routes: dict[str, tuple[int, Any]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, path: str, payload: Any, status: int = 200) -> None:
        self.routes[path] = (status, payload)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, payload = self.routes.get(request.url.path, (404, {"message": "Not Found"}))
        if isinstance(payload, Exception):
            raise payload
        if isinstance(payload, bytes):
            return httpx.Response(status, content=payload)
        return httpx.Response(status, json=payload)

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]

    def client(self, **kwargs: Any) -> GitHubClient:
        transport = httpx.MockTransport(self.handler)
        return GitHubClient(client=httpx.Client(transport=transport), **kwargs)


@pytest.fixture
def fake_github() -> FakeGitHub:
    """Provide a fake GitHub API."""
    return FakeGitHub()
