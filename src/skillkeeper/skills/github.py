"""
GitHub skill scanner for skillkeeper.

Discovers skills in a public GitHub repository through the anonymous REST
API (repository, branches, git trees and contents endpoints) and downloads
skill directories for import.
"""

import logging
import posixpath
import re
from pathlib import Path
from typing import Any, NamedTuple
from urllib.parse import quote

import httpx

from skillkeeper.skills.exceptions import InvalidInputError, RemoteFetchError
from skillkeeper.skills.hashing import digest_bytes
from skillkeeper.skills.models import DiscoveredCandidate, RemoteScanResult, SourceError
from skillkeeper.skills.parser import parse_manifest_bytes
from skillkeeper.storage.paths import (
    GITHUB_EXTRA_SKILL_PATHS,
    MANIFEST_FILENAME,
    WORKSPACE_SKILL_PATHS,
)

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_BRANCH = "main"
DEFAULT_MAX_CANDIDATES = 200
DEFAULT_TIMEOUT = 30.0
DEFAULT_USER_AGENT = "skillkeeper"

# github.com/<owner>/<repo>[/tree/<ref>[/<subpath>]]
_REPO_REF_PATTERN = re.compile(r"github\.com/([^/]+)/([^/?#]+)(?:/tree/([^/?#]+)(?:/([^?#]+))?)?")
# owner/repo shorthand
_SHORTHAND_PATTERN = re.compile(r"^([\w.-]+)/([\w.-]+)$")


class RepoRef(NamedTuple):
    """A parsed GitHub repository reference."""

    owner: str
    repo: str
    ref: str | None
    subpath: str | None


def parse_repo_ref(value: str) -> RepoRef:
    """Parse a GitHub repository URL.

    Supported forms::

        https://github.com/owner/repo
        https://github.com/owner/repo.git
        https://github.com/owner/repo/tree/branch
        https://github.com/owner/repo/tree/branch/sub/path
        owner/repo

    Args:
        value: Repository URL.

    Returns:
        The parsed reference.

    Raises:
        InvalidInputError: If the value is not a GitHub repository URL.
    """
    match = _REPO_REF_PATTERN.search(value.strip()) or _SHORTHAND_PATTERN.match(value.strip())
    if not match:
        raise InvalidInputError(f"Invalid GitHub URL: {value}")

    owner, repo, ref, subpath = (*match.groups(), None, None)[:4]
    repo = re.sub(r"\.git$", "", repo)
    if not repo:
        raise InvalidInputError(f"Invalid GitHub URL: {value}")

    subpath = subpath.strip("/") if subpath else None
    return RepoRef(owner=owner, repo=repo, ref=ref, subpath=subpath or None)


def with_ref(url: str, ref: str) -> str:
    """Add a ``ref`` query parameter to an API URL unless it already has one."""
    parsed = httpx.URL(url)
    if "ref" in parsed.params:
        return url
    return str(parsed.copy_merge_params({"ref": ref}))


def normalize_subpath(subpath: str) -> str:
    """Normalize a repository subpath to ``a/b/`` form (or empty)."""
    trimmed = subpath.strip("/")
    return f"{trimmed}/" if trimmed else ""


class GitHubClient:
    """Anonymous, read-only client for scanning GitHub repositories.

    Per-candidate and per-path failures are collected as SourceError values
    on the scan result; only a malformed repository reference raises.
    """

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        max_candidates: int = DEFAULT_MAX_CANDIDATES,
        user_agent: str = DEFAULT_USER_AGENT,
        standard_paths: list[str] | None = None,
        client: httpx.Client | None = None,
    ):
        """Initialize the client.

        Args:
            api_url: Base URL of the REST API.
            timeout: Request timeout in seconds.
            max_candidates: Cap on manifests taken from a recursive listing.
            user_agent: User-Agent header sent with every request.
            standard_paths: Conventional locations probed before falling back
                to a recursive listing.
            client: Pre-configured HTTP client (e.g. with a mock transport).
        """
        self.api_url = api_url.rstrip("/")
        self.max_candidates = max_candidates
        self.user_agent = user_agent
        self.standard_paths = (
            standard_paths
            if standard_paths is not None
            else [*WORKSPACE_SKILL_PATHS, *GITHUB_EXTRA_SKILL_PATHS]
        )
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    @property
    def headers(self) -> dict[str, str]:
        """Headers sent with every request."""
        return {
            "Accept": "application/vnd.github+json",
            "User-Agent": self.user_agent,
        }

    def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # HTTP helpers
    # -------------------------------------------------------------------------

    def _get(self, url: str) -> httpx.Response:
        try:
            return self._client.get(url, headers=self.headers)
        except httpx.HTTPError as e:
            raise RemoteFetchError(f"Request to {url} failed: {e}", url=url) from e

    def _get_json(self, url: str) -> Any:
        response = self._get(url)
        if response.status_code != 200:
            raise RemoteFetchError(
                f"GitHub request failed ({response.status_code}): {url}",
                url=url,
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise RemoteFetchError(f"Invalid JSON from {url}", url=url) from e

    def _download(self, url: str) -> bytes:
        response = self._get(url)
        if response.status_code != 200:
            raise RemoteFetchError(
                f"Download failed ({response.status_code}): {url}",
                url=url,
                status_code=response.status_code,
            )
        return response.content

    def _contents_url(self, owner: str, repo: str, path: str, ref: str) -> str:
        quoted = quote(path.strip("/"), safe="/")
        return with_ref(f"{self.api_url}/repos/{owner}/{repo}/contents/{quoted}", ref)

    # -------------------------------------------------------------------------
    # Scanning
    # -------------------------------------------------------------------------

    def default_branch(self, owner: str, repo: str) -> str:
        """Get a repository's default branch, falling back to ``main``."""
        try:
            data = self._get_json(f"{self.api_url}/repos/{owner}/{repo}")
        except RemoteFetchError as e:
            logger.debug(f"Default branch lookup failed, using {DEFAULT_BRANCH}: {e}")
            return DEFAULT_BRANCH
        if isinstance(data, dict) and isinstance(data.get("default_branch"), str):
            return data["default_branch"]
        return DEFAULT_BRANCH

    def scan(self, repo_url: str) -> RemoteScanResult:
        """Scan a GitHub repository for skills.

        With a subpath, the subtree is listed recursively. Otherwise the
        conventional locations are probed first and the whole repository is
        listed recursively only if they yield nothing.

        Args:
            repo_url: Repository URL (see ``parse_repo_ref``).

        Returns:
            Candidates, per-source errors and the truncation flag.

        Raises:
            InvalidInputError: If the URL is malformed.
        """
        ref = parse_repo_ref(repo_url)
        branch = ref.ref or self.default_branch(ref.owner, ref.repo)
        logger.info(f"Scanning {ref.owner}/{ref.repo}@{branch}")

        if ref.subpath:
            return self._scan_tree(repo_url, ref, branch, normalize_subpath(ref.subpath))

        result = self._scan_standard_paths(repo_url, ref, branch)
        if result.candidates:
            return result

        fallback = self._scan_tree(repo_url, ref, branch, "")
        fallback.errors = result.errors + fallback.errors
        return fallback

    def _fetch_candidate(
        self,
        name: str,
        dir_api_url: str,
        download_url: str,
        repo_url: str,
    ) -> DiscoveredCandidate:
        content = self._download(download_url)
        info = parse_manifest_bytes(content)
        return DiscoveredCandidate(
            name=name,
            path=dir_api_url,
            digest=digest_bytes(content),
            description=info.description,
            source_location=repo_url,
            is_remote=True,
            remote_url=dir_api_url,
        )

    def _scan_tree(self, repo_url: str, ref: RepoRef, branch: str, prefix: str) -> RemoteScanResult:
        """Scan via the recursive git tree listing, optionally under a prefix."""
        result = RemoteScanResult()
        base = f"{self.api_url}/repos/{ref.owner}/{ref.repo}"

        try:
            branch_data = self._get_json(f"{base}/branches/{quote(branch, safe='')}")
            sha = branch_data.get("commit", {}).get("sha") if isinstance(branch_data, dict) else None
            if not sha:
                raise RemoteFetchError("Branch lookup did not return a commit sha", url=base)
            tree_data = self._get_json(f"{base}/git/trees/{sha}?recursive=1")
        except RemoteFetchError as e:
            logger.warning(f"Cannot list {ref.owner}/{ref.repo}@{branch}: {e}")
            result.errors.append(SourceError(source=repo_url, error=str(e)))
            return result

        entries = tree_data.get("tree", []) if isinstance(tree_data, dict) else []
        manifest_paths = [
            entry["path"]
            for entry in entries
            if isinstance(entry, dict)
            and entry.get("type") == "blob"
            and isinstance(entry.get("path"), str)
            and posixpath.basename(entry["path"]) == MANIFEST_FILENAME
            and entry["path"].startswith(prefix)
        ]

        if len(manifest_paths) > self.max_candidates:
            logger.warning(
                f"{ref.owner}/{ref.repo} has {len(manifest_paths)} manifests; "
                f"only the first {self.max_candidates} are scanned"
            )
            manifest_paths = manifest_paths[: self.max_candidates]
            result.truncated = True

        for manifest_path in manifest_paths:
            dir_path = posixpath.dirname(manifest_path)
            if not dir_path:
                continue

            dir_api_url = self._contents_url(ref.owner, ref.repo, dir_path, branch)
            try:
                meta = self._get_json(self._contents_url(ref.owner, ref.repo, manifest_path, branch))
                download_url = meta.get("download_url") if isinstance(meta, dict) else None
                if not download_url:
                    raise RemoteFetchError("Manifest has no download URL", url=dir_api_url)
                candidate = self._fetch_candidate(
                    posixpath.basename(dir_path), dir_api_url, download_url, repo_url
                )
            except RemoteFetchError as e:
                logger.warning(f"Skipping {dir_path}: {e}")
                result.errors.append(SourceError(source=dir_api_url, error=str(e)))
                continue

            result.candidates.append(candidate)

        return result

    def _scan_standard_paths(self, repo_url: str, ref: RepoRef, branch: str) -> RemoteScanResult:
        """Probe the conventional locations one level deep."""
        result = RemoteScanResult()

        for relative in self.standard_paths:
            listing_url = self._contents_url(ref.owner, ref.repo, relative, branch)
            try:
                response = self._get(listing_url)
            except RemoteFetchError as e:
                result.errors.append(SourceError(source=listing_url, error=str(e)))
                continue

            if response.status_code == 404:
                continue
            if response.status_code != 200:
                error = f"GitHub request failed ({response.status_code}): {listing_url}"
                result.errors.append(SourceError(source=listing_url, error=error))
                continue

            try:
                items = response.json()
            except ValueError:
                items = None
            if not isinstance(items, list):
                continue

            for item in items:
                if not isinstance(item, dict) or item.get("type") != "dir" or not item.get("url"):
                    continue

                dir_api_url = with_ref(item["url"], branch)
                try:
                    dir_items = self._get_json(dir_api_url)
                    manifest = next(
                        (
                            f
                            for f in (dir_items if isinstance(dir_items, list) else [])
                            if isinstance(f, dict) and f.get("name") == MANIFEST_FILENAME
                        ),
                        None,
                    )
                    if manifest is None or not manifest.get("download_url"):
                        continue
                    candidate = self._fetch_candidate(
                        item.get("name", ""), dir_api_url, manifest["download_url"], repo_url
                    )
                except RemoteFetchError as e:
                    logger.warning(f"Skipping {dir_api_url}: {e}")
                    result.errors.append(SourceError(source=dir_api_url, error=str(e)))
                    continue

                result.candidates.append(candidate)

        return result

    # -------------------------------------------------------------------------
    # Download
    # -------------------------------------------------------------------------

    def download_directory(self, api_url: str, local_dir: Path) -> None:
        """Download a directory recursively through the contents API.

        Nested requests keep the ``ref`` of ``api_url``.

        Args:
            api_url: Contents-API URL of the directory.
            local_dir: Existing local directory to write into.

        Raises:
            RemoteFetchError: If any listing or file download fails.
            OSError: If a file cannot be written.
        """
        items = self._get_json(api_url)
        if not isinstance(items, list):
            raise RemoteFetchError(f"Expected a directory listing from {api_url}", url=api_url)

        ref = httpx.URL(api_url).params.get("ref")
        for item in items:
            if not isinstance(item, dict):
                continue
            name = item.get("name")
            # Plain entry names only
            if not isinstance(name, str) or not name or "/" in name or "\\" in name or name in (".", ".."):
                continue

            if item.get("type") == "file" and item.get("download_url"):
                (local_dir / name).write_bytes(self._download(item["download_url"]))
            elif item.get("type") == "dir" and item.get("url"):
                sub_dir = local_dir / name
                sub_dir.mkdir(parents=True, exist_ok=True)
                next_url = with_ref(item["url"], ref) if ref else item["url"]
                self.download_directory(next_url, sub_dir)
