"""
Local skill scanner for skillkeeper.

Discovers skill directories (directories directly containing SKILL.md) under
the global tool locations, workspace locations and arbitrary folders.
"""

import logging
from collections.abc import Iterable
from pathlib import Path

from skillkeeper.skills.hashing import digest_bytes
from skillkeeper.skills.models import DiscoveredCandidate, SourceError
from skillkeeper.skills.parser import parse_manifest_bytes
from skillkeeper.storage.paths import (
    GLOBAL_SKILL_PATHS,
    MANIFEST_FILENAME,
    WORKSPACE_SKILL_PATHS,
    is_same_or_nested,
    resolve_path,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 5


def is_skill_directory(directory: Path) -> bool:
    """Check whether a directory directly contains a manifest."""
    return (directory / MANIFEST_FILENAME).is_file()


def find_skill_directories(
    directory: Path,
    max_depth: int = DEFAULT_MAX_DEPTH,
    _depth: int = 0,
) -> list[Path]:
    """Recursively find skill directories.

    A directory containing SKILL.md is returned as is; its own subtree is not
    searched further. Hidden directories are skipped.

    Args:
        directory: Directory to search.
        max_depth: Maximum recursion depth below ``directory``.

    Returns:
        Skill directories in sorted walk order.

    Raises:
        OSError: If ``directory`` itself cannot be listed. Errors below it
            are logged and skipped.
    """
    if _depth > max_depth:
        return []

    if is_skill_directory(directory):
        return [directory]

    try:
        entries = sorted(directory.iterdir())
    except OSError as e:
        if _depth == 0:
            raise
        logger.debug(f"Skipping unreadable directory {directory}: {e}")
        return []

    results: list[Path] = []
    for entry in entries:
        if entry.name.startswith("."):
            continue
        try:
            if not entry.is_dir():
                continue
        except OSError:
            continue
        results.extend(find_skill_directories(entry, max_depth, _depth + 1))

    return results


def build_candidate(skill_dir: Path, source_location: str) -> DiscoveredCandidate:
    """Build a candidate from a local skill directory.

    Args:
        skill_dir: Directory containing SKILL.md.
        source_location: Root the directory was found under.

    Returns:
        The discovered candidate, named after its directory.

    Raises:
        OSError: If the manifest cannot be read.
    """
    content = (skill_dir / MANIFEST_FILENAME).read_bytes()
    info = parse_manifest_bytes(content)
    return DiscoveredCandidate(
        name=skill_dir.name,
        path=str(skill_dir),
        digest=digest_bytes(content),
        description=info.description,
        source_location=source_location,
    )


def scan_directory(
    root: Path,
    max_depth: int = DEFAULT_MAX_DEPTH,
    exclude: Path | None = None,
) -> tuple[list[DiscoveredCandidate], list[SourceError]]:
    """Scan one root for skill candidates.

    A missing root contributes nothing. An unreadable root, or a manifest
    that cannot be read, is reported as a SourceError instead of raising.

    Args:
        root: Directory to scan.
        max_depth: Maximum recursion depth.
        exclude: Directory to leave out (the storage directory); roots that
            overlap it are skipped entirely.

    Returns:
        Tuple of (candidates, errors).
    """
    if exclude is not None and is_same_or_nested(root, exclude):
        logger.debug(f"Skipping {root}: overlaps storage directory")
        return [], []

    if not root.is_dir():
        return [], []

    try:
        skill_dirs = find_skill_directories(root, max_depth)
    except OSError as e:
        logger.warning(f"Cannot scan {root}: {e}")
        return [], [SourceError(source=str(root), error=str(e))]

    candidates: list[DiscoveredCandidate] = []
    errors: list[SourceError] = []
    for skill_dir in skill_dirs:
        if exclude is not None and is_same_or_nested(skill_dir, exclude):
            continue
        try:
            candidate = build_candidate(skill_dir, str(skill_dir.parent))
        except OSError as e:
            logger.warning(f"Cannot read skill at {skill_dir}: {e}")
            errors.append(SourceError(source=str(skill_dir), error=str(e)))
            continue
        logger.debug(f"Found skill {candidate.name} ({candidate.digest}) in {root}")
        candidates.append(candidate)

    return candidates, errors


def global_roots(paths: Iterable[str] | None = None) -> list[Path]:
    """Resolve the global scan roots.

    Args:
        paths: Path patterns (default: GLOBAL_SKILL_PATHS).

    Returns:
        Resolved root directories.
    """
    return [resolve_path(p) for p in (GLOBAL_SKILL_PATHS if paths is None else paths)]


def workspace_roots(
    workspaces: Iterable[Path | str],
    paths: Iterable[str] | None = None,
) -> list[Path]:
    """Resolve the scan roots of each workspace.

    Args:
        workspaces: Workspace root directories.
        paths: Relative path patterns (default: WORKSPACE_SKILL_PATHS).

    Returns:
        Resolved root directories, grouped per workspace.
    """
    relative = list(WORKSPACE_SKILL_PATHS if paths is None else paths)
    roots = []
    for workspace in workspaces:
        base = resolve_path(workspace)
        roots.extend(base / rel for rel in relative)
    return roots


def scan_roots(
    roots: Iterable[Path],
    max_depth: int = DEFAULT_MAX_DEPTH,
    exclude: Path | None = None,
) -> tuple[list[DiscoveredCandidate], list[SourceError]]:
    """Scan several roots, collecting candidates and per-source errors.

    Args:
        roots: Directories to scan, in order.
        max_depth: Maximum recursion depth per root.
        exclude: Directory to leave out (the storage directory).

    Returns:
        Tuple of (candidates in root order, errors).
    """
    candidates: list[DiscoveredCandidate] = []
    errors: list[SourceError] = []
    for root in roots:
        found, failed = scan_directory(root, max_depth, exclude)
        candidates.extend(found)
        errors.extend(failed)
    return candidates, errors
