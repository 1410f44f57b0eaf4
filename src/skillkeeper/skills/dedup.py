"""
Candidate deduplication for skillkeeper.

Scans are deduplicated by digest (content identity); bundles, which are
organized by name, are deduplicated by name.
"""

from collections.abc import Iterable
from typing import NamedTuple

from skillkeeper.skills.models import DiscoveredCandidate, NameConflict, Skill, normalize_name


class Partition(NamedTuple):
    """Candidates classified against the imported skills."""

    discoverable: list[DiscoveredCandidate]
    already_imported: list[DiscoveredCandidate]
    conflicts: list[NameConflict]


def dedupe_by_digest(candidates: Iterable[DiscoveredCandidate]) -> list[DiscoveredCandidate]:
    """Keep the first candidate for each digest, preserving order."""
    seen: set[str] = set()
    unique = []
    for candidate in candidates:
        if candidate.digest not in seen:
            seen.add(candidate.digest)
            unique.append(candidate)
    return unique


def dedupe_by_name(candidates: Iterable[DiscoveredCandidate]) -> list[DiscoveredCandidate]:
    """Keep the first candidate for each case-insensitive name, preserving order."""
    seen: set[str] = set()
    unique = []
    for candidate in candidates:
        key = normalize_name(candidate.name)
        if key not in seen:
            seen.add(key)
            unique.append(candidate)
    return unique


def find_same_skill(candidate: DiscoveredCandidate, imported: Iterable[Skill]) -> Skill | None:
    """Find the imported skill a candidate stands for.

    The directory name a skill was first imported from is checked before
    display names, so a skill whose manifest names it differently from its
    directory is still recognized. Names compare case-insensitively.

    Args:
        candidate: The candidate to look up.
        imported: Currently imported skills.

    Returns:
        The matching skill, or None.
    """
    wanted = normalize_name(candidate.name)
    imported = list(imported)
    for skill in imported:
        if skill.source_name is not None and normalize_name(skill.source_name) == wanted:
            return skill
    for skill in imported:
        if normalize_name(skill.name) == wanted:
            return skill
    return None


def find_name_conflict(candidate: DiscoveredCandidate, imported: Iterable[Skill]) -> Skill | None:
    """Find an imported skill with the candidate's name but different content.

    Args:
        candidate: The candidate to check.
        imported: Currently imported skills.

    Returns:
        The conflicting skill, or None.
    """
    existing = find_same_skill(candidate, imported)
    if existing is not None and existing.id != candidate.digest:
        return existing
    return None


def partition(candidates: Iterable[DiscoveredCandidate], imported: list[Skill]) -> Partition:
    """Split candidates into discoverable and already-imported ones.

    Name conflicts are advisory: a conflicting candidate stays discoverable
    and is also listed in ``conflicts``.

    Args:
        candidates: Digest-deduplicated candidates.
        imported: Currently imported skills.

    Returns:
        The partition.
    """
    imported_ids = {skill.id for skill in imported}
    discoverable: list[DiscoveredCandidate] = []
    already_imported: list[DiscoveredCandidate] = []
    conflicts: list[NameConflict] = []

    for candidate in candidates:
        if candidate.digest in imported_ids:
            already_imported.append(candidate)
            continue
        discoverable.append(candidate)
        existing = find_name_conflict(candidate, imported)
        if existing is not None:
            conflicts.append(NameConflict(candidate=candidate, existing=existing))

    return Partition(discoverable, already_imported, conflicts)
