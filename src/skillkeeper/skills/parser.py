"""
Manifest parser for skillkeeper.

Extracts the display name and description from a SKILL.md manifest, either
from its YAML front-matter or from its first content line.
"""

import logging
import re
from pathlib import Path
from typing import Any, NamedTuple

import yaml

logger = logging.getLogger(__name__)

FRONTMATTER_DELIMITER = "---"
MAX_DESCRIPTION_LENGTH = 200
ELLIPSIS = "…"

_LINE_SPLIT = re.compile(r"\r?\n")
# Used when the front-matter is not valid YAML (e.g. an unquoted colon).
_FIELD_PATTERN = r"^\s*{field}:\s*[\"']?([^\"'\n]+)[\"']?"


class ManifestInfo(NamedTuple):
    """Name and description extracted from a manifest."""

    name: str | None
    description: str | None


def _truncate(text: str) -> str:
    if len(text) > MAX_DESCRIPTION_LENGTH:
        return text[:MAX_DESCRIPTION_LENGTH] + ELLIPSIS
    return text


def split_frontmatter(content: str) -> tuple[str | None, str]:
    """Split a manifest into its front-matter block and body.

    The front-matter opens with a line consisting solely of ``---`` and is
    closed by the next such line.

    Args:
        content: The full manifest text.

    Returns:
        Tuple of (front-matter text or None, remaining body).
    """
    lines = _LINE_SPLIT.split(content.lstrip("\ufeff"))
    if not lines or lines[0].strip() != FRONTMATTER_DELIMITER:
        return None, content

    for i, line in enumerate(lines[1:], start=1):
        if line.strip() == FRONTMATTER_DELIMITER:
            return "\n".join(lines[1:i]), "\n".join(lines[i + 1 :])

    # No closing delimiter found
    return None, content


def parse_frontmatter(frontmatter: str) -> dict[str, Any]:
    """Parse a front-matter block into a mapping.

    Falls back to line-oriented matching of the ``name`` and ``description``
    fields when the block is not valid YAML.

    Args:
        frontmatter: Front-matter text without delimiters.

    Returns:
        Parsed fields (possibly empty).
    """
    try:
        data = yaml.safe_load(frontmatter)
        if isinstance(data, dict):
            return data
        return {}
    except yaml.YAMLError:
        fields: dict[str, Any] = {}
        for field in ("name", "description"):
            match = re.search(_FIELD_PATTERN.format(field=field), frontmatter, re.MULTILINE)
            if match:
                fields[field] = match.group(1)
        return fields


def _field_text(fields: dict[str, Any], key: str) -> str | None:
    value = fields.get(key)
    if value is None:
        return None
    text = " ".join(str(value).split())
    return text or None


def _first_content_line(text: str) -> str | None:
    for line in _LINE_SPLIT.split(text):
        stripped = line.strip()
        if stripped and not stripped.startswith(FRONTMATTER_DELIMITER) and not stripped.startswith("#"):
            return stripped
    return None


def parse_manifest(content: str) -> ManifestInfo:
    """Extract the display name and description from manifest text.

    The description comes from the front-matter ``description`` field, or
    else from the first non-empty line that is not a delimiter or heading.
    The description is truncated to 200 characters with an ellipsis.

    Args:
        content: Manifest text.

    Returns:
        ManifestInfo with name and description (either may be None).
    """
    frontmatter, body = split_frontmatter(content)
    fields = parse_frontmatter(frontmatter) if frontmatter is not None else {}

    name = _field_text(fields, "name")
    description = _field_text(fields, "description")
    if description is None:
        description = _first_content_line(body)

    return ManifestInfo(
        name=name,
        description=_truncate(description) if description else None,
    )


def parse_manifest_bytes(content: bytes) -> ManifestInfo:
    """Extract name and description from raw manifest bytes."""
    return parse_manifest(content.decode("utf-8", errors="replace"))


def read_manifest(path: Path) -> ManifestInfo:
    """Read a manifest file and extract its name and description.

    Never raises; an unreadable file yields an empty ManifestInfo.

    Args:
        path: Path to the manifest.

    Returns:
        ManifestInfo (fields are None if the file cannot be read).
    """
    try:
        content = Path(path).read_bytes()
    except OSError as e:
        logger.debug(f"Cannot read manifest {path}: {e}")
        return ManifestInfo(name=None, description=None)
    return parse_manifest_bytes(content)
