"""
Error types raised by the skill repository.

Per-source scan failures are not exceptions; they are reported as
SourceError values next to the scan results.
"""

from typing import Any


class SkillRepositoryError(Exception):
    """Base class for skill repository errors."""

    pass


class InvalidInputError(SkillRepositoryError, ValueError):
    """Input rejected before any I/O (bad repository reference, empty name...)."""

    pass


class NotFoundError(SkillRepositoryError):
    """An operation referenced an unknown skill or preset."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind.capitalize()} not found: {identifier}")


class ConflictError(SkillRepositoryError):
    """A name collides with an existing entity.

    The caller may retry with an explicit overwrite flag; ``existing`` holds
    the entity that caused the collision.
    """

    def __init__(self, message: str, existing: Any = None):
        self.existing = existing
        super().__init__(message)


class RemoteFetchError(SkillRepositoryError):
    """A request against the remote forge API failed."""

    def __init__(self, message: str, url: str | None = None, status_code: int | None = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message)
