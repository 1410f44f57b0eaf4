"""
Content hashing for skill manifests.

The MD5 digest of a manifest's raw bytes is the skill's identity. No
normalization is applied: any byte difference, line endings included,
produces a different digest.
"""

import hashlib
from pathlib import Path


def digest_bytes(content: bytes) -> str:
    """Compute the digest of a manifest buffer.

    Args:
        content: Raw manifest bytes.

    Returns:
        Lowercase hex digest.
    """
    return hashlib.md5(content).hexdigest()


def digest_file(path: Path) -> str:
    """Compute the digest of a manifest file.

    Args:
        path: Path to the manifest.

    Returns:
        Lowercase hex digest.

    Raises:
        OSError: If the file cannot be read.
    """
    return digest_bytes(Path(path).read_bytes())
