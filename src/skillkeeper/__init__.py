"""
skillkeeper - Local skill repository manager

Discovers skills from global, workspace, local and GitHub sources,
deduplicates them by content hash, keeps them in content-addressed storage,
groups them into presets and applies them back to project directories.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("skillkeeper")
except PackageNotFoundError:
    __version__ = "0.4.0"

__all__ = [
    "__version__",
]
