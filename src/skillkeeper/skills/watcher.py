"""
Storage watcher for skillkeeper.

Monitors the skills directory of a repository for manifest changes made by
other tools and triggers a debounced reconciliation.
"""

import logging
import threading
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from skillkeeper.skills.exceptions import SkillRepositoryError
from skillkeeper.storage.paths import MANIFEST_FILENAME

if TYPE_CHECKING:
    from skillkeeper.skills.manager import SkillRepository

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.5


class SkillWatcher:
    """
    Watches a repository's skills directory and reconciles after changes.

    Bursts of events are collapsed: reconciliation runs once, after no event
    has arrived for ``debounce_seconds``. Reconciliation takes the
    repository's lock, so it never interleaves with a running operation.

    Usage:
        watcher = SkillWatcher(repository, debounce_seconds=1.0)
        watcher.start()
        # ... later ...
        watcher.stop()
    """

    def __init__(self, repository: "SkillRepository", debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS):
        """
        Initialize the watcher.

        Args:
            repository: Repository to reconcile on changes.
            debounce_seconds: Quiet period before reconciling.
        """
        self.repository = repository
        self.debounce_seconds = debounce_seconds
        self.watch_path = repository.skills_dir

        self._observer: Observer | None = None
        self._timer: threading.Timer | None = None
        self._lock = threading.Lock()
        self._changes: set[str] = set()

    @property
    def is_running(self) -> bool:
        """Check if the watcher is currently running."""
        return self._observer is not None

    def start(self) -> None:
        """Start watching the skills directory."""
        if self._observer is not None:
            logger.warning("Watcher already running")
            return

        self.watch_path.mkdir(parents=True, exist_ok=True)
        handler = _ManifestEventHandler(self._on_change, self.watch_path)
        observer = Observer()
        observer.schedule(handler, str(self.watch_path), recursive=True)
        observer.start()
        self._observer = observer
        logger.info(f"Watching {self.watch_path}")

    def stop(self) -> None:
        """Stop watching and drop any pending reconciliation."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._changes.clear()

        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5.0)
            self._observer = None
            logger.info(f"Stopped watching {self.watch_path}")

    def _on_change(self, path: str, event_type: str) -> None:
        """Record a change and restart the debounce timer."""
        with self._lock:
            self._changes.add(f"{event_type}: {path}")
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.debounce_seconds, self.flush)
            self._timer.daemon = True
            self._timer.start()

    def flush(self) -> bool:
        """Reconcile now if changes are pending.

        Returns:
            True if a reconciliation ran.
        """
        with self._lock:
            if not self._changes:
                return False
            changes = sorted(self._changes)
            self._changes.clear()
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

        logger.info(f"Detected {len(changes)} change(s) in {self.watch_path}, reconciling")
        for change in changes:
            logger.debug(f"  - {change}")

        try:
            report = self.repository.reconcile()
        except (OSError, SkillRepositoryError) as e:
            logger.error(f"Reconciliation after external change failed: {e}")
            return False

        if report.changed:
            logger.info(
                f"Reconciled: {len(report.removed_metadata)} removed, "
                f"{len(report.created_metadata)} created, {len(report.relocated)} relocated"
            )
        return True


class _ManifestEventHandler(FileSystemEventHandler):
    """Forwards manifest events and skill directory removals."""

    def __init__(self, callback: Callable[[str, str], None], watch_path: Path):
        super().__init__()
        self._callback = callback
        self._watch_path = watch_path

    def _is_relevant(self, path: str | bytes, is_directory: bool) -> bool:
        candidate = Path(path.decode() if isinstance(path, bytes) else path)
        try:
            relative = candidate.relative_to(self._watch_path)
        except ValueError:
            return False
        # Staging and other hidden directories
        if any(part.startswith(".") for part in relative.parts):
            return False
        if is_directory:
            return len(relative.parts) == 1
        return candidate.name == MANIFEST_FILENAME

    def on_created(self, event: FileSystemEvent) -> None:
        if self._is_relevant(event.src_path, event.is_directory):
            self._callback(str(event.src_path), "created")

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._is_relevant(event.src_path, False):
            self._callback(str(event.src_path), "modified")

    def on_deleted(self, event: FileSystemEvent) -> None:
        if self._is_relevant(event.src_path, event.is_directory):
            self._callback(str(event.src_path), "deleted")

    def on_moved(self, event: FileSystemEvent) -> None:
        if self._is_relevant(event.src_path, event.is_directory):
            self._callback(str(event.src_path), "deleted")
        if self._is_relevant(event.dest_path, event.is_directory):
            self._callback(str(event.dest_path), "created")
