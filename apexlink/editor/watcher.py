"""File watching for externally modified buffers."""

import logging
import threading
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver, ObservedWatch

logger = logging.getLogger(__name__)


class BufferWatcher:
    """Watches the directories of open buffers and reports changes, debounced.

    on_change runs on a timer thread; callers hand it to the EditorQueue.
    """

    # Debounce time in seconds for file change events
    DEBOUNCE_SECONDS = 0.1

    def __init__(self, on_change: Callable[[], None]) -> None:
        """Initialize the watcher.

        Args:
            on_change: Called once per burst of changes to watched files.
        """
        self._on_change = on_change
        self._observer: BaseObserver | None = None
        self._handler = _BufferEventHandler(self._on_file_change)
        self._files: set[Path] = set()
        self._watches: dict[Path, ObservedWatch] = {}

        self._debounce_timer: threading.Timer | None = None
        self._debounce_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        """Check if the observer thread is running."""
        return self._observer is not None

    def start(self) -> None:
        """Start watching."""
        if self._observer is not None:
            return  # Already running

        self._observer = Observer()
        self._observer.start()
        for directory in {path.parent for path in self._files}:
            self._schedule(directory)
        logger.info("File watcher started")

    def stop(self) -> None:
        """Stop watching and cancel any pending notification."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
            self._watches.clear()
            logger.info("File watcher stopped")

        with self._debounce_lock:
            if self._debounce_timer is not None:
                self._debounce_timer.cancel()
                self._debounce_timer = None

    def watch(self, path: str | Path) -> None:
        """Start reporting changes to a file."""
        path = Path(path).resolve()
        self._files.add(path)
        if self._observer is not None and path.parent not in self._watches:
            self._schedule(path.parent)

    def unwatch(self, path: str | Path) -> None:
        """Stop reporting changes to a file."""
        self._files.discard(Path(path).resolve())

    def _schedule(self, directory: Path) -> None:
        if not directory.is_dir() or self._observer is None:
            logger.debug("Not watching missing directory %s", directory)
            return
        self._watches[directory] = self._observer.schedule(
            self._handler, str(directory), recursive=False
        )

    def _on_file_change(self, path: Path) -> None:
        if path.resolve() not in self._files:
            return

        with self._debounce_lock:
            if self._debounce_timer is not None:
                self._debounce_timer.cancel()
            self._debounce_timer = threading.Timer(self.DEBOUNCE_SECONDS, self._fire)
            self._debounce_timer.daemon = True
            self._debounce_timer.start()

    def _fire(self) -> None:
        with self._debounce_lock:
            self._debounce_timer = None
        try:
            self._on_change()
        except Exception as e:
            logger.error("Error in file change callback: %s", e)


class _BufferEventHandler(FileSystemEventHandler):
    """Watchdog event handler forwarding file paths."""

    def __init__(self, callback: Callable[[Path], None]) -> None:
        super().__init__()
        self._callback = callback

    def _to_path(self, src_path: bytes | str) -> Path:
        """Convert src_path to Path, handling bytes or str."""
        if isinstance(src_path, bytes):
            return Path(src_path.decode("utf-8"))
        return Path(src_path)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._callback(self._to_path(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._callback(self._to_path(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory and hasattr(event, "dest_path"):
            self._callback(self._to_path(event.dest_path))
