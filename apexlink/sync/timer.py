"""Periodic auto-save and auto-reload while a room is active."""

import logging
import threading

from apexlink.config import ApexLinkConfig
from apexlink.editor.base import EditorHost
from apexlink.scheduler import EditorQueue
from apexlink.session import Session

logger = logging.getLogger(__name__)


class SyncTimer:
    """Repeating timer whose ticks run on the EditorQueue.

    Each tick force-writes modified buffers (auto_save) and reloads buffers
    changed on disk (auto_reload). A failure in one step does not skip the
    other.
    """

    def __init__(
        self,
        config: ApexLinkConfig,
        session: Session,
        editor: EditorHost,
        editor_queue: EditorQueue,
    ) -> None:
        """Initialize a stopped timer.

        Args:
            config: Provides auto_save, auto_reload and sync_interval (ms).
            session: Ticks do nothing unless a room is active.
            editor: Editor whose buffers are saved and reloaded.
            editor_queue: Where ticks are handed off.
        """
        self._config = config
        self._session = session
        self._editor = editor
        self._queue = editor_queue
        self._timer: threading.Timer | None = None
        self._lock = threading.Lock()
        self._generation = 0

    @property
    def is_active(self) -> bool:
        """Check if the timer is running."""
        return self._timer is not None

    @property
    def interval(self) -> float:
        """Tick interval in seconds."""
        return self._config.sync_interval / 1000

    def start(self) -> None:
        """Start ticking. No-op if already running."""
        with self._lock:
            if self._timer is not None:
                return
            self._generation += 1
            self._arm(self._generation)
        logger.debug("Sync timer started (%d ms)", self._config.sync_interval)

    def stop(self) -> None:
        """Stop ticking. Safe to call when not running."""
        with self._lock:
            if self._timer is None:
                return
            self._timer.cancel()
            self._timer = None
            self._generation += 1
        logger.debug("Sync timer stopped")

    def tick(self) -> None:
        """Run one auto-save/auto-reload pass."""
        if not self._session.in_room:
            return

        if self._config.auto_save:
            try:
                self._editor.write_all()
            except Exception as e:
                logger.debug("Auto-save failed: %s", e)

        if self._config.auto_reload:
            try:
                self._editor.check_time(reload_modified=True)
            except Exception as e:
                logger.debug("Auto-reload failed: %s", e)

    def _arm(self, generation: int) -> None:
        timer = threading.Timer(self.interval, self._fire, args=(generation,))
        timer.daemon = True
        timer.name = "apexlink-sync-timer"
        self._timer = timer
        timer.start()

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._queue.schedule(self._tick_if_current, generation)
            self._arm(generation)

    def _tick_if_current(self, generation: int) -> None:
        if generation == self._generation:
            self.tick()
