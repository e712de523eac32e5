"""Serialized execution context for editor-state mutation.

Reader threads, the process exit watcher, the sync timer and the file
watcher never touch Session, the buffer registry or buffers directly. They
hand callables to an EditorQueue and exactly one consumer runs them, one at
a time, in the order they were scheduled.
"""

import logging
import queue
import threading
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

_STOP = object()


class EditorQueue:
    """Thread-safe single-consumer queue of callables.

    Example:
        editor_queue = EditorQueue()
        editor_queue.schedule(print, "hello")
        editor_queue.run_pending()
    """

    def __init__(self) -> None:
        """Initialize an empty queue."""
        self._queue: queue.SimpleQueue[Any] = queue.SimpleQueue()
        self._closed = threading.Event()

    @property
    def is_closed(self) -> bool:
        """Check if close() has been called."""
        return self._closed.is_set()

    def schedule(self, func: Callable[..., Any], *args: Any) -> None:
        """Schedule a callable to run on the consumer.

        Safe to call from any thread. Calls scheduled after close() are dropped.

        Args:
            func: The callable to run.
            *args: Positional arguments for the callable.
        """
        if self._closed.is_set():
            logger.debug("Queue closed, dropping %r", func)
            return
        self._queue.put((func, args))

    def run_pending(self) -> int:
        """Run every callable currently queued without blocking.

        Returns:
            Number of callables executed.
        """
        count = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return count
            if item is _STOP:
                return count
            self._run(item)
            count += 1

    def run_forever(self) -> None:
        """Run callables as they arrive until close() is called."""
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            self._run(item)

    def close(self) -> None:
        """Stop the consumer once the already-queued callables have run."""
        if self._closed.is_set():
            return
        self._closed.set()
        self._queue.put(_STOP)

    def _run(self, item: tuple[Callable[..., Any], tuple[Any, ...]]) -> None:
        func, args = item
        try:
            func(*args)
        except Exception:
            logger.exception("Error in scheduled callback %r", func)
