"""Registry of buffers under synchronization and the remote-apply guard."""

import os
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from apexlink.editor.base import BufferHandle
from apexlink.exceptions import RemoteApplyError


@dataclass
class SyncedBuffer:
    """A buffer whose content is mirrored to the daemon."""

    handle: BufferHandle
    path: str
    attached: bool = True

    @property
    def file_name(self) -> str:
        """Tail of the path, for display."""
        return os.path.basename(self.path)


class BufferSyncRegistry:
    """Single source of truth for "is this buffer under sync"."""

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._buffers: dict[BufferHandle, SyncedBuffer] = {}

    def __contains__(self, handle: object) -> bool:
        return handle in self._buffers

    def __len__(self) -> int:
        return len(self._buffers)

    def __iter__(self) -> Iterator[SyncedBuffer]:
        return iter(list(self._buffers.values()))

    def get(self, handle: BufferHandle) -> SyncedBuffer | None:
        """Get the entry for a buffer, if registered."""
        return self._buffers.get(handle)

    def register(self, handle: BufferHandle, path: str) -> SyncedBuffer:
        """Add a buffer.

        Raises:
            ValueError: If the buffer is already registered or the path is empty.
        """
        if not path:
            raise ValueError("Cannot sync a buffer without a file path")
        if handle in self._buffers:
            raise ValueError(f"Buffer {handle} is already registered")
        entry = SyncedBuffer(handle=handle, path=path)
        self._buffers[handle] = entry
        return entry

    def remove(self, handle: BufferHandle) -> SyncedBuffer | None:
        """Remove a buffer.

        Returns:
            The removed entry, or None if it was not registered.
        """
        return self._buffers.pop(handle, None)

    def find_by_path(self, path: str) -> list[SyncedBuffer]:
        """Get the entries mirroring a file path."""
        return [entry for entry in self._buffers.values() if entry.path == path]

    def file_names(self) -> list[str]:
        """Get the file names of all registered buffers."""
        return [entry.file_name for entry in self._buffers.values()]


class RemoteApplyGuard:
    """Flag raised while one inbound content replacement is being applied.

    While active, buffer mutations are not forwarded to the daemon.
    """

    def __init__(self) -> None:
        """Initialize the guard as inactive."""
        self._active = False

    @property
    def active(self) -> bool:
        """Check if a remote apply is in progress."""
        return self._active

    @contextmanager
    def applying(self) -> Iterator[None]:
        """Hold the guard for the duration of the block.

        Raises:
            RemoteApplyError: If a remote apply is already in progress.
        """
        if self._active:
            raise RemoteApplyError("Remote apply already in progress")
        self._active = True
        try:
            yield
        finally:
            self._active = False
