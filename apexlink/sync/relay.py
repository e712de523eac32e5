"""Mediates between editor buffer changes and the daemon.

Synchronization is full-content: every local change sends the whole buffer
text and the daemon's CRDT layer works out the delta. Inbound content is
applied under the RemoteApplyGuard so it is not echoed back.
"""

import logging

from apexlink.daemon.protocol import BufferClose, BufferOpen, BufferSet, BufferSync
from apexlink.daemon.transport import ProtocolTransport
from apexlink.editor.base import BufferHandle, EditorHost
from apexlink.notify import Notifier
from apexlink.session import Session
from apexlink.sync.registry import BufferSyncRegistry, RemoteApplyGuard

logger = logging.getLogger(__name__)


def buffer_text(editor: EditorHost, handle: BufferHandle) -> str:
    """Join a buffer's lines into its full text."""
    return "\n".join(editor.get_lines(handle))


class ChangeRelay:
    """Syncs, unsyncs and applies remote content to buffers."""

    def __init__(
        self,
        editor: EditorHost,
        session: Session,
        registry: BufferSyncRegistry,
        guard: RemoteApplyGuard,
        transport: ProtocolTransport,
        notifier: Notifier,
    ) -> None:
        self._editor = editor
        self._session = session
        self._registry = registry
        self._guard = guard
        self._transport = transport
        self._notifier = notifier

    def sync_buffer(self, handle: BufferHandle | None = None) -> bool:
        """Start synchronizing a buffer with the room.

        Args:
            handle: Buffer to sync. Defaults to the current buffer.

        Returns:
            True if the buffer is now registered.
        """
        if handle is None:
            handle = self._editor.current_buffer()

        if not self._session.in_room:
            self._notifier.warning("Not in a room. Create or join one first.")
            return False

        if handle is None or not self._editor.is_valid(handle):
            self._notifier.warning("No buffer to sync")
            return False

        path = self._editor.buffer_name(handle)
        if not path:
            self._notifier.warning("Buffer has no file path")
            return False

        entry = self._registry.get(handle)
        if entry is not None:
            self._notifier.info(f"Buffer already syncing: {entry.file_name}")
            return False

        content = buffer_text(self._editor, handle)
        self._transport.send(BufferOpen(path=path))
        self._transport.send(BufferSet(path=path, content=content))

        entry = self._registry.register(handle, path)
        if not self._editor.attach(handle, self._on_change, self._on_detach):
            self._registry.remove(handle)
            self._notifier.error("Failed to attach to buffer")
            return False

        self._notifier.info(f"Syncing: {entry.file_name}")
        # Peers with newer content answer with buf_changed
        self._transport.send(BufferSync(path=path))
        return True

    def unsync_buffer(self, handle: BufferHandle | None = None) -> bool:
        """Stop synchronizing a buffer.

        Args:
            handle: Buffer to unsync. Defaults to the current buffer.

        Returns:
            True if the buffer was registered.
        """
        if handle is None:
            handle = self._editor.current_buffer()

        entry = self._registry.get(handle) if handle is not None else None
        if handle is None or entry is None:
            self._notifier.info("Buffer not being synced")
            return False

        # Detaching fires _on_detach, which sends buf_close
        if not self._editor.detach(handle):
            self._on_detach(handle)
        self._registry.remove(handle)

        self._notifier.info(f"Stopped syncing: {entry.file_name}")
        return True

    def list_synced(self) -> list[str]:
        """Report the file names of all synced buffers."""
        names = self._registry.file_names()
        if not names:
            self._notifier.info("No buffers being synced")
        else:
            self._notifier.info("Syncing: " + ", ".join(names))
        return names

    def apply_remote(self, path: str, content: str) -> bool:
        """Replace the content of the buffer mirroring path.

        Args:
            path: File path the daemon reported.
            content: Full new text.

        Returns:
            True if a buffer was updated.
        """
        for entry in self._registry.find_by_path(path):
            if not self._editor.is_valid(entry.handle):
                continue
            with self._guard.applying():
                self._editor.set_lines(entry.handle, content.split("\n"))
            logger.debug("Applied remote content to %s", path)
            return True

        logger.debug("No synced buffer for remote change to %s", path)
        return False

    def _on_change(self, handle: BufferHandle) -> None:
        if self._guard.active or not self._session.in_room:
            return

        entry = self._registry.get(handle)
        if entry is None:
            return
        self._transport.send(BufferSet(path=entry.path, content=buffer_text(self._editor, handle)))

    def _on_detach(self, handle: BufferHandle) -> None:
        entry = self._registry.remove(handle)
        if entry is None:
            return
        entry.attached = False
        self._transport.send(BufferClose(path=entry.path))
