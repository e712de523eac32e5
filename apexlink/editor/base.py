"""Editor host interface used by the sync core."""

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

BufferHandle = int

ChangeCallback = Callable[[BufferHandle], None]
DetachCallback = Callable[[BufferHandle], None]


class EditorHost(ABC):
    """The editor as seen by ApexLink.

    All methods are called from the EditorQueue consumer only.
    """

    @abstractmethod
    def current_buffer(self) -> BufferHandle | None:
        """Get the buffer the user is working in, if any."""
        pass

    @abstractmethod
    def buffer_name(self, handle: BufferHandle) -> str:
        """Get the absolute file path of a buffer, or "" if it has none."""
        pass

    @abstractmethod
    def is_valid(self, handle: BufferHandle) -> bool:
        """Check if the handle still refers to an open buffer."""
        pass

    @abstractmethod
    def get_lines(self, handle: BufferHandle) -> list[str]:
        """Get the full content of a buffer as lines."""
        pass

    @abstractmethod
    def set_lines(self, handle: BufferHandle, lines: list[str]) -> None:
        """Replace the full content of a buffer.

        Attached change callbacks fire synchronously before this returns.
        """
        pass

    @abstractmethod
    def attach(
        self,
        handle: BufferHandle,
        on_change: ChangeCallback,
        on_detach: DetachCallback,
    ) -> bool:
        """Observe content changes of a buffer.

        Returns:
            True if the observer was attached.
        """
        pass

    @abstractmethod
    def detach(self, handle: BufferHandle) -> bool:
        """Remove the observer of a buffer, firing its on_detach.

        Returns:
            True if an observer was attached.
        """
        pass

    @abstractmethod
    def write_all(self) -> int:
        """Force-write every modified buffer without firing change callbacks.

        Returns:
            Number of buffers written.
        """
        pass

    @abstractmethod
    def check_time(self, reload_modified: bool = False) -> int:
        """Reload buffers whose files changed outside the editor.

        Args:
            reload_modified: Also reload buffers with unsaved changes.

        Returns:
            Number of buffers reloaded.
        """
        pass

    @abstractmethod
    def set_clipboard(self, text: str) -> None:
        """Put text on the system clipboard."""
        pass

    @abstractmethod
    def prompt(self, text: str, callback: Callable[[str | None], None]) -> None:
        """Ask the user for input without blocking event handling.

        The callback receives the answer, or None if the prompt was cancelled.
        """
        pass

    def host_notify(self, name: str, payload: dict[str, Any]) -> None:
        """Forward a structured notification to a richer host UI, if attached."""
        return None
