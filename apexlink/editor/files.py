"""Headless editor host whose buffers mirror files on disk."""

import itertools
import logging
import shutil
import subprocess
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from apexlink.editor.base import BufferHandle, ChangeCallback, DetachCallback, EditorHost

logger = logging.getLogger(__name__)

# Tried in order when no clipboard callable is injected
CLIPBOARD_COMMANDS = [
    ["pbcopy"],
    ["wl-copy"],
    ["xclip", "-selection", "clipboard"],
    ["xsel", "--clipboard", "--input"],
]


@dataclass
class _Observer:
    on_change: ChangeCallback
    on_detach: DetachCallback


@dataclass
class FileBuffer:
    """One open buffer."""

    path: str
    lines: list[str] = field(default_factory=lambda: [""])
    modified: bool = False
    mtime_ns: int | None = None
    observer: _Observer | None = None

    @property
    def text(self) -> str:
        """Buffer content joined with newlines."""
        return "\n".join(self.lines)


def read_lines(path: Path) -> list[str]:
    """Read a file as editor lines (a final newline does not add a line)."""
    text = path.read_text(encoding="utf-8")
    lines = text.split("\n")
    if len(lines) > 1 and lines[-1] == "":
        lines.pop()
    return lines


def _mtime_ns(path: Path) -> int | None:
    try:
        return path.stat().st_mtime_ns
    except OSError:
        return None


def system_clipboard(text: str) -> bool:
    """Copy text with the first available clipboard tool.

    Returns:
        True if a tool accepted the text.
    """
    for command in CLIPBOARD_COMMANDS:
        if shutil.which(command[0]) is None:
            continue
        try:
            subprocess.run(command, input=text.encode("utf-8"), check=True, timeout=2)
            return True
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug("Clipboard command %s failed: %s", command[0], e)
    return False


class FileEditor(EditorHost):
    """Editor host for terminal sessions.

    Buffers are loaded from files, local edits go through edit(), and
    write_all()/check_time() synchronize them with the disk.
    """

    def __init__(
        self,
        clipboard: Callable[[str], Any] | None = None,
        host_channel: Callable[[str, dict[str, Any]], None] | None = None,
    ) -> None:
        """Initialize the editor.

        Args:
            clipboard: Receives text copied to the clipboard. Defaults to the
                system clipboard tools.
            host_channel: Receives structured host notifications, if a richer
                UI is attached.
        """
        self._buffers: dict[BufferHandle, FileBuffer] = {}
        self._handles = itertools.count(1)
        self._current: BufferHandle | None = None
        self._clipboard = clipboard
        self._host_channel = host_channel
        self._pending_prompt: Callable[[str | None], None] | None = None
        self._prompt_text = ""

    # Buffer management

    def open(self, path: str | Path) -> BufferHandle:
        """Open a file in a buffer, reusing an existing buffer for the same path.

        Args:
            path: File to open. It does not need to exist yet.

        Returns:
            Handle of the buffer, which becomes the current buffer.
        """
        resolved = Path(path).expanduser().resolve()
        for handle, buffer in self._buffers.items():
            if buffer.path == str(resolved):
                self._current = handle
                return handle

        buffer = FileBuffer(path=str(resolved))
        if resolved.is_file():
            buffer.lines = read_lines(resolved)
            buffer.mtime_ns = _mtime_ns(resolved)

        handle = next(self._handles)
        self._buffers[handle] = buffer
        self._current = handle
        logger.debug("Opened buffer %d: %s", handle, resolved)
        return handle

    def new_buffer(self) -> BufferHandle:
        """Create an unnamed scratch buffer."""
        handle = next(self._handles)
        self._buffers[handle] = FileBuffer(path="")
        self._current = handle
        return handle

    def close(self, handle: BufferHandle) -> None:
        """Close a buffer, detaching its observer first."""
        if handle not in self._buffers:
            return
        self.detach(handle)
        del self._buffers[handle]
        if self._current == handle:
            self._current = next(iter(self._buffers), None)

    def set_current(self, handle: BufferHandle) -> None:
        """Make a buffer the current one."""
        if handle not in self._buffers:
            raise KeyError(f"No such buffer: {handle}")
        self._current = handle

    def find(self, path: str | Path) -> BufferHandle | None:
        """Get the handle of the buffer showing a file, if open."""
        resolved = str(Path(path).expanduser().resolve())
        for handle, buffer in self._buffers.items():
            if buffer.path == resolved:
                return handle
        return None

    def buffers(self) -> dict[BufferHandle, FileBuffer]:
        """Get a snapshot of the open buffers."""
        return dict(self._buffers)

    def edit(self, handle: BufferHandle, lines: list[str]) -> None:
        """Apply a local edit replacing the buffer content."""
        self.set_lines(handle, lines)

    # EditorHost

    def current_buffer(self) -> BufferHandle | None:
        return self._current

    def buffer_name(self, handle: BufferHandle) -> str:
        return self._buffers[handle].path

    def is_valid(self, handle: BufferHandle) -> bool:
        return handle in self._buffers

    def get_lines(self, handle: BufferHandle) -> list[str]:
        return list(self._buffers[handle].lines)

    def set_lines(self, handle: BufferHandle, lines: list[str]) -> None:
        buffer = self._buffers[handle]
        buffer.lines = list(lines) or [""]
        buffer.modified = True
        self._fire_change(handle)

    def attach(
        self,
        handle: BufferHandle,
        on_change: ChangeCallback,
        on_detach: DetachCallback,
    ) -> bool:
        buffer = self._buffers.get(handle)
        if buffer is None or buffer.observer is not None:
            return False
        buffer.observer = _Observer(on_change, on_detach)
        return True

    def detach(self, handle: BufferHandle) -> bool:
        buffer = self._buffers.get(handle)
        if buffer is None or buffer.observer is None:
            return False
        observer = buffer.observer
        buffer.observer = None
        observer.on_detach(handle)
        return True

    def write_all(self) -> int:
        written = 0
        for handle, buffer in self._buffers.items():
            if not buffer.modified or not buffer.path:
                continue
            path = Path(buffer.path)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(buffer.text + "\n", encoding="utf-8")
            buffer.modified = False
            buffer.mtime_ns = _mtime_ns(path)
            written += 1
            logger.debug("Wrote buffer %d: %s", handle, path)
        return written

    def check_time(self, reload_modified: bool = False) -> int:
        reloaded = 0
        for handle, buffer in list(self._buffers.items()):
            if not buffer.path:
                continue
            path = Path(buffer.path)
            mtime = _mtime_ns(path)
            if mtime is None or mtime == buffer.mtime_ns:
                continue
            if buffer.modified and not reload_modified:
                logger.info("File changed on disk, keeping unsaved buffer: %s", path)
                buffer.mtime_ns = mtime
                continue

            buffer.lines = read_lines(path)
            buffer.modified = False
            buffer.mtime_ns = mtime
            reloaded += 1
            logger.debug("Reloaded buffer %d: %s", handle, path)
            self._fire_change(handle)
        return reloaded

    def set_clipboard(self, text: str) -> None:
        if self._clipboard is not None:
            self._clipboard(text)
        elif not system_clipboard(text):
            logger.debug("No clipboard tool available")

    def prompt(self, text: str, callback: Callable[[str | None], None]) -> None:
        if self._pending_prompt is not None:
            self._pending_prompt(None)
        self._pending_prompt = callback
        self._prompt_text = text
        logger.debug("Prompt pending: %s", text)

    def answer_prompt(self, answer: str | None) -> bool:
        """Deliver user input to the pending prompt.

        Returns:
            True if a prompt was waiting for it.
        """
        callback = self._pending_prompt
        if callback is None:
            return False
        self._pending_prompt = None
        callback(answer)
        return True

    @property
    def pending_prompt(self) -> str | None:
        """Get the text of the prompt waiting for input, if any."""
        return self._prompt_text if self._pending_prompt is not None else None

    def host_notify(self, name: str, payload: dict[str, Any]) -> None:
        if self._host_channel is not None:
            self._host_channel(name, payload)

    def _fire_change(self, handle: BufferHandle) -> None:
        observer = self._buffers[handle].observer
        if observer is not None:
            observer.on_change(handle)
