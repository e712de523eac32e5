"""Editor host integration."""

from apexlink.editor.base import BufferHandle, EditorHost
from apexlink.editor.files import FileBuffer, FileEditor

__all__ = [
    "BufferHandle",
    "EditorHost",
    "FileBuffer",
    "FileEditor",
]
