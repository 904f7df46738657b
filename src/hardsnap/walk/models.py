"""Data models for tree enumeration."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class FileType(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"


@dataclass(frozen=True, slots=True)
class FileEntry:
    """A file, directory or symlink found under a tree root.

    ``rel_path`` is POSIX-style and relative to the root; ``path`` is absolute.
    """

    rel_path: str
    path: Path
    size: int
    mtime_ns: int
    file_type: FileType

    @property
    def parent_rel(self) -> str:
        """Relative path of the containing directory ("" for the root)."""
        return posixpath.dirname(self.rel_path)

    @property
    def is_file(self) -> bool:
        return self.file_type is FileType.FILE

    @property
    def is_dir(self) -> bool:
        return self.file_type is FileType.DIRECTORY

    @property
    def is_symlink(self) -> bool:
        return self.file_type is FileType.SYMLINK


@dataclass(frozen=True)
class AccessFailure:
    """Record of an entry that could not be read during the walk."""

    rel_path: str
    path: Path
    reason: str


@dataclass(frozen=True)
class EntrySkipped:
    """Record of an entry deliberately left out of the walk."""

    rel_path: str
    reason: str  # 'ignored', 'unsupported type'
