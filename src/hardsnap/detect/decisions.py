"""Per-file decisions produced by the change detector."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Union

from hardsnap.walk.models import FileEntry


@dataclass(frozen=True)
class Link:
    """Unchanged file: hardlink to the reference snapshot's copy."""

    entry: FileEntry
    reference: Path


@dataclass(frozen=True)
class Copy:
    """New or changed file: copy the bytes from *source*."""

    entry: FileEntry
    source: Path


@dataclass(frozen=True)
class Skip:
    """No content decision (directories, symlinks)."""

    entry: FileEntry
    reason: str


CopyDecision = Union[Link, Copy, Skip]
