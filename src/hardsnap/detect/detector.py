"""Change detection — decide Link / Copy / Skip for each source entry.

A file whose type, size and modification time all match its counterpart in
the reference snapshot is assumed unchanged and linked. This relies on the
reference snapshot's files never being modified by anything but hardsnap;
that precondition is not verified. Anything that differs is copied.

With ``mode="checksum"`` matching metadata is additionally confirmed by
comparing content digests, at the cost of reading both files.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Optional

from hardsnap.detect.decisions import Copy, CopyDecision, Link, Skip
from hardsnap.detect.index import ReferenceIndex
from hardsnap.walk.models import FileEntry, FileType

logger = logging.getLogger(__name__)

_HASH_CHUNK = 1024 * 1024


def file_digest(path: Path, algorithm: str = "sha256") -> str:
    """Return the hex digest of the file at *path*. Raises OSError."""
    hash_obj = hashlib.new(algorithm)
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(_HASH_CHUNK), b""):
            hash_obj.update(chunk)
    return hash_obj.hexdigest()


class ChangeDetector:
    """Stateless decision function over a shared, read-only ReferenceIndex."""

    def __init__(
        self,
        index: Optional[ReferenceIndex] = None,
        *,
        mode: str = "metadata",
        hash_algorithm: str = "sha256",
    ) -> None:
        self.index = index if index is not None else ReferenceIndex.empty()
        self.mode = mode
        self.hash_algorithm = hash_algorithm

    def decide(self, entry: FileEntry, dest_rel: Optional[str] = None) -> CopyDecision:
        """Return the decision for *entry*.

        *dest_rel* is the path the entry will have inside the snapshot (it
        differs from ``entry.rel_path`` only when names are sanitized); the
        reference is looked up by it.
        """
        if entry.file_type is FileType.DIRECTORY:
            return Skip(entry, "directory")
        if entry.file_type is FileType.SYMLINK:
            return Skip(entry, "symlink")

        ref = self.index.get(dest_rel if dest_rel is not None else entry.rel_path)
        if ref is None:
            return Copy(entry, entry.path)
        if ref.file_type is not entry.file_type:
            return Copy(entry, entry.path)
        if ref.size != entry.size or ref.mtime_ns != entry.mtime_ns:
            return Copy(entry, entry.path)

        if self.mode == "checksum" and not self._same_content(entry.path, ref.path):
            return Copy(entry, entry.path)
        return Link(entry, ref.path)

    def _same_content(self, source: Path, reference: Path) -> bool:
        try:
            return file_digest(source, self.hash_algorithm) == file_digest(reference, self.hash_algorithm)
        except OSError as exc:
            logger.debug("digest failed for %s: %s; treating as changed", source, exc)
            return False


def decide(entry: FileEntry, index: Optional[ReferenceIndex] = None) -> CopyDecision:
    """Metadata-only decision for *entry* against *index*."""
    return ChangeDetector(index).decide(entry)
