"""Snapshot writer — realizes decisions inside the staging directory.

Links that cannot be created (other volume, no hardlink support, reference
gone) fall back to a full copy. Copies go through a uniquely named
``.hardsnap-part`` file that is renamed into place only after its size was
verified, so a file is either complete or absent.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from hardsnap.detect.decisions import Copy, CopyDecision, Link, Skip
from hardsnap.errors import CopyError, LinkError
from hardsnap.walk.models import FileEntry, FileType

logger = logging.getLogger(__name__)

PART_SUFFIX = ".hardsnap-part"
PART_PREFIX_CHARS = 100  # keeps temporary names within NAME_MAX


@dataclass(frozen=True)
class Written:
    """What the writer did for one entry."""

    how: str  # 'link' | 'copy' | 'dir' | 'symlink'
    bytes_copied: int = 0
    fell_back: bool = False
    link_error: Optional[str] = None


def _reason(exc: OSError) -> str:
    return exc.strerror or str(exc)


class SnapshotWriter:
    """Writes entries beneath *root* (the staging directory)."""

    def __init__(self, root: Path, *, chunk_size: int = 1024 * 1024) -> None:
        self.root = Path(root)
        self.chunk_size = chunk_size
        self._root_dev = os.stat(self.root).st_dev

    def dest_path(self, dest_rel: str) -> Path:
        return self.root.joinpath(*dest_rel.split("/"))

    # ---- dispatch ----

    def write(self, decision: CopyDecision, dest: Path) -> Written:
        """Realize *decision* at *dest*. Raises CopyError on failure."""
        if isinstance(decision, Link):
            try:
                self.link(decision.reference, dest)
            except LinkError as exc:
                logger.warning("link failed for %s (%s); copying instead", dest, exc)
                copied = self.copy(decision.entry, dest)
                return Written("copy", bytes_copied=copied, fell_back=True, link_error=str(exc))
            return Written("link")

        if isinstance(decision, Copy):
            return Written("copy", bytes_copied=self.copy(decision.entry, dest, source=decision.source))

        if isinstance(decision, Skip):
            entry = decision.entry
            if entry.file_type is FileType.DIRECTORY:
                self.make_directory(dest)
                return Written("dir")
            if entry.file_type is FileType.SYMLINK:
                self.make_symlink(entry, dest)
                return Written("symlink")
            raise CopyError(f"cannot place {entry.file_type.value} entry: {decision.reason}")

        raise TypeError(f"unknown decision: {decision!r}")

    # ---- primitives ----

    def link(self, reference: Path, dest: Path) -> None:
        """Hardlink *dest* to *reference*. Raises LinkError."""
        try:
            ref_dev = os.stat(reference).st_dev
        except OSError as exc:
            raise LinkError(f"reference unavailable: {_reason(exc)}") from exc
        if ref_dev != self._root_dev:
            raise LinkError("reference is on a different volume")
        try:
            os.link(reference, dest)
        except OSError as exc:
            raise LinkError(f"cannot create hardlink: {_reason(exc)}") from exc
        logger.debug("LINK %s", dest)

    def copy(self, entry: FileEntry, dest: Path, *, source: Optional[Path] = None) -> int:
        """Copy *entry*'s bytes to *dest*, preserving timestamps and mode.

        Returns the number of bytes written. Raises CopyError on I/O failure,
        size mismatch, or when *dest* already exists.
        """
        source = source or entry.path
        if os.path.lexists(dest):
            raise CopyError("destination already exists")
        try:
            fd, part_name = tempfile.mkstemp(
                prefix=f".{dest.name[:PART_PREFIX_CHARS]}.", suffix=PART_SUFFIX, dir=dest.parent
            )
        except OSError as exc:
            raise CopyError(f"copy failed: {_reason(exc)}") from exc
        part = Path(part_name)
        try:
            with os.fdopen(fd, "wb") as dst, open(source, "rb") as src:
                shutil.copyfileobj(src, dst, self.chunk_size)
            shutil.copystat(source, part)
            written = os.stat(part).st_size
            if written != entry.size:
                raise CopyError(f"size mismatch: expected {entry.size} bytes, wrote {written}")
            os.rename(part, dest)
        except OSError as exc:
            self._discard(part)
            raise CopyError(f"copy failed: {_reason(exc)}") from exc
        except CopyError:
            self._discard(part)
            raise
        logger.debug("COPY %s (%d bytes)", dest, written)
        return written

    def make_directory(self, dest: Path) -> None:
        try:
            os.makedirs(dest, exist_ok=True)
        except OSError as exc:
            raise CopyError(f"cannot create directory: {_reason(exc)}") from exc
        logger.debug("DIR  %s", dest)

    def make_symlink(self, entry: FileEntry, dest: Path) -> None:
        """Recreate *entry* as a symlink with the same target string."""
        try:
            target = os.readlink(entry.path)
            os.symlink(target, dest)
        except OSError as exc:
            raise CopyError(f"cannot recreate symlink: {_reason(exc)}") from exc
        logger.debug("SYM  %s -> %s", dest, target)

    @staticmethod
    def _discard(part: Path) -> None:
        try:
            os.unlink(part)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("could not remove partial file %s: %s", part, _reason(exc))
