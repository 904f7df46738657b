"""Reference index — what the previous snapshot holds, keyed by relative path."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterator, Optional

from hardsnap.manifest import ManifestError, read_manifest
from hardsnap.walk.enumerator import walk_tree
from hardsnap.walk.models import AccessFailure, FileEntry

logger = logging.getLogger(__name__)


class ReferenceIndex:
    """Read-only mapping of relative path -> FileEntry inside the reference.

    Each entry's ``path`` is the absolute path inside the reference snapshot,
    which is what a hardlink will point at. Built once per run and then only
    read, so workers may share it without locking.
    """

    def __init__(self, root: Optional[Path] = None, entries: Optional[Dict[str, FileEntry]] = None) -> None:
        self._root = root
        self._entries: Dict[str, FileEntry] = dict(entries or {})
        self.from_manifest = False

    @classmethod
    def empty(cls) -> "ReferenceIndex":
        return cls()

    @classmethod
    def build(cls, root: Path, *, manifest_name: Optional[str] = None) -> "ReferenceIndex":
        """Index the snapshot at *root*.

        When *manifest_name* is given and a readable manifest exists at the
        snapshot root, entries come from it instead of a live walk.

        Raises AccessError if *root* cannot be read.
        """
        root = Path(root)
        if manifest_name:
            manifest_path = root / manifest_name
            if manifest_path.is_file():
                try:
                    index = cls._from_manifest(root, manifest_path)
                except ManifestError as exc:
                    logger.warning("%s; indexing reference by walking it instead", exc)
                else:
                    logger.info("Reference index loaded from manifest (%d entries)", len(index))
                    return index

        entries: Dict[str, FileEntry] = {}
        exclude = (manifest_name,) if manifest_name else ()
        for item in walk_tree(root, exclude=exclude):
            if isinstance(item, FileEntry):
                entries[item.rel_path] = item
            elif isinstance(item, AccessFailure):
                logger.warning("reference entry unreadable, will copy instead: %s (%s)", item.rel_path, item.reason)
        logger.info("Reference index built from %s (%d entries)", root, len(entries))
        return cls(root, entries)

    @classmethod
    def _from_manifest(cls, root: Path, manifest_path: Path) -> "ReferenceIndex":
        entries: Dict[str, FileEntry] = {}
        for rec in read_manifest(manifest_path):
            entries[rec.rel_path] = FileEntry(
                rel_path=rec.rel_path,
                path=root.joinpath(*rec.rel_path.split("/")),
                size=rec.size,
                mtime_ns=rec.mtime_ns,
                file_type=rec.file_type,
            )
        index = cls(root, entries)
        index.from_manifest = True
        return index

    @property
    def root(self) -> Optional[Path]:
        return self._root

    def get(self, rel_path: str) -> Optional[FileEntry]:
        return self._entries.get(rel_path)

    def __contains__(self, rel_path: object) -> bool:
        return rel_path in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)
