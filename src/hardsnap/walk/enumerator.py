"""Directory tree enumerator.

Yields FileEntry values for every file, directory and symlink beneath a root
(the root itself is not yielded), interleaved with AccessFailure and
EntrySkipped records. A directory is always yielded before any of its
children, and siblings come out in sorted name order so two walks of the same
tree produce the same sequence.

Symlinks are never followed. Unreadable entries are reported and left out;
only an unreadable root raises.
"""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path
from typing import Generator, List, Optional, Tuple, Union

from hardsnap.errors import AccessError
from hardsnap.walk.ignore import IgnoreSpec
from hardsnap.walk.models import AccessFailure, EntrySkipped, FileEntry, FileType

logger = logging.getLogger(__name__)

WalkItem = Union[FileEntry, AccessFailure, EntrySkipped]


def _file_type(mode: int) -> Optional[FileType]:
    if stat.S_ISLNK(mode):
        return FileType.SYMLINK
    if stat.S_ISDIR(mode):
        return FileType.DIRECTORY
    if stat.S_ISREG(mode):
        return FileType.FILE
    return None


def _join(parent_rel: str, name: str) -> str:
    return f"{parent_rel}/{name}" if parent_rel else name


def _check_root(root: Path) -> None:
    try:
        st = os.stat(root)
    except OSError as exc:
        raise AccessError(f"cannot access root {root}: {exc.strerror or exc}", root) from exc
    if not stat.S_ISDIR(st.st_mode):
        raise AccessError(f"root is not a directory: {root}", root)
    if not os.access(root, os.R_OK | os.X_OK):
        raise AccessError(f"root is not readable: {root}", root)


def _list_dir(path: Path) -> List[os.DirEntry]:
    with os.scandir(path) as it:
        return sorted(it, key=lambda e: e.name)


def walk_tree(
    root: Path,
    ignore: Optional[IgnoreSpec] = None,
    *,
    exclude: Tuple[str, ...] = (),
) -> Generator[WalkItem, None, None]:
    """Walk *root* and yield FileEntry / AccessFailure / EntrySkipped items.

    *exclude* lists relative paths left out silently (no EntrySkipped record),
    e.g. a snapshot's own manifest file.

    Raises AccessError immediately if *root* cannot be listed.
    """
    root = Path(root)
    _check_root(root)
    try:
        top = _list_dir(root)
    except OSError as exc:
        raise AccessError(f"cannot list root {root}: {exc.strerror or exc}", root) from exc

    # Stack of (directory listing, relative path of that directory). Children
    # of a directory are listed only after the directory itself was yielded.
    pending: List[Tuple[List[os.DirEntry], str]] = [(top, "")]

    while pending:
        listing, parent_rel = pending.pop()
        subdirs: List[Tuple[Path, str]] = []

        for dirent in listing:
            rel_path = _join(parent_rel, dirent.name)
            if rel_path in exclude:
                continue
            if ignore is not None and ignore.is_ignored(rel_path):
                logger.debug("skip %s (ignored)", rel_path)
                yield EntrySkipped(rel_path=rel_path, reason="ignored")
                continue

            path = Path(dirent.path)
            try:
                st = dirent.stat(follow_symlinks=False)
            except OSError as exc:
                yield AccessFailure(rel_path, path, f"cannot stat: {exc.strerror or exc}")
                continue

            file_type = _file_type(st.st_mode)
            if file_type is None:
                yield EntrySkipped(rel_path=rel_path, reason="unsupported type")
                continue

            yield FileEntry(
                rel_path=rel_path,
                path=path,
                size=st.st_size if file_type is FileType.FILE else 0,
                mtime_ns=st.st_mtime_ns,
                file_type=file_type,
            )
            if file_type is FileType.DIRECTORY:
                subdirs.append((path, rel_path))

        # Reversed so the first sibling is expanded first.
        for path, rel_path in reversed(subdirs):
            try:
                children = _list_dir(path)
            except OSError as exc:
                yield AccessFailure(rel_path, path, f"cannot list directory: {exc.strerror or exc}")
                continue
            pending.append((children, rel_path))
