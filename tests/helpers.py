"""Tree-building helpers shared by the test modules."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Optional

# A fixed timestamp so trees built separately can share mtimes.
BASE_MTIME_NS = 1_700_000_000_000_000_000


def write_tree(root: Path, files: Dict[str, str], mtime_ns: Optional[int] = BASE_MTIME_NS) -> Path:
    """Create *files* (relative path -> text) under *root*.

    Every file gets *mtime_ns* as its modification time unless it is None.
    """
    root.mkdir(parents=True, exist_ok=True)
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        if mtime_ns is not None:
            os.utime(path, ns=(mtime_ns, mtime_ns))
    return root


def read_tree(root: Path) -> Dict[str, bytes]:
    """Map relative path -> content for every regular file under *root*."""
    contents: Dict[str, bytes] = {}
    for path in sorted(root.rglob("*")):
        if path.is_file() and not path.is_symlink():
            contents[path.relative_to(root).as_posix()] = path.read_bytes()
    return contents


def same_inode(a: Path, b: Path) -> bool:
    sa, sb = os.stat(a), os.stat(b)
    return (sa.st_dev, sa.st_ino) == (sb.st_dev, sb.st_ino)
