"""Ignore patterns for the source tree.

Ignore file format (``.hardsnapignore`` in the source root by default):
  - One glob per line, matched with ``fnmatch`` against the POSIX path
    relative to the source root.
  - Lines starting with ``#`` are comments.
  - A pattern without ``/`` also matches the entry's basename at any depth,
    so ``*.tmp`` ignores temporary files everywhere.
  - An ignored directory is pruned together with everything beneath it.
"""

from __future__ import annotations

import posixpath
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterable, List


class IgnoreSpec:
    """Evaluate ignore globs against relative paths."""

    def __init__(self, patterns: Iterable[str] = ()) -> None:
        self._patterns: List[str] = []
        self.extend(patterns)

    @classmethod
    def from_file(cls, path: Path) -> "IgnoreSpec":
        """Load an ignore file. A missing file yields an empty spec."""
        instance = cls()
        if not path.is_file():
            return instance
        with open(path, encoding="utf-8") as f:
            instance.extend(f)
        return instance

    def extend(self, patterns: Iterable[str]) -> None:
        for raw in patterns:
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            self._patterns.append(line.rstrip("/"))

    @property
    def patterns(self) -> List[str]:
        return list(self._patterns)

    def __bool__(self) -> bool:
        return bool(self._patterns)

    def is_ignored(self, rel_path: str) -> bool:
        """Return True if *rel_path* should be left out of the snapshot."""
        basename = posixpath.basename(rel_path)
        for pat in self._patterns:
            if fnmatchcase(rel_path, pat):
                return True
            if "/" not in pat and fnmatchcase(basename, pat):
                return True
        return False
