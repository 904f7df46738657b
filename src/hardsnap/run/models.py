"""Run result models and the accumulator that builds them."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from hardsnap.manifest import ManifestRecord
from hardsnap.walk.models import FileEntry


class RunState(str, Enum):
    INITIALIZING = "initializing"
    WALKING = "walking"
    PROCESSING = "processing"
    PUBLISHING = "publishing"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Outcome(str, Enum):
    LINKED = "linked"
    COPIED = "copied"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class FileOutcome:
    """Terminal result for one entry, returned by a worker."""

    entry: FileEntry
    dest_rel: str
    outcome: Outcome
    bytes_copied: int = 0
    fell_back: bool = False  # a link was attempted but the file was copied
    error_kind: Optional[str] = None
    message: Optional[str] = None


@dataclass(frozen=True)
class FileFailure:
    path: str
    error_kind: str  # 'AccessError' | 'CopyError'
    message: str


@dataclass
class RunResult:
    """Complete result of a backup run."""

    linked: int = 0
    copied: int = 0
    failed: int = 0
    bytes_copied: int = 0
    directories: int = 0
    symlinks: int = 0
    link_fallbacks: int = 0
    cancelled: int = 0  # entries abandoned because the run was cancelled
    failures: List[FileFailure] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    state: RunState = RunState.INITIALIZING
    source: Optional[Path] = None
    reference: Optional[Path] = None
    snapshot: Optional[Path] = None  # set once published
    dry_run: bool = False
    duration_ms: float = 0.0

    @property
    def total_files(self) -> int:
        return self.linked + self.copied + self.failed

    @property
    def published(self) -> bool:
        return self.snapshot is not None

    @property
    def ok(self) -> bool:
        """True when the run completed and every entry succeeded."""
        return self.state is RunState.DONE and self.failed == 0


_HOW = {
    Outcome.LINKED: "link",
    Outcome.COPIED: "copy",
    Outcome.DIRECTORY: "dir",
    Outcome.SYMLINK: "symlink",
}


class ResultAccumulator:
    """The single place where run results are mutated.

    Workers never touch the RunResult; they return FileOutcome values which
    are recorded here under one lock.
    """

    def __init__(self, result: Optional[RunResult] = None) -> None:
        self._lock = threading.Lock()
        self._result = result if result is not None else RunResult()
        self._records: Dict[str, ManifestRecord] = {}

    def record(self, outcome: FileOutcome) -> None:
        with self._lock:
            r = self._result
            kind = outcome.outcome
            if kind is Outcome.LINKED:
                r.linked += 1
            elif kind is Outcome.COPIED:
                r.copied += 1
                r.bytes_copied += outcome.bytes_copied
                if outcome.fell_back:
                    r.link_fallbacks += 1
            elif kind is Outcome.DIRECTORY:
                r.directories += 1
            elif kind is Outcome.SYMLINK:
                r.symlinks += 1
            elif kind is Outcome.CANCELLED:
                r.cancelled += 1
            elif kind is Outcome.FAILED:
                r.failed += 1
                r.failures.append(
                    FileFailure(
                        path=outcome.dest_rel,
                        error_kind=outcome.error_kind or "CopyError",
                        message=outcome.message or "",
                    )
                )
            if kind in _HOW:
                e = outcome.entry
                self._records[outcome.dest_rel] = ManifestRecord(
                    rel_path=outcome.dest_rel,
                    file_type=e.file_type,
                    size=e.size,
                    mtime_ns=e.mtime_ns,
                    how=_HOW[kind],
                )

    def record_access_failure(self, rel_path: str, reason: str) -> None:
        with self._lock:
            self._result.failed += 1
            self._result.failures.append(FileFailure(rel_path, "AccessError", reason))

    def record_skip(self, rel_path: str, reason: str) -> None:
        with self._lock:
            self._result.skipped.append(f"{rel_path} ({reason})")

    @property
    def cancelled_count(self) -> int:
        with self._lock:
            return self._result.cancelled

    def manifest_records(self) -> List[ManifestRecord]:
        with self._lock:
            return list(self._records.values())

    def finalize(self, state: RunState, duration_ms: float, snapshot: Optional[Path] = None) -> RunResult:
        """Stamp the final state and return the result with sorted listings."""
        with self._lock:
            r = self._result
            r.state = state
            r.duration_ms = round(duration_ms, 2)
            r.snapshot = snapshot
            r.failures.sort(key=lambda f: f.path)
            r.skipped.sort()
            return r
