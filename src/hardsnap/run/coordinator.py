"""Run coordinator — walk, detect and write on a worker pool, then publish.

A run moves through ``INITIALIZING -> WALKING -> PROCESSING -> PUBLISHING ->
DONE``. Everything is written into a uniquely named staging directory next
to the destination; the final ``os.rename`` is the only moment the snapshot
becomes visible under its real name. A cancelled run (or one that ran past
its deadline) removes its staging directory and publishes nothing. A killed
process leaves the staging directory behind; re-running from scratch is safe.

Per-file problems become FileOutcome values and never abort the run. Only
setup problems raise FatalSetupError.
"""

from __future__ import annotations

import logging
import os
import posixpath
import shutil
import tempfile
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial
from pathlib import Path
from typing import Optional, Tuple, Union

from hardsnap.config.schema import HardsnapConfig
from hardsnap.detect.decisions import Copy, Link
from hardsnap.detect.detector import ChangeDetector
from hardsnap.detect.index import ReferenceIndex
from hardsnap.errors import AccessError, FatalSetupError, HardsnapError
from hardsnap.manifest import write_manifest
from hardsnap.run.models import FileOutcome, Outcome, ResultAccumulator, RunResult, RunState
from hardsnap.walk.enumerator import walk_tree
from hardsnap.walk.ignore import IgnoreSpec
from hardsnap.walk.models import AccessFailure, EntrySkipped, FileEntry, FileType
from hardsnap.walk.paths import sanitize_relpath
from hardsnap.writer.gate import DirectoryGate
from hardsnap.writer.snapshot import SnapshotWriter

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]

_WRITTEN_OUTCOME = {
    "link": Outcome.LINKED,
    "copy": Outcome.COPIED,
    "dir": Outcome.DIRECTORY,
    "symlink": Outcome.SYMLINK,
}


def _relative_inside(path: Path, root: Path) -> Optional[str]:
    """POSIX path of *path* relative to *root*, or None if outside it."""
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return None


class RunCoordinator:
    """Produce one snapshot of *source* at *destination*.

    *reference* is a previously completed snapshot used as the dedup
    baseline. *cancel_event* may be set from any thread to stop the run;
    *deadline* (seconds) bounds the whole run the same way.
    """

    def __init__(
        self,
        source: PathLike,
        destination: PathLike,
        reference: Optional[PathLike] = None,
        *,
        config: Optional[HardsnapConfig] = None,
        cancel_event: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ) -> None:
        self.source = Path(source).absolute()
        self.destination = Path(destination).absolute()
        self.reference = Path(reference).absolute() if reference is not None else None
        self.config = config or HardsnapConfig()
        self.state = RunState.INITIALIZING
        self.staging: Optional[Path] = None
        self._cancel = cancel_event or threading.Event()
        self._deadline = deadline if deadline is not None else self.config.backup.deadline_seconds
        self._deadline_at: Optional[float] = None
        self._interrupted = False

    # ---- cancellation ----

    def cancel(self) -> None:
        """Ask the run to stop; workers finish their current file and exit."""
        self._cancel.set()

    def cancelled(self) -> bool:
        if self._cancel.is_set():
            return True
        return self._deadline_at is not None and time.monotonic() >= self._deadline_at

    # ---- public entry points ----

    def run(self) -> RunResult:
        """Execute the backup and return its RunResult.

        Raises FatalSetupError if the run cannot start or cannot publish.
        """
        start = time.perf_counter()
        if self._deadline is not None:
            self._deadline_at = time.monotonic() + self._deadline
        acc = ResultAccumulator(RunResult(source=self.source, reference=self.reference))

        logger.info("Run backup")
        logger.info("Source: %s", self.source)
        logger.info("Target: %s", self.destination)
        if self.reference is not None:
            logger.info("With reference: %s", self.reference)
        else:
            logger.info("Without reference")

        try:
            ignore, index = self._initialize()
            self.staging = self._create_staging()
        except FatalSetupError:
            self.state = RunState.FAILED
            raise

        try:
            self._process_tree(ignore, index, acc)
        except AccessError as exc:
            self.state = RunState.FAILED
            self._discard_staging()
            raise FatalSetupError(f"Source became unreadable: {exc}") from exc

        if self._interrupted or acc.cancelled_count:
            self.state = RunState.CANCELLED
            logger.warning("Run cancelled; nothing published")
            self._discard_staging()
            return acc.finalize(RunState.CANCELLED, (time.perf_counter() - start) * 1000)

        self._publish(acc)
        self.state = RunState.DONE
        result = acc.finalize(
            RunState.DONE, (time.perf_counter() - start) * 1000, snapshot=self.destination
        )
        logger.info(
            "Snapshot published at %s: %d linked, %d copied, %d failed",
            self.destination, result.linked, result.copied, result.failed,
        )
        return result

    def plan(self) -> RunResult:
        """Dry run: enumerate and decide without writing anything."""
        start = time.perf_counter()
        acc = ResultAccumulator(RunResult(source=self.source, reference=self.reference, dry_run=True))
        ignore, index = self._initialize()
        detector = self._detector(index)

        self.state = RunState.WALKING
        try:
            for item in walk_tree(self.source, ignore, exclude=self._walk_exclusions(acc)):
                if isinstance(item, AccessFailure):
                    acc.record_access_failure(item.rel_path, item.reason)
                    continue
                if isinstance(item, EntrySkipped):
                    acc.record_skip(item.rel_path, item.reason)
                    continue
                dest_rel = self._dest_rel(item.rel_path)
                decision = detector.decide(item, dest_rel)
                if isinstance(decision, Link):
                    outcome = Outcome.LINKED
                elif isinstance(decision, Copy):
                    outcome = Outcome.COPIED
                elif item.file_type is FileType.DIRECTORY:
                    outcome = Outcome.DIRECTORY
                else:
                    outcome = Outcome.SYMLINK
                acc.record(
                    FileOutcome(
                        item, dest_rel, outcome,
                        bytes_copied=item.size if outcome is Outcome.COPIED else 0,
                    )
                )
        except AccessError as exc:
            self.state = RunState.FAILED
            raise FatalSetupError(f"Source became unreadable: {exc}") from exc

        self.state = RunState.DONE
        return acc.finalize(RunState.DONE, (time.perf_counter() - start) * 1000)

    # ---- initializing ----

    def _initialize(self) -> Tuple[IgnoreSpec, ReferenceIndex]:
        self.state = RunState.INITIALIZING
        cfg = self.config

        if not self.source.is_dir():
            raise FatalSetupError(f"Source directory does not exist: {self.source}")
        if not os.access(self.source, os.R_OK | os.X_OK):
            raise FatalSetupError(f"Source directory is not readable: {self.source}")
        if os.path.lexists(self.destination):
            raise FatalSetupError(f"Destination already exists: {self.destination}")
        if self.reference is not None and not self.reference.is_dir():
            raise FatalSetupError(f"Reference snapshot must be an existing directory: {self.reference}")

        try:
            ignore = IgnoreSpec.from_file(self.source / cfg.ignore.file)
        except OSError as exc:
            raise FatalSetupError(f"Cannot read ignore file: {exc}") from exc
        ignore.extend(cfg.ignore.patterns)
        if ignore:
            logger.info("Ignoring %d pattern(s)", len(ignore.patterns))

        if self.reference is None:
            return ignore, ReferenceIndex.empty()
        try:
            index = ReferenceIndex.build(self.reference, manifest_name=cfg.manifest.name)
        except AccessError as exc:
            raise FatalSetupError(f"Cannot read reference snapshot: {exc}") from exc
        return ignore, index

    def _create_staging(self) -> Path:
        parent = self.destination.parent
        try:
            parent.mkdir(parents=True, exist_ok=True)
            staging = Path(
                tempfile.mkdtemp(prefix=f".{self.destination.name}.hardsnap-staging-", dir=parent)
            )
        except OSError as exc:
            raise FatalSetupError(f"Cannot create staging directory in {parent}: {exc}") from exc
        logger.debug("Staging into %s", staging)
        return staging

    def _detector(self, index: ReferenceIndex) -> ChangeDetector:
        return ChangeDetector(
            index,
            mode=self.config.detect.mode,
            hash_algorithm=self.config.detect.hash_algorithm,
        )

    def _dest_rel(self, rel_path: str) -> str:
        if self.config.backup.sanitize_names:
            return sanitize_relpath(rel_path)
        return rel_path

    def _walk_exclusions(self, acc: ResultAccumulator) -> Tuple[str, ...]:
        """Relative paths inside the source that belong to this run's output."""
        excluded = []
        for path in (self.staging, self.destination):
            if path is None:
                continue
            rel = _relative_inside(path, self.source)
            if rel and rel != ".":
                excluded.append(rel)

        manifest = self.config.manifest
        if manifest.enabled:
            excluded.append(manifest.name)
            if os.path.lexists(self.source / manifest.name):
                logger.warning(
                    "%s is reserved for the snapshot manifest; not backing it up", manifest.name
                )
                acc.record_skip(manifest.name, "name reserved for the snapshot manifest")
        return tuple(excluded)

    # ---- walking / processing ----

    def _process_tree(self, ignore: IgnoreSpec, index: ReferenceIndex, acc: ResultAccumulator) -> None:
        assert self.staging is not None
        cfg = self.config.backup
        detector = self._detector(index)
        writer = SnapshotWriter(self.staging, chunk_size=cfg.chunk_size_kb * 1024)
        gate = DirectoryGate()
        slots = threading.BoundedSemaphore(cfg.queue_size)

        with ThreadPoolExecutor(max_workers=cfg.workers, thread_name_prefix="hardsnap-worker") as executor:
            self.state = RunState.WALKING
            try:
                for item in walk_tree(self.source, ignore, exclude=self._walk_exclusions(acc)):
                    if self.cancelled():
                        self._interrupted = True
                        break
                    if isinstance(item, AccessFailure):
                        logger.warning("cannot read %s: %s", item.rel_path, item.reason)
                        acc.record_access_failure(item.rel_path, item.reason)
                        continue
                    if isinstance(item, EntrySkipped):
                        acc.record_skip(item.rel_path, item.reason)
                        continue

                    dest_rel = self._dest_rel(item.rel_path)
                    if item.file_type is FileType.DIRECTORY:
                        gate.register(dest_rel)
                    if not self._acquire_slot(slots):
                        if item.file_type is FileType.DIRECTORY:
                            gate.mark(dest_rel, False)
                        self._interrupted = True
                        break
                    future = executor.submit(self._process, item, dest_rel, detector, writer, gate)
                    future.add_done_callback(partial(self._collect, acc, slots, item, dest_rel))
            except KeyboardInterrupt:
                logger.warning("Interrupted; cancelling run")
                self._cancel.set()
                self._interrupted = True
            self.state = RunState.PROCESSING
        # leaving the executor waits for every submitted entry

    def _acquire_slot(self, slots: threading.BoundedSemaphore) -> bool:
        while not slots.acquire(timeout=0.1):
            if self.cancelled():
                return False
        return True

    def _process(
        self,
        entry: FileEntry,
        dest_rel: str,
        detector: ChangeDetector,
        writer: SnapshotWriter,
        gate: DirectoryGate,
    ) -> FileOutcome:
        """Detect and write one entry. Per-file errors become outcomes here."""
        is_dir = entry.file_type is FileType.DIRECTORY
        created = False
        try:
            if self.cancelled():
                return FileOutcome(entry, dest_rel, Outcome.CANCELLED)
            if not gate.wait(posixpath.dirname(dest_rel), should_cancel=self.cancelled):
                if self.cancelled():
                    return FileOutcome(entry, dest_rel, Outcome.CANCELLED)
                return FileOutcome(
                    entry, dest_rel, Outcome.FAILED,
                    error_kind="CopyError", message="parent directory was not created",
                )
            decision = detector.decide(entry, dest_rel)
            written = writer.write(decision, writer.dest_path(dest_rel))
            created = is_dir
        except (HardsnapError, OSError) as exc:
            kind = type(exc).__name__ if isinstance(exc, HardsnapError) else "CopyError"
            logger.warning("FAIL %s: %s", dest_rel, exc)
            return FileOutcome(entry, dest_rel, Outcome.FAILED, error_kind=kind, message=str(exc))
        finally:
            if is_dir:
                gate.mark(dest_rel, created)

        return FileOutcome(
            entry,
            dest_rel,
            _WRITTEN_OUTCOME[written.how],
            bytes_copied=written.bytes_copied,
            fell_back=written.fell_back,
        )

    @staticmethod
    def _collect(
        acc: ResultAccumulator,
        slots: threading.BoundedSemaphore,
        entry: FileEntry,
        dest_rel: str,
        future: "Future[FileOutcome]",
    ) -> None:
        slots.release()
        exc = future.exception()
        if exc is not None:
            logger.error("unexpected error while processing %s", dest_rel, exc_info=exc)
            acc.record(
                FileOutcome(
                    entry, dest_rel, Outcome.FAILED,
                    error_kind=type(exc).__name__, message=str(exc),
                )
            )
            return
        acc.record(future.result())

    # ---- publishing ----

    def _publish(self, acc: ResultAccumulator) -> None:
        assert self.staging is not None
        self.state = RunState.PUBLISHING
        staging = self.staging

        if self.config.manifest.enabled:
            manifest_path = staging / self.config.manifest.name
            try:
                write_manifest(manifest_path, acc.manifest_records(), source=self.source)
            except OSError as exc:
                logger.warning("could not write manifest %s: %s", manifest_path, exc)

        try:
            shutil.copystat(self.source, staging)
        except OSError as exc:
            logger.debug("could not copy root attributes: %s", exc)

        if os.path.lexists(self.destination):
            self.state = RunState.FAILED
            raise FatalSetupError(
                f"Destination appeared during the run: {self.destination}; "
                f"staged snapshot left at {staging}"
            )
        try:
            os.rename(staging, self.destination)
        except OSError as exc:
            self.state = RunState.FAILED
            raise FatalSetupError(
                f"Cannot publish snapshot to {self.destination}: {exc}; "
                f"staged snapshot left at {staging}"
            ) from exc
        self.staging = None

    def _discard_staging(self) -> None:
        if self.staging is None:
            return
        try:
            shutil.rmtree(self.staging)
        except OSError as exc:
            logger.warning("could not remove staging directory %s: %s", self.staging, exc)
            return
        self.staging = None


def run_backup(
    source: PathLike,
    destination: PathLike,
    reference: Optional[PathLike] = None,
    *,
    config: Optional[HardsnapConfig] = None,
    cancel_event: Optional[threading.Event] = None,
    deadline: Optional[float] = None,
) -> RunResult:
    """Back up *source* into a new snapshot at *destination*."""
    coordinator = RunCoordinator(
        source,
        destination,
        reference,
        config=config,
        cancel_event=cancel_event,
        deadline=deadline,
    )
    return coordinator.run()
