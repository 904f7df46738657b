"""End-to-end tests for backup runs."""

import os
import threading
from pathlib import Path

import pytest

from hardsnap.detect.index import ReferenceIndex
from hardsnap.errors import CopyError, FatalSetupError
from hardsnap.run.coordinator import RunCoordinator, run_backup
from hardsnap.run.models import RunState
from hardsnap.writer.snapshot import SnapshotWriter

from helpers import read_tree, same_inode, write_tree


def _leftovers(parent: Path):
    return [p.name for p in parent.iterdir() if "hardsnap-staging" in p.name]


class TestFullBackup:
    def test_pure_copy_without_reference(self, source_tree: Path, tmp_path: Path, config):
        dest = tmp_path / "snap"
        result = run_backup(source_tree, dest, config=config)

        assert result.state is RunState.DONE
        assert result.ok
        assert result.snapshot == dest.absolute()
        assert (result.linked, result.copied, result.failed) == (0, 4, 0)
        assert result.directories == 3
        assert result.bytes_copied == 5 + 10 + 4096 + 8
        assert read_tree(dest) == read_tree(source_tree)
        assert _leftovers(tmp_path) == []

    def test_unchanged_file_linked_new_file_copied(self, spec_example, config):
        source, reference, dest = spec_example
        result = run_backup(source, dest, reference, config=config)

        assert (result.linked, result.copied, result.failed) == (1, 1, 0)
        assert result.bytes_copied == 10
        assert same_inode(dest / "a.txt", reference / "a.txt")
        assert not same_inode(dest / "b" / "c.txt", source / "b" / "c.txt")
        assert (dest / "b" / "c.txt").read_text() == "0123456789"

    def test_copies_are_independent_of_source(self, source_tree: Path, tmp_path: Path, config):
        dest = tmp_path / "snap"
        run_backup(source_tree, dest, config=config)
        (source_tree / "a.txt").write_text("changed afterwards")
        assert (dest / "a.txt").read_text() == "hello"

    def test_second_run_links_everything(self, source_tree: Path, tmp_path: Path, config):
        first = tmp_path / "snap1"
        second = tmp_path / "snap2"
        run_backup(source_tree, first, config=config)
        result = run_backup(source_tree, second, first, config=config)

        assert (result.linked, result.copied, result.failed) == (4, 0, 0)
        assert same_inode(second / "b" / "d" / "e.bin", first / "b" / "d" / "e.bin")

    def test_modified_file_is_copied(self, source_tree: Path, tmp_path: Path, config):
        first = tmp_path / "snap1"
        run_backup(source_tree, first, config=config)
        (source_tree / "b" / "c.txt").write_text("now longer than before")
        result = run_backup(source_tree, tmp_path / "snap2", first, config=config)

        assert (result.linked, result.copied) == (3, 1)
        assert (first / "b" / "c.txt").read_text() == "0123456789"

    def test_reference_left_untouched(self, spec_example, config):
        source, reference, dest = spec_example
        before = {p.name: (os.stat(p).st_ino, os.stat(p).st_mtime_ns) for p in reference.iterdir()}
        run_backup(source, dest, reference, config=config)
        after = {p.name: (os.stat(p).st_ino, os.stat(p).st_mtime_ns) for p in reference.iterdir()}
        assert before == after
        assert read_tree(reference) == {"a.txt": b"hello"}

    def test_symlinks_recreated(self, tmp_path: Path, config):
        source = write_tree(tmp_path / "source", {"real.txt": "data"})
        os.symlink("real.txt", source / "alias")
        result = run_backup(source, tmp_path / "snap", config=config)
        assert result.symlinks == 1
        assert os.readlink(tmp_path / "snap" / "alias") == "real.txt"

    def test_empty_source(self, tmp_path: Path, config):
        source = tmp_path / "empty"
        source.mkdir()
        result = run_backup(source, tmp_path / "snap", config=config)
        assert result.ok
        assert result.total_files == 0
        assert list((tmp_path / "snap").iterdir()) == []


class TestSetupFailures:
    def test_destination_exists(self, source_tree: Path, tmp_path: Path, config):
        dest = tmp_path / "snap"
        dest.mkdir()
        (dest / "keep.txt").write_text("keep")
        with pytest.raises(FatalSetupError, match="already exists"):
            run_backup(source_tree, dest, config=config)
        assert read_tree(dest) == {"keep.txt": b"keep"}

    def test_missing_source(self, tmp_path: Path, config):
        with pytest.raises(FatalSetupError, match="does not exist"):
            run_backup(tmp_path / "nope", tmp_path / "snap", config=config)
        assert not (tmp_path / "snap").exists()

    def test_reference_not_a_directory(self, source_tree: Path, tmp_path: Path, config):
        with pytest.raises(FatalSetupError, match="Reference"):
            run_backup(source_tree, tmp_path / "snap", tmp_path / "missing-ref", config=config)

    def test_coordinator_state_on_failure(self, tmp_path: Path, config):
        coordinator = RunCoordinator(tmp_path / "nope", tmp_path / "snap", config=config)
        with pytest.raises(FatalSetupError):
            coordinator.run()
        assert coordinator.state is RunState.FAILED


class TestPerFileFailures:
    def test_copy_failure_is_recorded_and_snapshot_published(
        self, source_tree: Path, tmp_path: Path, config, monkeypatch
    ):
        original = SnapshotWriter.copy

        def flaky(self, entry, dest, *, source=None):
            if entry.rel_path == "b/c.txt":
                raise CopyError("copy failed: Input/output error")
            return original(self, entry, dest, source=source)

        monkeypatch.setattr(SnapshotWriter, "copy", flaky)
        dest = tmp_path / "snap"
        result = run_backup(source_tree, dest, config=config)

        assert result.state is RunState.DONE
        assert result.published
        assert not result.ok
        assert (result.copied, result.failed) == (3, 1)
        assert [(f.path, f.error_kind) for f in result.failures] == [("b/c.txt", "CopyError")]
        assert not (dest / "b" / "c.txt").exists()
        assert (dest / "b" / "d" / "e.bin").exists()

    @pytest.mark.skipif(os.name != "posix" or os.geteuid() == 0, reason="needs unprivileged POSIX user")
    def test_unreadable_file(self, source_tree: Path, tmp_path: Path, config):
        secret = source_tree / "a.txt"
        secret.chmod(0o000)
        try:
            result = run_backup(source_tree, tmp_path / "snap", config=config)
        finally:
            secret.chmod(0o644)
        assert result.failed == 1
        assert result.failures[0].path == "a.txt"
        assert result.copied == 3


class TestCancellation:
    def test_cancelled_before_start(self, source_tree: Path, tmp_path: Path, config):
        event = threading.Event()
        event.set()
        dest = tmp_path / "snap"
        result = run_backup(source_tree, dest, config=config, cancel_event=event)

        assert result.state is RunState.CANCELLED
        assert not result.published
        assert not dest.exists()
        assert _leftovers(tmp_path) == []

    def test_cancelled_mid_run(self, tmp_path: Path, config, monkeypatch):
        source = write_tree(tmp_path / "source", {f"f{i:02d}.txt": str(i) for i in range(20)})
        event = threading.Event()
        original = SnapshotWriter.copy

        def copy_then_cancel(self, entry, dest, *, source=None):
            written = original(self, entry, dest, source=source)
            event.set()
            return written

        monkeypatch.setattr(SnapshotWriter, "copy", copy_then_cancel)
        config.backup.workers = 1
        dest = tmp_path / "snap"
        result = run_backup(source, dest, config=config, cancel_event=event)

        assert result.state is RunState.CANCELLED
        assert result.copied < 20
        assert not dest.exists()
        assert _leftovers(tmp_path) == []

    def test_deadline_expired(self, source_tree: Path, tmp_path: Path, config):
        dest = tmp_path / "snap"
        result = RunCoordinator(source_tree, dest, config=config, deadline=0).run()
        assert result.state is RunState.CANCELLED
        assert not dest.exists()


class TestOptions:
    def test_manifest_written_and_reused(self, source_tree: Path, tmp_path: Path, config):
        config.manifest.enabled = True
        first = tmp_path / "snap1"
        run_backup(source_tree, first, config=config)
        assert (first / config.manifest.name).is_file()

        index = ReferenceIndex.build(first, manifest_name=config.manifest.name)
        assert index.from_manifest
        assert config.manifest.name not in index

        result = run_backup(source_tree, tmp_path / "snap2", first, config=config)
        assert (result.linked, result.copied) == (4, 0)

    def test_source_file_named_like_manifest(self, tmp_path: Path, config):
        config.manifest.enabled = True
        name = config.manifest.name
        source = write_tree(tmp_path / "source", {"a.txt": "hello", name: "user data"})
        first = tmp_path / "snap1"
        result = run_backup(source, first, config=config)

        assert result.copied == 1
        assert result.skipped == [f"{name} (name reserved for the snapshot manifest)"]
        assert (source / name).read_text() == "user data"
        assert name not in ReferenceIndex.build(first, manifest_name=name)

        first_manifest = (first / name).read_bytes()
        result = run_backup(source, tmp_path / "snap2", first, config=config)
        assert (result.linked, result.copied) == (1, 0)
        assert (first / name).read_bytes() == first_manifest
        assert not same_inode(first / name, tmp_path / "snap2" / name)

    def test_sanitized_names(self, tmp_path: Path, config):
        config.backup.sanitize_names = True
        source = write_tree(tmp_path / "source", {"what?/a:b.txt": "x"})
        first = tmp_path / "snap1"
        run_backup(source, first, config=config)
        assert read_tree(first) == {"what%3F/a%3Ab.txt": b"x"}

        result = run_backup(source, tmp_path / "snap2", first, config=config)
        assert result.linked == 1

    def test_ignore_patterns(self, source_tree: Path, tmp_path: Path, config):
        config.ignore.patterns = ["*.bin"]
        (source_tree / ".hardsnapignore").write_text("notes\n")
        dest = tmp_path / "snap"
        result = run_backup(source_tree, dest, config=config)

        assert set(read_tree(dest)) == {".hardsnapignore", "a.txt", "b/c.txt"}
        assert result.skipped == ["b/d/e.bin (ignored)", "notes (ignored)"]

    def test_dry_run_writes_nothing(self, spec_example, config):
        source, reference, dest = spec_example
        result = RunCoordinator(source, dest, reference, config=config).plan()

        assert result.dry_run
        assert (result.linked, result.copied) == (1, 1)
        assert not dest.exists()
        assert _leftovers(dest.parent) == []

    def test_destination_inside_source(self, source_tree: Path, config):
        dest = source_tree / "snapshots" / "today"
        result = run_backup(source_tree, dest, config=config)

        assert result.ok
        assert set(read_tree(dest)) == {"a.txt", "b/c.txt", "b/d/e.bin", "notes/readme.md"}

    def test_checksum_mode_catches_same_metadata_edit(self, spec_example, config):
        source, reference, dest = spec_example
        (source / "a.txt").write_text("jello")
        os.utime(source / "a.txt", ns=(os.stat(reference / "a.txt").st_mtime_ns,) * 2)
        config.detect.mode = "checksum"
        result = run_backup(source, dest, reference, config=config)
        assert (result.linked, result.copied) == (0, 2)
        assert (dest / "a.txt").read_text() == "jello"
