"""Tests for the snapshot writer and the directory gate."""

import errno
import os
import threading
from pathlib import Path

import pytest

from hardsnap.detect.decisions import Copy, Link, Skip
from hardsnap.errors import CopyError, LinkError
from hardsnap.walk.models import FileEntry, FileType
from hardsnap.writer import snapshot as snapshot_mod
from hardsnap.writer.gate import DirectoryGate
from hardsnap.writer.snapshot import PART_SUFFIX, SnapshotWriter

from helpers import BASE_MTIME_NS, read_tree, same_inode, write_tree


def _file(root: Path, rel: str) -> FileEntry:
    st = os.lstat(root / rel)
    return FileEntry(rel, root / rel, st.st_size, st.st_mtime_ns, FileType.FILE)


@pytest.fixture
def trees(tmp_path: Path):
    source = write_tree(tmp_path / "source", {"a.txt": "hello", "big.bin": "z" * 70000})
    reference = write_tree(tmp_path / "reference", {"a.txt": "hello"})
    staging = tmp_path / "staging"
    staging.mkdir()
    return source, reference, staging


class TestLinkAndCopy:
    def test_link_shares_inode(self, trees):
        source, reference, staging = trees
        writer = SnapshotWriter(staging)
        entry = _file(source, "a.txt")
        written = writer.write(Link(entry, reference / "a.txt"), staging / "a.txt")
        assert written.how == "link"
        assert same_inode(staging / "a.txt", reference / "a.txt")

    def test_copy_is_independent_and_keeps_mtime(self, trees):
        source, _, staging = trees
        writer = SnapshotWriter(staging, chunk_size=4096)
        entry = _file(source, "big.bin")
        written = writer.write(Copy(entry, entry.path), staging / "big.bin")
        assert written.how == "copy"
        assert written.bytes_copied == 70000
        assert not same_inode(staging / "big.bin", source / "big.bin")
        assert (staging / "big.bin").read_bytes() == (source / "big.bin").read_bytes()
        assert os.stat(staging / "big.bin").st_mtime_ns == BASE_MTIME_NS

    def test_copy_refuses_existing_destination(self, trees):
        source, _, staging = trees
        (staging / "a.txt").write_text("already here")
        writer = SnapshotWriter(staging)
        with pytest.raises(CopyError, match="already exists"):
            writer.copy(_file(source, "a.txt"), staging / "a.txt")
        assert (staging / "a.txt").read_text() == "already here"

    def test_size_mismatch_leaves_nothing(self, trees):
        source, _, staging = trees
        entry = _file(source, "a.txt")
        stale = FileEntry(entry.rel_path, entry.path, entry.size + 1, entry.mtime_ns, entry.file_type)
        writer = SnapshotWriter(staging)
        with pytest.raises(CopyError, match="size mismatch"):
            writer.copy(stale, staging / "a.txt")
        assert list(staging.iterdir()) == []

    def test_missing_source_raises_copy_error(self, trees):
        source, _, staging = trees
        entry = _file(source, "a.txt")
        os.unlink(source / "a.txt")
        with pytest.raises(CopyError):
            SnapshotWriter(staging).copy(entry, staging / "a.txt")
        assert list(staging.iterdir()) == []

    @pytest.mark.parametrize("first", ["foo", "foo" + PART_SUFFIX])
    def test_part_suffixed_sibling_survives(self, tmp_path: Path, first: str):
        names = ["foo", "foo" + PART_SUFFIX]
        source = write_tree(tmp_path / "source", {"foo": "plain", "foo" + PART_SUFFIX: "suffixed!"})
        staging = tmp_path / "staging"
        staging.mkdir()
        writer = SnapshotWriter(staging)
        for name in sorted(names, key=lambda n: n != first):
            writer.copy(_file(source, name), staging / name)
        assert read_tree(staging) == {"foo": b"plain", "foo" + PART_SUFFIX: b"suffixed!"}


class TestLinkFallback:
    def test_cross_device_link_falls_back_to_copy(self, trees, monkeypatch):
        source, reference, staging = trees

        def refuse(src, dst, *args, **kwargs):
            raise OSError(errno.EXDEV, "Invalid cross-device link")

        monkeypatch.setattr(snapshot_mod.os, "link", refuse)
        writer = SnapshotWriter(staging)
        entry = _file(source, "a.txt")
        written = writer.write(Link(entry, reference / "a.txt"), staging / "a.txt")
        assert written.how == "copy"
        assert written.fell_back
        assert "cross-device" in written.link_error
        assert (staging / "a.txt").read_text() == "hello"
        assert not same_inode(staging / "a.txt", reference / "a.txt")

    def test_vanished_reference_falls_back_to_copy(self, trees):
        source, reference, staging = trees
        os.unlink(reference / "a.txt")
        written = SnapshotWriter(staging).write(
            Link(_file(source, "a.txt"), reference / "a.txt"), staging / "a.txt"
        )
        assert written.fell_back
        assert (staging / "a.txt").read_text() == "hello"

    def test_link_error_raised_by_primitive(self, trees):
        _, reference, staging = trees
        with pytest.raises(LinkError, match="reference unavailable"):
            SnapshotWriter(staging).link(reference / "nope", staging / "nope")


class TestDirectoriesAndSymlinks:
    def test_directory_created(self, trees):
        _, _, staging = trees
        entry = FileEntry("d", Path("/src/d"), 0, BASE_MTIME_NS, FileType.DIRECTORY)
        written = SnapshotWriter(staging).write(Skip(entry, "directory"), staging / "d")
        assert written.how == "dir"
        assert (staging / "d").is_dir()

    def test_symlink_recreated_with_same_target(self, trees):
        source, _, staging = trees
        os.symlink("a.txt", source / "alias")
        st = os.lstat(source / "alias")
        entry = FileEntry("alias", source / "alias", st.st_size, st.st_mtime_ns, FileType.SYMLINK)
        written = SnapshotWriter(staging).write(Skip(entry, "symlink"), staging / "alias")
        assert written.how == "symlink"
        assert os.readlink(staging / "alias") == "a.txt"

    def test_dest_path_splits_components(self, trees):
        _, _, staging = trees
        assert SnapshotWriter(staging).dest_path("b/c.txt") == staging / "b" / "c.txt"


class TestDirectoryGate:
    def test_root_is_open(self):
        assert DirectoryGate().wait("")

    def test_unknown_directory_is_closed(self):
        assert not DirectoryGate().wait("never-registered")

    def test_waits_for_mark(self):
        gate = DirectoryGate()
        gate.register("d")
        results = []
        waiter = threading.Thread(target=lambda: results.append(gate.wait("d")))
        waiter.start()
        gate.mark("d", True)
        waiter.join(timeout=5)
        assert results == [True]

    def test_failed_directory_reports_false(self):
        gate = DirectoryGate()
        gate.register("d")
        gate.mark("d", False)
        assert not gate.wait("d")

    def test_cancel_releases_waiter(self):
        gate = DirectoryGate()
        gate.register("d")
        assert not gate.wait("d", should_cancel=lambda: True, poll_interval=0.01)
