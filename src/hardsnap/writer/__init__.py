"""Snapshot writing — writer and directory gate."""

from hardsnap.writer.gate import DirectoryGate
from hardsnap.writer.snapshot import PART_SUFFIX, SnapshotWriter, Written

__all__ = ["DirectoryGate", "PART_SUFFIX", "SnapshotWriter", "Written"]
