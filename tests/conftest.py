"""Shared test fixtures — source trees, reference snapshots, configs."""

from __future__ import annotations

from pathlib import Path

import pytest

from hardsnap.config.schema import HardsnapConfig

from helpers import write_tree


@pytest.fixture
def config() -> HardsnapConfig:
    cfg = HardsnapConfig()
    cfg.backup.workers = 2
    return cfg


@pytest.fixture
def source_tree(tmp_path: Path) -> Path:
    """A small source tree with nested directories."""
    return write_tree(tmp_path / "source", {
        "a.txt": "hello",
        "b/c.txt": "0123456789",
        "b/d/e.bin": "x" * 4096,
        "notes/readme.md": "# notes\n",
    })


@pytest.fixture
def spec_example(tmp_path: Path):
    """Source with a.txt (5 bytes) and b/c.txt (10 bytes); reference has a.txt only."""
    source = write_tree(tmp_path / "source", {"a.txt": "hello", "b/c.txt": "0123456789"})
    reference = write_tree(tmp_path / "snapshots" / "prev", {"a.txt": "hello"})
    destination = tmp_path / "snapshots" / "next"
    return source, reference, destination
