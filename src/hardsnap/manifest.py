"""Snapshot manifest — path -> type/size/mtime/how, stored at the snapshot root.

The manifest lets the next run build its reference index without stat'ing
every file of the previous snapshot. It is written into the staging
directory before publication, so it appears atomically with the tree.
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List

from hardsnap.errors import HardsnapError
from hardsnap.walk.models import FileType

MANIFEST_VERSION = 1

HOW_VALUES = ("link", "copy", "dir", "symlink")


class ManifestError(HardsnapError):
    """Raised when a manifest cannot be read or is malformed."""


@dataclass(frozen=True)
class ManifestRecord:
    rel_path: str
    file_type: FileType
    size: int
    mtime_ns: int
    how: str  # 'link' | 'copy' | 'dir' | 'symlink'


def to_dict(records: Iterable[ManifestRecord], *, source: Path) -> Dict[str, Any]:
    """Convert records to the JSON-serialisable manifest layout."""
    entries: Dict[str, Dict[str, Any]] = {}
    for rec in sorted(records, key=lambda r: r.rel_path):
        entries[rec.rel_path] = {
            "type": rec.file_type.value,
            "size": rec.size,
            "mtime_ns": rec.mtime_ns,
            "how": rec.how,
        }
    return {
        "version": MANIFEST_VERSION,
        "created": datetime.now(tz=timezone.utc).isoformat(timespec="seconds"),
        "source": str(source),
        "entries": entries,
    }


def write_manifest(path: Path, records: Iterable[ManifestRecord], *, source: Path) -> None:
    """Write the manifest for a snapshot to *path*.

    The manifest is written to a temporary file and moved over *path*, so an
    existing file at *path* (possibly a hardlink shared with another
    snapshot) is replaced, never written through.
    """
    data = to_dict(records, source=source)
    path = Path(path)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=1, sort_keys=True)
            f.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def read_manifest(path: Path) -> List[ManifestRecord]:
    """Load manifest records from *path*. Raises ManifestError."""
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise ManifestError(f"cannot read manifest {path}: {exc}") from exc

    if not isinstance(data, dict) or data.get("version") != MANIFEST_VERSION:
        raise ManifestError(f"unsupported manifest format in {path}")
    entries = data.get("entries")
    if not isinstance(entries, dict):
        raise ManifestError(f"manifest {path} has no entries table")

    records: List[ManifestRecord] = []
    for rel_path, raw in entries.items():
        try:
            records.append(
                ManifestRecord(
                    rel_path=rel_path,
                    file_type=FileType(raw["type"]),
                    size=int(raw["size"]),
                    mtime_ns=int(raw["mtime_ns"]),
                    how=str(raw.get("how", "copy")),
                )
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ManifestError(f"bad manifest entry {rel_path!r} in {path}: {exc}") from exc
    return records
