"""Tree walking — enumerator, ignore spec, name sanitizing, models."""

from hardsnap.walk.enumerator import WalkItem, walk_tree
from hardsnap.walk.ignore import IgnoreSpec
from hardsnap.walk.models import AccessFailure, EntrySkipped, FileEntry, FileType
from hardsnap.walk.paths import sanitize_component, sanitize_relpath

__all__ = [
    "AccessFailure",
    "EntrySkipped",
    "FileEntry",
    "FileType",
    "IgnoreSpec",
    "WalkItem",
    "sanitize_component",
    "sanitize_relpath",
    "walk_tree",
]
