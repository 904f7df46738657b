"""Change detection — decisions, reference index, detector."""

from hardsnap.detect.decisions import Copy, CopyDecision, Link, Skip
from hardsnap.detect.detector import ChangeDetector, decide, file_digest
from hardsnap.detect.index import ReferenceIndex

__all__ = [
    "ChangeDetector",
    "Copy",
    "CopyDecision",
    "Link",
    "ReferenceIndex",
    "Skip",
    "decide",
    "file_digest",
]
