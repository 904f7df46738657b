"""Error taxonomy shared by the walker, detector, writer and coordinator.

Only ``FatalSetupError`` ever leaves the coordinator. The per-file errors are
raised inside a worker and converted into explicit outcomes before the worker
returns.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class HardsnapError(Exception):
    """Base class for every hardsnap error."""


class AccessError(HardsnapError):
    """A source entry could not be read (permission denied, vanished, ...)."""

    def __init__(self, message: str, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.path = path


class LinkError(HardsnapError):
    """A hardlink could not be created; the caller falls back to a copy."""


class CopyError(HardsnapError):
    """Copying, or recreating a directory or symlink, failed for one entry."""


class FatalSetupError(HardsnapError):
    """The run cannot proceed at all. Nothing is published."""
