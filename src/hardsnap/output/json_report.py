"""JSON reporter for scripts and CI pipelines."""

from __future__ import annotations

import json
from typing import Any, Dict, List

from hardsnap import __version__
from hardsnap.run.models import RunResult


def _path(value) -> Any:
    return str(value) if value is not None else None


def to_dict(result: RunResult) -> Dict[str, Any]:
    """Convert RunResult to a JSON-serialisable dict."""
    failures_list: List[Dict[str, Any]] = []
    for f in result.failures:
        failures_list.append({
            "path": f.path,
            "error": f.error_kind,
            "message": f.message,
        })

    return {
        "version": "1.0",
        "tool": f"hardsnap {__version__}",
        "state": result.state.value,
        "ok": result.ok,
        "dry_run": result.dry_run,
        "source": _path(result.source),
        "reference": _path(result.reference),
        "snapshot": _path(result.snapshot),
        "linked": result.linked,
        "copied": result.copied,
        "failed": result.failed,
        "bytes_copied": result.bytes_copied,
        "directories": result.directories,
        "symlinks": result.symlinks,
        "link_fallbacks": result.link_fallbacks,
        **({"cancelled": result.cancelled} if result.cancelled else {}),
        "failures": failures_list,
        "skipped": result.skipped,
        "duration_ms": result.duration_ms,
    }


def render(result: RunResult) -> str:
    """Return formatted JSON string."""
    return json.dumps(to_dict(result), indent=2)
