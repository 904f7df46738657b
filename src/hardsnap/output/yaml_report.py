"""YAML reporter — the JSON report layout, rendered for humans."""

from __future__ import annotations

import yaml

from hardsnap.output.json_report import to_dict
from hardsnap.run.models import RunResult


def render(result: RunResult) -> str:
    """Return the run report as a YAML document."""
    return yaml.safe_dump(to_dict(result), sort_keys=False, default_flow_style=False)
