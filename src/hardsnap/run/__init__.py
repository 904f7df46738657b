"""Run coordination — coordinator, results, accumulator."""

from hardsnap.run.coordinator import RunCoordinator, run_backup
from hardsnap.run.models import (
    FileFailure,
    FileOutcome,
    Outcome,
    ResultAccumulator,
    RunResult,
    RunState,
)

__all__ = [
    "FileFailure",
    "FileOutcome",
    "Outcome",
    "ResultAccumulator",
    "RunCoordinator",
    "RunResult",
    "RunState",
    "run_backup",
]
