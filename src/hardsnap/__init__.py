"""hardsnap — deduplicating incremental snapshots built from hardlinks."""

__version__ = "0.3.0"

from hardsnap.run.coordinator import RunCoordinator, run_backup  # noqa: E402
from hardsnap.run.models import RunResult, RunState  # noqa: E402

__all__ = ["RunCoordinator", "RunResult", "RunState", "__version__", "run_backup"]
