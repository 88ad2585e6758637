"""The "Auto Assign Teams" admin action.

Loads the store, runs the pure allocator, validates the result, commits it in
one transaction and stores the run artifacts. Runs are serialized per
process; a request that arrives while one is in flight is rejected.
"""
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any

from assignment_core.allocator import run_assignment
from assignment_core.constraints import validate_run_invariants
from assignment_core.io.db_loader import load_snapshot_from_db, persist_run

from .storage import save_run

logger = logging.getLogger(__name__)

REFRESH_VIEWS = ("applications", "teams", "stats")


class RunInProgressError(RuntimeError):
    """Another assignment run holds the lock."""


class AssignmentRunner:
    def __init__(self, *, db_path: Path, artifact_root: Path, organization: str = ""):
        self.db_path = Path(db_path)
        self.artifact_root = Path(artifact_root)
        self.organization = organization
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def preview(self) -> dict[str, Any]:
        """Compute a run against current data without committing it."""
        snapshot = load_snapshot_from_db(self.db_path)
        snapshot["organization"] = self.organization
        run = run_assignment(snapshot)
        run["violations"] = validate_run_invariants(run, snapshot)
        save_run(self.artifact_root, run, committed=False)
        return run

    def run(self) -> dict[str, Any]:
        if not self._lock.acquire(blocking=False):
            raise RunInProgressError("a team assignment run is already in progress")
        try:
            return self._run_locked()
        finally:
            self._lock.release()

    def _run_locked(self) -> dict[str, Any]:
        snapshot = load_snapshot_from_db(self.db_path)
        snapshot["organization"] = self.organization
        run = run_assignment(snapshot)

        violations = validate_run_invariants(run, snapshot)
        if violations:
            logger.error("run %s rejected with %d invariant violation(s)", run["run_id"], len(violations))
            raise RuntimeError(f"run {run['run_id']} violates roster invariants: {violations}")

        updated = persist_run(run, self.db_path)
        try:
            save_run(self.artifact_root, run, committed=True)
        except OSError:
            # the store is already committed; the log still reaches the caller in the response
            logger.exception("run %s committed but its artifacts could not be written", run["run_id"])

        summary = run["summary"]
        logger.info(
            "run %s committed: %d processed, %d assigned, %d waitlisted (%d records updated)",
            run["run_id"],
            summary["total_processed"],
            summary["total_assigned"],
            summary["total_waitlisted"],
            updated,
        )
        return run


def action_response(run: dict[str, Any]) -> dict[str, Any]:
    """Shape a committed run for the admin UI: summary, log download, views to refresh."""
    return {
        "message": "Team assignments completed successfully",
        "run_id": run["run_id"],
        "summary": run["summary"],
        "assignments": [
            {
                "application_id": o["application_id"],
                "status": o["new_status"],
                "assigned_team_id": o["assigned_team_id"],
                "reason": o["reason"],
                "preference_rank": o["preference_rank"],
            }
            for o in run.get("outcomes", [])
        ],
        "teams": run.get("teams", []),
        "anomalies": run.get("anomalies", []),
        "log_file_name": run["log_file_name"],
        "log_file_content": run["log_text"],
        "refresh": list(REFRESH_VIEWS),
    }
