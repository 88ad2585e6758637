"""Team assignment core: eligibility filter, preference-capacity allocator, outcome reporter."""

from .allocator import (
    allocate,
    capacity_anomalies,
    compute_occupancy,
    explain_outcome,
    remaining_capacity,
    run_assignment,
)
from .constraints import validate_run_invariants
from .eligibility import filter_eligible, normalize_preferences
from .reporter import build_record_updates, build_summary, render_run_log, team_fill_levels

# io re-exports; sqlite3/openpyxl stay unimported until used
from .io import extract_from_db, extract_from_snapshot, load_input, write_output

__all__ = [
    "allocate",
    "build_record_updates",
    "build_summary",
    "capacity_anomalies",
    "compute_occupancy",
    "explain_outcome",
    "extract_from_db",
    "extract_from_snapshot",
    "filter_eligible",
    "load_input",
    "normalize_preferences",
    "remaining_capacity",
    "render_run_log",
    "run_assignment",
    "team_fill_levels",
    "validate_run_invariants",
    "write_output",
]
