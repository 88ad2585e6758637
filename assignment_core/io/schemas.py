"""Column constants, pipe helpers, and type coercion for CSV I/O."""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Input CSV column names
# ---------------------------------------------------------------------------

APPLICATIONS_COLS = [
    "application_id",
    "full_name",
    "email",
    "submitted_at",
    "team_preferences",
    "skills",
    "status",
    "assigned_team_id",
]

TEAMS_COLS = [
    "team_id",
    "name",
    "type",
    "max_capacity",
    "required_skills",
]

ABSENCES_COLS = [
    "absence_id",
    "application_id",
    "reason",
    "start_date",
    "end_date",
    "is_active",
]

# ---------------------------------------------------------------------------
# Output column names
# ---------------------------------------------------------------------------

OUTCOMES_COLS = [
    "application_id",
    "full_name",
    "submitted_at",
    "previous_status",
    "new_status",
    "assigned_team_id",
    "team_name",
    "preference_rank",
    "reason",
    "full_preferences",
    "unavailable_preferences",
]

TEAM_FILL_COLS = [
    "team_id",
    "name",
    "max_capacity",
    "occupancy_before",
    "occupancy_after",
    "newly_assigned",
    "remaining",
    "fill_pct",
    "over_capacity",
]

SKIPPED_COLS = [
    "application_id",
    "full_name",
    "reason",
]

# ---------------------------------------------------------------------------
# Pipe-separated field helpers
# ---------------------------------------------------------------------------

PIPE = "|"


def pipe_join(values: list | None) -> str:
    """Join a list into a pipe-separated string. Empty/None -> empty string."""
    if not values:
        return ""
    return PIPE.join(str(v) for v in values if v is not None and str(v).strip())


def pipe_split(value: str | None) -> list[str]:
    """Split a pipe-separated string into a list. Empty/None -> empty list."""
    if not value or not str(value).strip():
        return []
    return [v.strip() for v in str(value).split(PIPE) if v.strip()]


# ---------------------------------------------------------------------------
# Type coercion helpers for reading CSV values
# ---------------------------------------------------------------------------


def to_int(value: str | None, default: int = 0) -> int:
    """Coerce a CSV string to int. Empty/None -> default."""
    if value is None or str(value).strip() == "":
        return default
    try:
        return int(float(value))
    except (ValueError, TypeError):
        return default


def to_bool(value: str | None) -> bool:
    """Coerce a CSV string to bool. TRUE/true/1/True -> True, else False."""
    if value is None:
        return False
    return str(value).strip().upper() in ("TRUE", "1", "YES")


def to_optional_str(value: str | None) -> str | None:
    """Blank CSV cells become None."""
    if value is None or str(value).strip() == "":
        return None
    return str(value).strip()


def fmt_bool(value: bool) -> str:
    """Format a bool for CSV output."""
    return "TRUE" if value else "FALSE"
