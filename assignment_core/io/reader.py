"""Read a CSV input directory into the dict format that run_assignment() expects."""

from __future__ import annotations

import csv
import json
from pathlib import Path

from assignment_core.time_utils import now_utc_iso

from .schemas import pipe_split, to_bool, to_int, to_optional_str


def load_input(directory: Path) -> tuple[dict, dict]:
    """Read CSV input dir -> (snapshot_dict, meta_dict).

    ``meta.json``, ``applications.csv`` and ``teams.csv`` are required;
    ``absences.csv`` is optional. Raises FileNotFoundError if a required
    file is missing.
    """
    d = Path(directory)

    # -- meta.json --------------------------------------------------------------
    meta_dict = _read_json(d / "meta.json")

    # -- teams.csv --------------------------------------------------------------
    teams = []
    for row in _read_csv(d / "teams.csv"):
        teams.append(
            {
                "team_id": row["team_id"],
                "name": row.get("name") or row["team_id"],
                "type": row.get("type", ""),
                "max_capacity": to_int(row.get("max_capacity")),
                "required_skills": row.get("required_skills", ""),
            }
        )

    # -- applications.csv -------------------------------------------------------
    applications = []
    for row in _read_csv(d / "applications.csv"):
        applications.append(
            {
                "application_id": row["application_id"],
                "full_name": row.get("full_name", ""),
                "email": row.get("email", ""),
                "submitted_at": row.get("submitted_at", ""),
                "team_preferences": pipe_split(row.get("team_preferences")),
                "skills": pipe_split(row.get("skills")),
                "status": (row.get("status") or "pending").strip().lower(),
                "assigned_team_id": to_optional_str(row.get("assigned_team_id")),
                "assignment_reason": None,
            }
        )

    # -- absences.csv (optional) ------------------------------------------------
    absences = []
    absences_path = d / "absences.csv"
    if absences_path.exists():
        for row in _read_csv(absences_path):
            absences.append(
                {
                    "absence_id": row.get("absence_id", ""),
                    "application_id": row["application_id"],
                    "reason": row.get("reason", ""),
                    "start_date": row.get("start_date", ""),
                    "end_date": to_optional_str(row.get("end_date")),
                    "is_active": to_bool(row.get("is_active", "TRUE")),
                }
            )

    # -- assemble snapshot dict -------------------------------------------------
    snapshot_dict = {
        "snapshot_id": meta_dict["snapshot_id"],
        "generated_at": now_utc_iso(),
        "organization": meta_dict.get("organization", ""),
        "applications": applications,
        "teams": teams,
        "absences": absences,
        "metadata": {
            "source": "csv",
            "counts": {
                "applications": len(applications),
                "teams": len(teams),
                "absences": len(absences),
            },
        },
    }

    return snapshot_dict, meta_dict


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _read_json(path: Path) -> dict:
    """Read and parse a JSON file."""
    if not path.exists():
        raise FileNotFoundError(f"Required file not found: {path}")
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def _read_csv(path: Path) -> list[dict[str, str]]:
    """Read a CSV file into a list of dicts via csv.DictReader."""
    if not path.exists():
        raise FileNotFoundError(f"Required file not found: {path}")
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.DictReader(f))
