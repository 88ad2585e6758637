"""Extract CSV input files from existing data sources (snapshot dict, SQLite store)."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any

from .schemas import (
    ABSENCES_COLS,
    APPLICATIONS_COLS,
    TEAMS_COLS,
    fmt_bool,
    pipe_join,
)


def _write_csv(path: Path, columns: list[str], rows: list[dict[str, Any]]) -> Path:
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=columns)
        writer.writeheader()
        writer.writerows(rows)
    return path


def extract_from_snapshot(snapshot: dict[str, Any], *, directory: Path) -> dict[str, Path]:
    """Write a snapshot dict to CSV input format.

    Returns dict mapping filename to written path.
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    result: dict[str, Path] = {}

    # meta.json
    meta = {
        "snapshot_id": snapshot.get("snapshot_id", ""),
        "organization": snapshot.get("organization", ""),
    }
    meta_path = directory / "meta.json"
    meta_path.write_text(json.dumps(meta, indent=2, ensure_ascii=False), encoding="utf-8")
    result["meta.json"] = meta_path

    # applications.csv
    app_rows = []
    for app in snapshot.get("applications", []):
        app_rows.append({
            "application_id": app.get("application_id", ""),
            "full_name": app.get("full_name", ""),
            "email": app.get("email", ""),
            "submitted_at": app.get("submitted_at", ""),
            "team_preferences": pipe_join(app.get("team_preferences", [])),
            "skills": pipe_join(app.get("skills", [])),
            "status": app.get("status", "pending"),
            "assigned_team_id": app.get("assigned_team_id") or "",
        })
    result["applications.csv"] = _write_csv(directory / "applications.csv", APPLICATIONS_COLS, app_rows)

    # teams.csv
    team_rows = []
    for team in snapshot.get("teams", []):
        team_rows.append({
            "team_id": team.get("team_id", ""),
            "name": team.get("name", ""),
            "type": team.get("type", ""),
            "max_capacity": team.get("max_capacity", 0),
            "required_skills": team.get("required_skills") or "",
        })
    result["teams.csv"] = _write_csv(directory / "teams.csv", TEAMS_COLS, team_rows)

    # absences.csv
    abs_rows = []
    for a in snapshot.get("absences", []):
        abs_rows.append({
            "absence_id": a.get("absence_id", ""),
            "application_id": a.get("application_id", ""),
            "reason": a.get("reason") or "",
            "start_date": a.get("start_date", ""),
            "end_date": a.get("end_date") or "",
            "is_active": fmt_bool(bool(a.get("is_active", True))),
        })
    result["absences.csv"] = _write_csv(directory / "absences.csv", ABSENCES_COLS, abs_rows)

    return result


def extract_from_db(*, db_path: Path, directory: Path) -> dict[str, Path]:
    """Read the SQLite store and write CSV input format."""
    from .db_loader import load_snapshot_from_db

    snapshot = load_snapshot_from_db(db_path)
    return extract_from_snapshot(snapshot, directory=directory)
