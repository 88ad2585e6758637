"""SQLite-backed roster store: applications, teams, absences and run records.

persist_run() is the only writer used by an assignment run and commits all
of a run's updates in one transaction, or none of them.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any
from uuid import uuid4

from assignment_core.eligibility import (
    APPLICATION_STATUSES,
    MAX_PREFERENCES,
    STATUS_ASSIGNED,
    STATUS_PENDING,
    normalize_preferences,
)
from assignment_core.time_utils import now_utc_iso

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS teams (
    team_id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    type TEXT NOT NULL DEFAULT 'technical',
    max_capacity INTEGER NOT NULL CHECK (max_capacity > 0),
    current_size INTEGER NOT NULL DEFAULT 0,
    required_skills TEXT,
    description TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS applications (
    application_id TEXT PRIMARY KEY,
    full_name TEXT NOT NULL,
    email TEXT NOT NULL,
    team_preferences TEXT NOT NULL DEFAULT '[]',
    skills TEXT NOT NULL DEFAULT '[]',
    status TEXT NOT NULL DEFAULT 'pending',
    assigned_team_id TEXT REFERENCES teams(team_id),
    assignment_reason TEXT,
    submitted_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS absences (
    absence_id TEXT PRIMARY KEY,
    application_id TEXT NOT NULL REFERENCES applications(application_id),
    reason TEXT,
    start_date TEXT NOT NULL,
    end_date TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS assignment_runs (
    run_id TEXT PRIMARY KEY,
    generated_at TEXT NOT NULL,
    committed_at TEXT NOT NULL,
    total_processed INTEGER NOT NULL,
    total_assigned INTEGER NOT NULL,
    total_waitlisted INTEGER NOT NULL,
    summary_json TEXT NOT NULL,
    log_text TEXT NOT NULL
);
"""

_TEAM_FIELDS = ("name", "type", "max_capacity", "required_skills", "description")

_REFRESH_TEAM_SIZES = """
UPDATE teams SET current_size = (
    SELECT COUNT(*) FROM applications a
    WHERE a.assigned_team_id = teams.team_id AND a.status = 'assigned'
)
"""


class PersistenceError(RuntimeError):
    """A run could not be committed; nothing from it was written."""


def connect(db_path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: Path) -> None:
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = connect(db_path)
    try:
        conn.executescript(SCHEMA)
        conn.commit()
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------


def insert_team(
    db_path: Path,
    *,
    name: str,
    max_capacity: int,
    type: str = "technical",
    required_skills: str = "",
    description: str = "",
    team_id: str | None = None,
) -> str:
    if int(max_capacity) <= 0:
        raise ValueError(f"max_capacity must be positive, got {max_capacity}")
    team_id = team_id or str(uuid4())
    conn = connect(db_path)
    try:
        conn.execute(
            """
            INSERT INTO teams (team_id, name, type, max_capacity, required_skills, description, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (team_id, name, type, int(max_capacity), required_skills, description, now_utc_iso()),
        )
        conn.commit()
    finally:
        conn.close()
    return team_id


def update_team(db_path: Path, team_id: str, **fields: Any) -> None:
    unknown = set(fields) - set(_TEAM_FIELDS)
    if unknown:
        raise ValueError(f"Unknown team fields: {sorted(unknown)}")
    if "max_capacity" in fields and int(fields["max_capacity"]) <= 0:
        raise ValueError(f"max_capacity must be positive, got {fields['max_capacity']}")
    if not fields:
        return

    assignments = ", ".join(f"{name} = ?" for name in fields)
    conn = connect(db_path)
    try:
        cur = conn.execute(
            f"UPDATE teams SET {assignments} WHERE team_id = ?",
            (*fields.values(), team_id),
        )
        if cur.rowcount == 0:
            raise KeyError(f"team_id not found: {team_id}")
        conn.commit()
    finally:
        conn.close()


def delete_team(db_path: Path, team_id: str) -> int:
    """Delete a team and return how many members were reset to pending.

    Members lose their assignment so no application keeps pointing at a
    missing team; they re-enter the next run.
    """
    conn = connect(db_path)
    try:
        cur = conn.execute(
            """
            UPDATE applications
            SET status = ?, assigned_team_id = NULL, assignment_reason = ?
            WHERE assigned_team_id = ?
            """,
            (STATUS_PENDING, "assigned team was deleted", team_id),
        )
        reset = cur.rowcount
        cur = conn.execute("DELETE FROM teams WHERE team_id = ?", (team_id,))
        if cur.rowcount == 0:
            conn.rollback()
            raise KeyError(f"team_id not found: {team_id}")
        conn.commit()
    finally:
        conn.close()
    if reset:
        logger.info("deleted team %s; %d member(s) reset to pending", team_id, reset)
    return reset


# ---------------------------------------------------------------------------
# Applications & absences
# ---------------------------------------------------------------------------


def insert_application(
    db_path: Path,
    *,
    full_name: str,
    email: str,
    team_preferences: list[str],
    skills: list[str] | None = None,
    submitted_at: str | None = None,
    application_id: str | None = None,
) -> str:
    """Store a new pending application, as the intake form does."""
    prefs = [str(p).strip() for p in team_preferences or [] if str(p).strip()]
    if not 1 <= len(prefs) <= MAX_PREFERENCES:
        raise ValueError(f"team_preferences must have 1-{MAX_PREFERENCES} entries, got {len(prefs)}")
    if len(normalize_preferences(prefs)) != len(prefs):
        raise ValueError("team_preferences must not contain duplicates")

    application_id = application_id or str(uuid4())
    conn = connect(db_path)
    try:
        conn.execute(
            """
            INSERT INTO applications (
                application_id, full_name, email, team_preferences, skills, status, submitted_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                application_id,
                full_name,
                email,
                json.dumps(prefs),
                json.dumps(list(skills or [])),
                STATUS_PENDING,
                submitted_at or now_utc_iso(),
            ),
        )
        conn.commit()
    finally:
        conn.close()
    return application_id


def insert_absence(
    db_path: Path,
    *,
    application_id: str,
    start_date: str,
    end_date: str | None = None,
    reason: str = "",
) -> str:
    absence_id = str(uuid4())
    conn = connect(db_path)
    try:
        conn.execute(
            """
            INSERT INTO absences (absence_id, application_id, reason, start_date, end_date, is_active, created_at)
            VALUES (?, ?, ?, ?, ?, 1, ?)
            """,
            (absence_id, application_id, reason, start_date, end_date, now_utc_iso()),
        )
        conn.commit()
    finally:
        conn.close()
    return absence_id


def set_application_status(
    db_path: Path,
    application_id: str,
    status: str,
    *,
    assigned_team_id: str | None = None,
    reason: str | None = None,
) -> None:
    """Manual admin override of an application's status."""
    status = str(status).strip().lower()
    if status not in APPLICATION_STATUSES:
        raise ValueError(f"Unknown status {status!r}. Choose from {APPLICATION_STATUSES}")
    if status == STATUS_ASSIGNED and not assigned_team_id:
        raise ValueError("status 'assigned' requires assigned_team_id")
    if status != STATUS_ASSIGNED:
        assigned_team_id = None

    conn = connect(db_path)
    try:
        if assigned_team_id is not None:
            row = conn.execute("SELECT 1 FROM teams WHERE team_id = ?", (assigned_team_id,)).fetchone()
            if row is None:
                raise KeyError(f"team_id not found: {assigned_team_id}")
        cur = conn.execute(
            """
            UPDATE applications SET status = ?, assigned_team_id = ?, assignment_reason = ?
            WHERE application_id = ?
            """,
            (status, assigned_team_id, reason or "manual override", application_id),
        )
        if cur.rowcount == 0:
            raise KeyError(f"application_id not found: {application_id}")
        conn.execute(_REFRESH_TEAM_SIZES)
        conn.commit()
    finally:
        conn.close()


def delete_application(db_path: Path, application_id: str) -> bool:
    conn = connect(db_path)
    try:
        conn.execute("DELETE FROM absences WHERE application_id = ?", (application_id,))
        cur = conn.execute("DELETE FROM applications WHERE application_id = ?", (application_id,))
        deleted = cur.rowcount > 0
        conn.execute(_REFRESH_TEAM_SIZES)
        conn.commit()
        return deleted
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Snapshot load
# ---------------------------------------------------------------------------


def _json_list(value: str | None) -> list[str]:
    if not value:
        return []
    try:
        data = json.loads(value)
    except (TypeError, ValueError):
        return []
    return [str(v) for v in data] if isinstance(data, list) else []


def load_snapshot_from_db(db_path: Path) -> dict[str, Any]:
    """Read every record into the snapshot dict format."""
    conn = connect(db_path)
    try:
        team_rows = conn.execute("SELECT * FROM teams ORDER BY name, team_id").fetchall()
        app_rows = conn.execute("SELECT * FROM applications ORDER BY submitted_at, application_id").fetchall()
        abs_rows = conn.execute("SELECT * FROM absences ORDER BY start_date").fetchall()
    finally:
        conn.close()

    teams = [
        {
            "team_id": r["team_id"],
            "name": r["name"],
            "type": r["type"],
            "max_capacity": r["max_capacity"],
            "current_size": r["current_size"],
            "required_skills": r["required_skills"] or "",
            "description": r["description"] or "",
        }
        for r in team_rows
    ]
    applications = [
        {
            "application_id": r["application_id"],
            "full_name": r["full_name"],
            "email": r["email"],
            "team_preferences": _json_list(r["team_preferences"]),
            "skills": _json_list(r["skills"]),
            "status": r["status"],
            "assigned_team_id": r["assigned_team_id"],
            "assignment_reason": r["assignment_reason"],
            "submitted_at": r["submitted_at"],
        }
        for r in app_rows
    ]
    absences = [
        {
            "absence_id": r["absence_id"],
            "application_id": r["application_id"],
            "reason": r["reason"] or "",
            "start_date": r["start_date"],
            "end_date": r["end_date"],
            "is_active": bool(r["is_active"]),
        }
        for r in abs_rows
    ]

    return {
        "snapshot_id": f"db-{uuid4().hex[:12]}",
        "generated_at": now_utc_iso(),
        "organization": "",
        "applications": applications,
        "teams": teams,
        "absences": absences,
        "metadata": {
            "source": "sqlite",
            "counts": {
                "applications": len(applications),
                "teams": len(teams),
                "absences": len(absences),
            },
        },
    }


# ---------------------------------------------------------------------------
# Run commit
# ---------------------------------------------------------------------------


def persist_run(run: dict[str, Any], db_path: Path) -> int:
    """Apply every update of a run and record it, all in one transaction.

    Each update must hit an application that is still pending; otherwise the
    store changed since the snapshot was taken and the whole run is rolled
    back. Returns the number of applications updated.

    Raises:
        PersistenceError: on any database error or stale record.
    """
    summary = run.get("summary", {})
    updates = run.get("updates", [])
    conn = connect(db_path)
    try:
        cur = conn.cursor()
        for update in updates:
            cur.execute(
                """
                UPDATE applications
                SET status = ?, assigned_team_id = ?, assignment_reason = ?
                WHERE application_id = ? AND status = ?
                """,
                (
                    update["status"],
                    update.get("assigned_team_id"),
                    update.get("assignment_reason", ""),
                    update["application_id"],
                    STATUS_PENDING,
                ),
            )
            if cur.rowcount != 1:
                raise PersistenceError(
                    f"application {update['application_id']} is no longer pending; run discarded"
                )

        cur.execute(_REFRESH_TEAM_SIZES)
        cur.execute(
            """
            INSERT INTO assignment_runs (
                run_id, generated_at, committed_at,
                total_processed, total_assigned, total_waitlisted,
                summary_json, log_text
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                run.get("run_id", ""),
                run.get("generated_at", ""),
                now_utc_iso(),
                summary.get("total_processed", 0),
                summary.get("total_assigned", 0),
                summary.get("total_waitlisted", 0),
                json.dumps(summary, ensure_ascii=False),
                run.get("log_text", ""),
            ),
        )
        conn.commit()
        return len(updates)
    except PersistenceError:
        conn.rollback()
        raise
    except sqlite3.Error as exc:
        conn.rollback()
        raise PersistenceError(f"could not commit run {run.get('run_id')}: {exc}") from exc
    finally:
        conn.close()
