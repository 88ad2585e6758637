from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import uuid4

from assignment_core.time_utils import now_utc_iso, to_utc_iso

from .utils import as_str_list, canonical_name, full_name, parse_rfc2822


@dataclass(frozen=True)
class SnapshotBuildInput:
    organization: str
    payload: dict[str, Any]


def _parse_dt_any(value: Any) -> str:
    """Portal timestamps arrive as ISO strings or HTTP dates; return UTC ISO or ''."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        return to_utc_iso(value)
    text = str(value)
    iso = to_utc_iso(text)
    if iso:
        return iso
    dt = parse_rfc2822(text)
    return to_utc_iso(dt) if dt is not None else ""


def _pick(raw: dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return default


def _normalize_teams(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    teams: list[dict[str, Any]] = []
    for raw in rows:
        team_id = _pick(raw, "id", "team_id")
        if team_id is None:
            continue
        try:
            capacity = int(_pick(raw, "maxCapacity", "max_capacity", default=0))
        except (TypeError, ValueError):
            capacity = 0
        teams.append(
            {
                "team_id": str(team_id),
                "name": str(_pick(raw, "name", default=team_id)),
                "type": str(_pick(raw, "type", default="")),
                "max_capacity": capacity,
                "current_size": _pick(raw, "currentSize", "current_size", default=0),
                "required_skills": str(_pick(raw, "requiredSkills", "required_skills", default="")),
                "description": str(_pick(raw, "description", default="")),
            }
        )
    return teams


def _resolve_preferences(prefs: list[str], ids: set[str], by_name: dict[str, str]) -> list[str]:
    """Keep team ids as-is; map entries that are team names onto their id.

    Unknown entries are kept so the allocator can report them as unavailable.
    """
    out = []
    for pref in prefs:
        if pref in ids:
            out.append(pref)
            continue
        out.append(by_name.get(canonical_name(pref), pref))
    return out


def _normalize_applications(rows: list[dict[str, Any]], teams: list[dict[str, Any]]) -> list[dict[str, Any]]:
    ids = {t["team_id"] for t in teams}
    by_name = {canonical_name(t["name"]): t["team_id"] for t in teams}

    applications: list[dict[str, Any]] = []
    for raw in rows:
        app_id = _pick(raw, "id", "application_id")
        if app_id is None:
            continue
        name = _pick(raw, "fullName", "full_name")
        if not name:
            name = full_name(raw.get("firstName", ""), raw.get("lastName", ""))

        assigned = _pick(raw, "assignedTeamId", "assigned_team_id")
        applications.append(
            {
                "application_id": str(app_id),
                "full_name": str(name or ""),
                "email": str(_pick(raw, "email", default="")),
                "team_preferences": _resolve_preferences(
                    as_str_list(_pick(raw, "teamPreferences", "team_preferences")), ids, by_name
                ),
                "skills": as_str_list(raw.get("skills")),
                "status": str(_pick(raw, "status", default="pending")).strip().lower(),
                "assigned_team_id": str(assigned) if assigned is not None else None,
                "assignment_reason": _pick(raw, "assignmentReason", "assignment_reason"),
                "submitted_at": _parse_dt_any(_pick(raw, "submittedAt", "submitted_at")),
            }
        )
    return applications


def _normalize_absences(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    absences: list[dict[str, Any]] = []
    for raw in rows:
        app_id = _pick(raw, "applicationId", "application_id")
        if app_id is None:
            continue
        absences.append(
            {
                "absence_id": str(_pick(raw, "id", "absence_id", default="")),
                "application_id": str(app_id),
                "reason": str(_pick(raw, "reason", default="")),
                "start_date": _parse_dt_any(_pick(raw, "startDate", "start_date")),
                "end_date": _parse_dt_any(_pick(raw, "endDate", "end_date")) or None,
                "is_active": bool(_pick(raw, "isActive", "is_active", default=True)),
            }
        )
    return absences


def build_snapshot(data: SnapshotBuildInput) -> dict[str, Any]:
    payload = data.payload
    teams = _normalize_teams(payload.get("teams", []) or [])
    applications = _normalize_applications(payload.get("applications", []) or [], teams)
    absences = _normalize_absences(payload.get("absences", []) or [])

    return {
        "snapshot_id": f"snap-{uuid4().hex[:12]}",
        "generated_at": now_utc_iso(),
        "organization": data.organization,
        "applications": applications,
        "teams": teams,
        "absences": absences,
        "metadata": {
            "source": "portal",
            "counts": {
                "applications": len(applications),
                "teams": len(teams),
                "absences": len(absences),
                "pending": sum(1 for a in applications if a["status"] == "pending"),
            },
        },
    }
