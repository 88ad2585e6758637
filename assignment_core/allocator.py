from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

from .eligibility import STATUS_ASSIGNED, STATUS_WAITLISTED, filter_eligible
from .reporter import (
    build_record_updates,
    build_summary,
    coerce_capacity,
    log_file_name,
    ordinal,
    render_run_log,
    team_capacity,
    team_fill_levels,
)
from .time_utils import now_utc_iso, submission_sort_key, to_utc_iso

logger = logging.getLogger(__name__)

CHECK_ASSIGNED = "assigned"
CHECK_FULL = "full"
CHECK_UNKNOWN_TEAM = "unknown_team"


@dataclass
class AllocationResult:
    outcomes: list[dict[str, Any]]
    occupancy_before: dict[str, int]
    occupancy_after: dict[str, int]


@dataclass
class PassState:
    occupancy: dict[str, int]
    outcomes: list[dict[str, Any]] = field(default_factory=list)


def _team_index(teams: list[dict[str, Any]]) -> dict[str, dict[str, Any]]:
    return {str(t.get("team_id")): t for t in teams if t.get("team_id") is not None}


def compute_occupancy(applications: list[dict[str, Any]], teams: list[dict[str, Any]]) -> dict[str, int]:
    """Derive occupancy from assigned applications; stored team counters are ignored."""
    occupancy = {team_id: 0 for team_id in _team_index(teams)}
    for app in applications:
        if str(app.get("status") or "").lower() != STATUS_ASSIGNED:
            continue
        team_id = app.get("assigned_team_id")
        if team_id is None or str(team_id) not in occupancy:
            continue
        occupancy[str(team_id)] += 1
    return occupancy


def remaining_capacity(capacity: Any, occupancy: int) -> int:
    return max(coerce_capacity(capacity) - int(occupancy), 0)


def capacity_anomalies(teams: list[dict[str, Any]], occupancy: dict[str, int]) -> list[dict[str, Any]]:
    anomalies = []
    for team_id, team in _team_index(teams).items():
        capacity = team_capacity(team)
        occ = int(occupancy.get(team_id, 0))
        if occ > capacity:
            logger.warning(
                "team %s occupancy %d exceeds capacity %d before run; treating as full",
                team_id,
                occ,
                capacity,
            )
            anomalies.append(
                {
                    "team_id": team_id,
                    "name": team.get("name") or team_id,
                    "max_capacity": capacity,
                    "occupancy": occ,
                    "excess": occ - capacity,
                }
            )
    return anomalies


def _describe_checks(checks: list[dict[str, Any]]) -> str:
    parts = []
    for c in checks:
        label = "full" if c["result"] == CHECK_FULL else "unavailable"
        parts.append(f"{ordinal(c['rank'])} preference {label}")
    return "; ".join(parts)


def _assigned_reason(rank: int, earlier: list[dict[str, Any]]) -> str:
    reason = f"assigned to {ordinal(rank)} preference"
    if earlier:
        reason += f" ({_describe_checks(earlier)})"
    return reason


def _waitlisted_reason(checks: list[dict[str, Any]]) -> str:
    if len(checks) == 1:
        return f"waitlisted: {_describe_checks(checks)}"
    if all(c["result"] == CHECK_FULL for c in checks):
        return f"waitlisted: all {len(checks)} preferences full"
    return f"waitlisted: no preferred team available ({_describe_checks(checks)})"


def _place(app: dict[str, Any], team_by_id: dict[str, dict[str, Any]], state: PassState) -> dict[str, Any]:
    checks: list[dict[str, Any]] = []

    for rank, team_id in enumerate(app.get("team_preferences", []), 1):
        team = team_by_id.get(team_id)
        if team is None:
            checks.append({"rank": rank, "team_id": team_id, "result": CHECK_UNKNOWN_TEAM, "remaining": 0})
            continue

        left = remaining_capacity(team.get("max_capacity"), state.occupancy.get(team_id, 0))
        if left <= 0:
            checks.append({"rank": rank, "team_id": team_id, "result": CHECK_FULL, "remaining": 0})
            continue

        earlier = list(checks)
        checks.append({"rank": rank, "team_id": team_id, "result": CHECK_ASSIGNED, "remaining": left})
        state.occupancy[team_id] = state.occupancy.get(team_id, 0) + 1
        return {
            "application_id": app.get("application_id"),
            "full_name": app.get("full_name", ""),
            "submitted_at": to_utc_iso(app.get("submitted_at")),
            "previous_status": app.get("status") or "pending",
            "new_status": STATUS_ASSIGNED,
            "assigned_team_id": team_id,
            "team_name": team.get("name") or team_id,
            "preference_rank": rank,
            "reason": _assigned_reason(rank, earlier),
            "checks": checks,
        }

    return {
        "application_id": app.get("application_id"),
        "full_name": app.get("full_name", ""),
        "submitted_at": to_utc_iso(app.get("submitted_at")),
        "previous_status": app.get("status") or "pending",
        "new_status": STATUS_WAITLISTED,
        "assigned_team_id": None,
        "team_name": None,
        "preference_rank": None,
        "reason": _waitlisted_reason(checks),
        "checks": checks,
    }


def allocate(
    eligible: list[dict[str, Any]],
    teams: list[dict[str, Any]],
    occupancy: dict[str, int],
) -> AllocationResult:
    """Greedy first-come-first-served placement.

    Applications are processed by submission time (ties by id); each takes the
    first ranked team with spare capacity or is waitlisted. ``occupancy`` is
    copied, never mutated, and neither are the teams or applications.
    """
    team_by_id = _team_index(teams)
    before = {team_id: int(occupancy.get(team_id, 0)) for team_id in team_by_id}
    state = PassState(occupancy=dict(before))

    for app in sorted(eligible, key=submission_sort_key):
        state.outcomes.append(_place(app, team_by_id, state))

    return AllocationResult(
        outcomes=state.outcomes,
        occupancy_before=before,
        occupancy_after=state.occupancy,
    )


def run_assignment(snapshot: dict[str, Any], *, now: str | None = None) -> dict[str, Any]:
    """Filter, allocate and report over a snapshot. Pure: nothing is persisted."""
    applications = snapshot.get("applications", [])
    teams = snapshot.get("teams", [])

    selection = filter_eligible(applications)
    occupancy = compute_occupancy(applications, teams)
    anomalies = capacity_anomalies(teams, occupancy)
    result = allocate(selection.eligible, teams, occupancy)

    fill = team_fill_levels(teams, result.occupancy_before, result.occupancy_after)
    run = {
        "run_id": f"run-{uuid4().hex[:12]}",
        "generated_at": now or now_utc_iso(),
        "snapshot_id": snapshot.get("snapshot_id"),
        "organization": snapshot.get("organization"),
        "outcomes": result.outcomes,
        "updates": build_record_updates(result.outcomes),
        "skipped": selection.skipped,
        "anomalies": anomalies,
        "teams": fill,
        "occupancy_before": result.occupancy_before,
        "occupancy_after": result.occupancy_after,
        "summary": build_summary(result.outcomes, selection.skipped, anomalies, fill),
        "explanation": {
            "notes": [
                "Applications are processed by submission time, ties broken by application id.",
                "Each application takes its highest-ranked team with spare capacity.",
                "Skills and required skills are advisory and do not affect placement.",
            ],
        },
    }
    run["log_file_name"] = log_file_name(run)
    run["log_text"] = render_run_log(run)
    return run


def explain_outcome(run: dict[str, Any], application_id: str) -> dict[str, Any]:
    for item in run.get("outcomes", []):
        if item.get("application_id") == application_id:
            return {
                "application_id": application_id,
                "applicant": item.get("full_name"),
                "status": item.get("new_status"),
                "team": item.get("team_name"),
                "preference_rank": item.get("preference_rank"),
                "reason": item.get("reason"),
                "checks": item.get("checks", []),
            }
    raise KeyError(f"application_id not found: {application_id}")
