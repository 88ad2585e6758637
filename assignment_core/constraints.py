"""Post-hoc validation of an assignment run against the roster invariants.

A run that passes leaves every team within capacity, places applicants only
in teams they ranked, and respects first-fit order. The runner calls this
before committing anything to the store.
"""

from __future__ import annotations

from typing import Any

from .allocator import compute_occupancy, remaining_capacity
from .reporter import team_capacity
from .eligibility import STATUS_ASSIGNED, STATUS_WAITLISTED, is_pending, normalize_preferences

VIOLATION_CODES = frozenset({
    "capacity_exceeded",
    "assigned_outside_preferences",
    "unknown_team",
    "first_fit_violation",
    "not_eligible",
    "missing_team_reference",
})


def _violation(application_id: Any, code: str, detail: str, team_id: Any = None) -> dict[str, Any]:
    return {
        "application_id": application_id,
        "team_id": team_id,
        "violation": code,
        "detail": detail,
    }


def validate_run_invariants(run: dict[str, Any], snapshot: dict[str, Any]) -> list[dict[str, Any]]:
    """Replay a run's outcomes in order and report every broken invariant.

    Returns one violation dict per problem; an empty list means the run is
    safe to commit.
    """
    violations: list[dict[str, Any]] = []
    teams = snapshot.get("teams", [])
    team_by_id = {str(t.get("team_id")): t for t in teams if t.get("team_id") is not None}
    app_by_id = {str(a.get("application_id")): a for a in snapshot.get("applications", [])}

    baseline = compute_occupancy(snapshot.get("applications", []), teams)
    occupancy = dict(baseline)

    def has_room(team_id: str) -> bool:
        team = team_by_id.get(team_id)
        if team is None:
            return False
        return remaining_capacity(team.get("max_capacity"), occupancy.get(team_id, 0)) > 0

    for outcome in run.get("outcomes", []):
        app_id = str(outcome.get("application_id"))
        source = app_by_id.get(app_id)

        if source is None or not is_pending(source):
            violations.append(_violation(app_id, "not_eligible", "outcome for an application that was not pending"))
            continue

        prefs = normalize_preferences(source.get("team_preferences"))
        status = outcome.get("new_status")

        if status == STATUS_WAITLISTED:
            open_teams = [t for t in prefs if has_room(t)]
            if open_teams:
                violations.append(
                    _violation(app_id, "first_fit_violation", f"waitlisted while {open_teams[0]} had room", open_teams[0])
                )
            continue

        if status != STATUS_ASSIGNED:
            continue

        team_id = outcome.get("assigned_team_id")
        if team_id is None:
            violations.append(_violation(app_id, "missing_team_reference", "assigned without a team"))
            continue
        team_id = str(team_id)

        if team_id not in team_by_id:
            violations.append(_violation(app_id, "unknown_team", f"team {team_id} does not exist", team_id))
            continue

        if team_id not in prefs:
            violations.append(
                _violation(app_id, "assigned_outside_preferences", f"team {team_id} not in {prefs}", team_id)
            )
        else:
            for earlier in prefs[: prefs.index(team_id)]:
                if has_room(earlier):
                    violations.append(
                        _violation(app_id, "first_fit_violation", f"higher-ranked {earlier} had room", earlier)
                    )
                    break

        occupancy[team_id] = occupancy.get(team_id, 0) + 1

    for team_id, team in team_by_id.items():
        capacity = team_capacity(team)
        occ = occupancy.get(team_id, 0)
        # overflow that predates the run is reported as an anomaly, not here
        if occ > capacity and occ > baseline.get(team_id, 0):
            violations.append(
                _violation(None, "capacity_exceeded", f"occupancy {occ} > capacity {capacity}", team_id)
            )

    return violations
