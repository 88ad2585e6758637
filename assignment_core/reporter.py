"""Turn allocator outcomes into record updates, a run summary and a text log."""

from __future__ import annotations

from collections import Counter
from typing import Any

from .eligibility import STATUS_ASSIGNED, STATUS_WAITLISTED
from .time_utils import parse_timestamp


def coerce_capacity(value: Any) -> int:
    """Capacity as a non-negative int; "2.0" -> 2 like the CSV reader, garbage -> 0."""
    try:
        capacity = int(float(value or 0))
    except (TypeError, ValueError, OverflowError):
        capacity = 0
    return max(capacity, 0)


def team_capacity(team: dict[str, Any]) -> int:
    return coerce_capacity(team.get("max_capacity"))


def ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def build_record_updates(outcomes: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """One status/assignment update per processed application."""
    return [
        {
            "application_id": o["application_id"],
            "status": o["new_status"],
            "assigned_team_id": o.get("assigned_team_id"),
            "assignment_reason": o.get("reason", ""),
        }
        for o in outcomes
    ]


def team_fill_levels(
    teams: list[dict[str, Any]],
    occupancy_before: dict[str, int],
    occupancy_after: dict[str, int],
) -> list[dict[str, Any]]:
    rows = []
    for team in teams:
        team_id = str(team.get("team_id"))
        capacity = team_capacity(team)
        before = int(occupancy_before.get(team_id, 0))
        after = int(occupancy_after.get(team_id, 0))
        rows.append(
            {
                "team_id": team_id,
                "name": team.get("name") or team_id,
                "max_capacity": capacity,
                "occupancy_before": before,
                "occupancy_after": after,
                "newly_assigned": after - before,
                "remaining": max(capacity - after, 0),
                "fill_pct": round(after / capacity * 100, 1) if capacity > 0 else 0.0,
                "over_capacity": after > capacity,
                "required_skills": team.get("required_skills") or "",
            }
        )
    rows.sort(key=lambda r: (str(r["name"]).lower(), r["team_id"]))
    return rows


def build_summary(
    outcomes: list[dict[str, Any]],
    skipped: list[dict[str, Any]],
    anomalies: list[dict[str, Any]],
    fill: list[dict[str, Any]],
) -> dict[str, Any]:
    assigned = [o for o in outcomes if o["new_status"] == STATUS_ASSIGNED]
    waitlisted = [o for o in outcomes if o["new_status"] == STATUS_WAITLISTED]
    by_rank = Counter(ordinal(int(o["preference_rank"])) for o in assigned if o.get("preference_rank"))
    first_choice = by_rank.get(ordinal(1), 0)

    return {
        "total_processed": len(outcomes),
        "total_assigned": len(assigned),
        "total_waitlisted": len(waitlisted),
        "total_skipped": len(skipped),
        "first_choice_rate": round(first_choice / len(assigned) * 100, 1) if assigned else 0.0,
        "assigned_by_preference_rank": dict(sorted(by_rank.items(), key=lambda kv: int(kv[0][:-2]))),
        "reason_counts": dict(Counter(o.get("reason", "") for o in outcomes).most_common()),
        "teams_full": sum(1 for t in fill if t["remaining"] == 0),
        "total_capacity": sum(t["max_capacity"] for t in fill),
        "total_occupancy": sum(t["occupancy_after"] for t in fill),
        "capacity_anomalies": len(anomalies),
    }


def log_file_name(run: dict[str, Any]) -> str:
    ts = parse_timestamp(run.get("generated_at"))
    stamp = ts.strftime("%Y-%m-%dT%H-%M-%S") if ts else "unknown"
    return f"team-assignments-{stamp}.txt"


def render_run_log(run: dict[str, Any]) -> str:
    """Plain-text audit log for one run, suitable for download."""
    summary = run.get("summary", {})
    team_names = {t["team_id"]: t["name"] for t in run.get("teams", [])}
    lines: list[str] = []

    lines.append("TEAM ASSIGNMENT LOG")
    lines.append("=" * 60)
    lines.append(f"Run:        {run.get('run_id', '')}")
    lines.append(f"Generated:  {run.get('generated_at', '')}")
    if run.get("snapshot_id"):
        lines.append(f"Snapshot:   {run['snapshot_id']}")
    lines.append("")

    lines.append("SUMMARY")
    lines.append("-" * 60)
    lines.append(f"Total processed:   {summary.get('total_processed', 0)}")
    lines.append(f"Total assigned:    {summary.get('total_assigned', 0)}")
    lines.append(f"Total waitlisted:  {summary.get('total_waitlisted', 0)}")
    lines.append(f"Skipped records:   {summary.get('total_skipped', 0)}")
    for rank, count in summary.get("assigned_by_preference_rank", {}).items():
        lines.append(f"  {rank} preference: {count}")
    lines.append("")

    lines.append("TEAM FILL LEVELS")
    lines.append("-" * 60)
    for t in run.get("teams", []):
        flag = "  OVER CAPACITY" if t["over_capacity"] else ""
        lines.append(
            f"{t['name']}: {t['occupancy_after']}/{t['max_capacity']} "
            f"(+{t['newly_assigned']} this run, {t['remaining']} open){flag}"
        )
    if not run.get("teams"):
        lines.append("(no teams)")
    lines.append("")

    anomalies = run.get("anomalies", [])
    if anomalies:
        lines.append("CAPACITY ANOMALIES")
        lines.append("-" * 60)
        for a in anomalies:
            lines.append(
                f"{a.get('name') or a['team_id']}: occupancy {a['occupancy']} exceeds "
                f"capacity {a['max_capacity']} before the run; treated as full"
            )
        lines.append("")

    lines.append("ASSIGNMENTS")
    lines.append("-" * 60)
    outcomes = run.get("outcomes", [])
    for o in outcomes:
        who = o.get("full_name") or o["application_id"]
        if o["new_status"] == STATUS_ASSIGNED:
            team = team_names.get(o["assigned_team_id"], o["assigned_team_id"])
            lines.append(f"{who} -> {team}: {o['reason']}")
        else:
            lines.append(f"{who} -> WAITLIST: {o['reason']}")
    if not outcomes:
        lines.append("(no pending applications)")

    skipped = run.get("skipped", [])
    if skipped:
        lines.append("")
        lines.append("SKIPPED")
        lines.append("-" * 60)
        for s in skipped:
            lines.append(f"{s.get('full_name') or s.get('application_id')}: {s['reason']}")

    return "\n".join(lines) + "\n"
