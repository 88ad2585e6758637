"""Lightweight roster statistics and run evaluation.

All functions are pure dict-in / dict-out.
"""

from __future__ import annotations

import statistics
from collections import Counter
from typing import Any

from assignment_core.allocator import compute_occupancy


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _stats(values: list[float]) -> dict[str, float]:
    """Basic distribution statistics."""
    if not values:
        return {"mean": 0, "median": 0, "std": 0, "min": 0, "max": 0}
    return {
        "mean": round(statistics.mean(values), 2),
        "median": round(statistics.median(values), 2),
        "std": round(statistics.stdev(values), 2) if len(values) > 1 else 0.0,
        "min": round(min(values), 2),
        "max": round(max(values), 2),
    }


# ---------------------------------------------------------------------------
# Roster statistics
# ---------------------------------------------------------------------------


def application_stats(snapshot: dict[str, Any]) -> dict[str, Any]:
    """Status counts plus per-team roster size, from a snapshot."""
    applications = snapshot.get("applications", [])
    teams = snapshot.get("teams", [])
    by_status = Counter(str(a.get("status") or "pending") for a in applications)
    occupancy = compute_occupancy(applications, teams)

    total = len(applications)
    assigned = by_status.get("assigned", 0)
    waitlisted = by_status.get("waitlisted", 0)
    return {
        "total": total,
        "assigned": assigned,
        "waitlisted": waitlisted,
        "pending": total - assigned - waitlisted,
        "active_absences": sum(1 for a in snapshot.get("absences", []) if a.get("is_active")),
        "teams": [
            {
                "team_id": t["team_id"],
                "name": t.get("name"),
                "members": occupancy.get(str(t["team_id"]), 0),
                "max_capacity": t.get("max_capacity"),
            }
            for t in teams
        ],
    }


# ---------------------------------------------------------------------------
# Run evaluation
# ---------------------------------------------------------------------------


def _rank_distribution(outcomes: list[dict[str, Any]]) -> dict[str, Any]:
    ranks = [float(o["preference_rank"]) for o in outcomes if o.get("preference_rank")]
    return {
        "stats": _stats(ranks),
        "histogram": dict(sorted(Counter(int(r) for r in ranks).items())),
    }


def _waitlist_analysis(outcomes: list[dict[str, Any]]) -> dict[str, Any]:
    waitlisted = [o for o in outcomes if o.get("new_status") == "waitlisted"]
    if not waitlisted:
        return {"count": 0}

    first_choice = Counter()
    unavailable = Counter()
    for o in waitlisted:
        for check in o.get("checks", []):
            if check.get("rank") == 1:
                first_choice[check.get("team_id")] += 1
            if check.get("result") == "unknown_team":
                unavailable[check.get("team_id")] += 1

    return {
        "count": len(waitlisted),
        "first_choice_demand": dict(first_choice.most_common()),
        "dangling_preferences": dict(unavailable.most_common()),
        "preference_list_length": _stats([float(len(o.get("checks", []))) for o in waitlisted]),
    }


def _utilization(teams: list[dict[str, Any]]) -> dict[str, Any]:
    fills = [float(t.get("fill_pct", 0)) for t in teams]
    return {
        "fill_pct": _stats(fills),
        "full_teams": sorted(t["name"] for t in teams if t.get("remaining") == 0),
        "open_seats": sum(int(t.get("remaining", 0)) for t in teams),
    }


def evaluate_run_lite(run: dict[str, Any]) -> dict[str, Any]:
    """Quality metrics for one run: placement, preference satisfaction, utilization."""
    outcomes = run.get("outcomes", [])
    summary = run.get("summary", {})
    processed = len(outcomes)
    assigned = summary.get("total_assigned", 0)

    return {
        "run_id": run.get("run_id"),
        "processed": processed,
        "placement_rate": round(assigned / processed * 100, 1) if processed else 0.0,
        "first_choice_rate": summary.get("first_choice_rate", 0.0),
        "preference_rank": _rank_distribution(outcomes),
        "waitlist": _waitlist_analysis(outcomes),
        "utilization": _utilization(run.get("teams", [])),
        "anomalies": len(run.get("anomalies", [])),
        "skipped": len(run.get("skipped", [])),
    }
