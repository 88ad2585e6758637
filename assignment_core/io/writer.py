"""Write summary.json and the plain-text run log from run_assignment() output.

Row-level outcome data lives in the run JSON artifact and in the XLSX
workbook; summary.json only carries the aggregates an admin dashboard needs.
"""

from __future__ import annotations

import json
from collections import Counter
from pathlib import Path

from assignment_core.reporter import render_run_log

# ---------------------------------------------------------------------------
# Lightweight helpers
# ---------------------------------------------------------------------------


def _assess(summary: dict, teams: list[dict], anomalies: list[dict]) -> list[dict]:
    """Generate traffic-light assessment bullets."""
    bullets: list[dict] = []
    processed = summary.get("total_processed", 0)

    if processed == 0:
        bullets.append({"level": "green", "text": "No pending applications -- nothing to assign"})
    else:
        placed_pct = summary.get("total_assigned", 0) / processed * 100
        if placed_pct >= 90:
            bullets.append({"level": "green", "text": f"Placement rate excellent ({placed_pct:.0f}%)"})
        elif placed_pct >= 70:
            bullets.append({"level": "yellow", "text": f"Placement rate moderate ({placed_pct:.0f}%)"})
        else:
            bullets.append({"level": "red", "text": f"Placement rate low ({placed_pct:.0f}%) -- teams are full"})

    first = summary.get("first_choice_rate", 0)
    if summary.get("total_assigned", 0) and first < 50:
        bullets.append({"level": "yellow", "text": f"Only {first:.0f}% placed in their 1st preference"})

    full = [t["name"] for t in teams if t.get("remaining") == 0]
    if full:
        bullets.append({"level": "yellow", "text": f"Full teams: {', '.join(full)}"})

    for a in anomalies:
        bullets.append({
            "level": "red",
            "text": f"{a.get('name') or a['team_id']} was over capacity before the run "
                    f"({a['occupancy']}/{a['max_capacity']})",
        })

    return bullets


def _build_summary_payload(run: dict) -> dict:
    summary = run.get("summary", {})
    teams = run.get("teams", [])
    anomalies = run.get("anomalies", [])
    outcomes = run.get("outcomes", [])

    waitlist_demand: Counter = Counter()
    for o in outcomes:
        if o.get("new_status") != "waitlisted":
            continue
        for check in o.get("checks", []):
            if check.get("rank") == 1:
                waitlist_demand[check.get("team_id")] += 1

    return {
        "run_id": run.get("run_id", ""),
        "generated_at": run.get("generated_at", ""),
        "snapshot_id": run.get("snapshot_id", ""),
        "organization": run.get("organization", ""),
        "totals": {
            "processed": summary.get("total_processed", 0),
            "assigned": summary.get("total_assigned", 0),
            "waitlisted": summary.get("total_waitlisted", 0),
            "skipped": summary.get("total_skipped", 0),
        },
        "preference_satisfaction": {
            "first_choice_rate": summary.get("first_choice_rate", 0.0),
            "by_rank": summary.get("assigned_by_preference_rank", {}),
        },
        "teams": [
            {
                "team_id": t["team_id"],
                "name": t["name"],
                "occupancy": t["occupancy_after"],
                "max_capacity": t["max_capacity"],
                "newly_assigned": t["newly_assigned"],
                "fill_pct": t["fill_pct"],
            }
            for t in teams
        ],
        "waitlist_first_choice_demand": dict(waitlist_demand.most_common()),
        "anomalies": anomalies,
        "assessment": _assess(summary, teams, anomalies),
        "log_file_name": run.get("log_file_name", ""),
    }


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def write_output(run: dict, directory: Path) -> dict[str, Path]:
    """Write summary.json and the run log into ``directory``.

    Returns {filename: Path} for every file written.
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    summary_path = directory / "summary.json"
    summary_path.write_text(
        json.dumps(_build_summary_payload(run), indent=2, ensure_ascii=False, default=str) + "\n",
        encoding="utf-8",
    )

    log_name = run.get("log_file_name") or "run_log.txt"
    log_path = directory / log_name
    log_path.write_text(run.get("log_text") or render_run_log(run), encoding="utf-8")

    return {"summary.json": summary_path, log_name: log_path}
