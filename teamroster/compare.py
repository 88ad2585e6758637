"""Run comparison -- side-by-side diff of two assignment runs."""

from __future__ import annotations

from collections import Counter
from typing import Any


def _run_summary(run: dict[str, Any]) -> dict[str, Any]:
    """Extract aggregate metrics from a run dict."""
    summary = run.get("summary", {})
    return {
        "run_id": run.get("run_id"),
        "snapshot_id": run.get("snapshot_id"),
        "generated_at": run.get("generated_at"),
        "processed": summary.get("total_processed", 0),
        "assigned": summary.get("total_assigned", 0),
        "waitlisted": summary.get("total_waitlisted", 0),
        "first_choice_rate": summary.get("first_choice_rate", 0.0),
        "team_occupancy": {t["team_id"]: t["occupancy_after"] for t in run.get("teams", [])},
    }


def _outcome_divergence(run_a: dict[str, Any], run_b: dict[str, Any]) -> dict[str, Any]:
    """Application-level agreement / divergence between two runs."""
    a_by_app = {o["application_id"]: o for o in run_a.get("outcomes", [])}
    b_by_app = {o["application_id"]: o for o in run_b.get("outcomes", [])}
    all_apps = set(a_by_app) | set(b_by_app)

    kinds: Counter = Counter()
    divergent: list[dict[str, Any]] = []

    for app_id in sorted(all_apps, key=str):
        a = a_by_app.get(app_id)
        b = b_by_app.get(app_id)
        if a is None or b is None:
            kind = "a_only" if b is None else "b_only"
        elif (a["new_status"], a.get("assigned_team_id")) == (b["new_status"], b.get("assigned_team_id")):
            kinds["same"] += 1
            continue
        elif a["new_status"] != b["new_status"]:
            kind = "different_status"
        else:
            kind = "different_team"

        kinds[kind] += 1
        divergent.append(
            {
                "application_id": app_id,
                "kind": kind,
                "a": {"status": a["new_status"], "team": a.get("assigned_team_id")} if a else None,
                "b": {"status": b["new_status"], "team": b.get("assigned_team_id")} if b else None,
            }
        )

    total = len(all_apps)
    return {
        "total_applications": total,
        "same": kinds.get("same", 0),
        "different_team": kinds.get("different_team", 0),
        "different_status": kinds.get("different_status", 0),
        "a_only": kinds.get("a_only", 0),
        "b_only": kinds.get("b_only", 0),
        "agreement_rate": round(kinds.get("same", 0) / total * 100, 1) if total else 100.0,
        "divergent": divergent,
    }


def compare_runs_impl(run_a: dict[str, Any], run_b: dict[str, Any]) -> dict[str, Any]:
    divergence = _outcome_divergence(run_a, run_b)
    return {
        "a": _run_summary(run_a),
        "b": _run_summary(run_b),
        "divergence": divergence,
        "identical": not divergence["divergent"],
    }
