"""Narrow the application pool to records still awaiting placement."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

STATUS_PENDING = "pending"
STATUS_ASSIGNED = "assigned"
STATUS_WAITLISTED = "waitlisted"

APPLICATION_STATUSES = (STATUS_PENDING, STATUS_ASSIGNED, STATUS_WAITLISTED)

MAX_PREFERENCES = 9


@dataclass
class EligibilityResult:
    eligible: list[dict[str, Any]] = field(default_factory=list)
    skipped: list[dict[str, Any]] = field(default_factory=list)


def normalize_preferences(prefs: Any) -> list[str]:
    """Return team ids in rank order, blanks removed, repeats keeping the higher rank."""
    if not prefs or isinstance(prefs, (str, bytes)):
        return []
    seen: set[str] = set()
    out: list[str] = []
    for raw in prefs:
        if raw is None:
            continue
        team_id = str(raw).strip()
        if not team_id or team_id in seen:
            continue
        seen.add(team_id)
        out.append(team_id)
    return out


def is_pending(application: dict[str, Any]) -> bool:
    return str(application.get("status") or STATUS_PENDING).strip().lower() == STATUS_PENDING


def filter_eligible(applications: list[dict[str, Any]]) -> EligibilityResult:
    """Select pending applications with at least one ranked preference.

    Placed or waitlisted applications are excluded without comment. Pending
    ones with no usable preference are reported in ``skipped`` instead of
    raising. The input dicts are never mutated.
    """
    result = EligibilityResult()
    for app in applications:
        if not is_pending(app):
            continue
        prefs = normalize_preferences(app.get("team_preferences"))
        if not prefs:
            result.skipped.append(
                {
                    "application_id": app.get("application_id"),
                    "full_name": app.get("full_name", ""),
                    "reason": "no_preferences",
                }
            )
            continue
        result.eligible.append({**app, "team_preferences": prefs})
    return result
