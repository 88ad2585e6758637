"""Render an assignment run to a multi-sheet XLSX workbook."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from .schemas import (
    OUTCOMES_COLS,
    SKIPPED_COLS,
    TEAM_FILL_COLS,
    fmt_bool,
    pipe_join,
)

_STATUS_FILLS = {
    "assigned": "E2EFDA",
    "waitlisted": "FCE4D6",
}


def _get_openpyxl():
    try:
        from openpyxl import Workbook
        from openpyxl.styles import Font, PatternFill
        return Workbook, Font, PatternFill
    except ImportError as exc:
        raise ImportError("openpyxl is required for XLSX export: pip install openpyxl") from exc


def _style_headers(worksheets):
    """Apply bold + blue fill to header row of each worksheet."""
    _, Font, PatternFill = _get_openpyxl()
    header_font = Font(bold=True)
    header_fill = PatternFill(start_color="D9E1F2", end_color="D9E1F2", fill_type="solid")
    for ws in worksheets:
        for cell in ws[1]:
            cell.font = header_font
            cell.fill = header_fill


def _autosize(ws) -> None:
    for column in ws.columns:
        width = max((len(str(c.value)) for c in column if c.value is not None), default=8)
        ws.column_dimensions[column[0].column_letter].width = min(width + 2, 60)


# ---------------------------------------------------------------------------
# Row builders
# ---------------------------------------------------------------------------

def _outcome_row(o: dict[str, Any]) -> dict[str, Any]:
    checks = o.get("checks", [])
    return {
        "application_id": o.get("application_id", ""),
        "full_name": o.get("full_name", ""),
        "submitted_at": o.get("submitted_at", ""),
        "previous_status": o.get("previous_status", ""),
        "new_status": o.get("new_status", ""),
        "assigned_team_id": o.get("assigned_team_id") or "",
        "team_name": o.get("team_name") or "",
        "preference_rank": o.get("preference_rank") or "",
        "reason": o.get("reason", ""),
        "full_preferences": pipe_join([c["team_id"] for c in checks if c.get("result") == "full"]),
        "unavailable_preferences": pipe_join([c["team_id"] for c in checks if c.get("result") == "unknown_team"]),
    }


def _team_row(t: dict[str, Any]) -> dict[str, Any]:
    return {**{c: t.get(c, "") for c in TEAM_FILL_COLS}, "over_capacity": fmt_bool(t.get("over_capacity", False))}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def render_xlsx(run: dict[str, Any], path: Path) -> Path:
    """Write Summary, Outcomes, Teams and Skipped sheets for one run."""
    Workbook, _, PatternFill = _get_openpyxl()
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    wb = Workbook()
    ws_summary = wb.active
    ws_summary.title = "Summary"
    ws_summary.append(["metric", "value"])
    ws_summary.append(["run_id", run.get("run_id", "")])
    ws_summary.append(["generated_at", run.get("generated_at", "")])
    for key, value in run.get("summary", {}).items():
        if isinstance(value, dict):
            value = ", ".join(f"{k}: {v}" for k, v in value.items())
        ws_summary.append([key, value])

    ws_outcomes = wb.create_sheet("Outcomes")
    ws_outcomes.append(OUTCOMES_COLS)
    for o in run.get("outcomes", []):
        row = _outcome_row(o)
        ws_outcomes.append([row[c] for c in OUTCOMES_COLS])
        color = _STATUS_FILLS.get(row["new_status"])
        if color:
            fill = PatternFill(start_color=color, end_color=color, fill_type="solid")
            ws_outcomes.cell(row=ws_outcomes.max_row, column=OUTCOMES_COLS.index("new_status") + 1).fill = fill

    ws_teams = wb.create_sheet("Teams")
    ws_teams.append(TEAM_FILL_COLS)
    for t in run.get("teams", []):
        row = _team_row(t)
        ws_teams.append([row[c] for c in TEAM_FILL_COLS])

    ws_skipped = wb.create_sheet("Skipped")
    ws_skipped.append(SKIPPED_COLS)
    for s in run.get("skipped", []):
        ws_skipped.append([s.get(c, "") for c in SKIPPED_COLS])

    sheets = [ws_summary, ws_outcomes, ws_teams, ws_skipped]
    _style_headers(sheets)
    for ws in sheets:
        _autosize(ws)

    wb.save(path)
    return path
