"""Tests for run summary, fill levels and the text log."""

from assignment_core.allocator import run_assignment
from assignment_core.reporter import build_summary, log_file_name, ordinal, render_run_log, team_fill_levels


def _run():
    snapshot = {
        "snapshot_id": "snap-r",
        "teams": [
            {"team_id": "B", "name": "Beta", "max_capacity": 1},
            {"team_id": "A", "name": "Alpha", "max_capacity": 2},
        ],
        "applications": [
            {"application_id": "1", "full_name": "One", "submitted_at": "2025-01-01T09:00:00Z",
             "team_preferences": ["B"], "status": "pending"},
            {"application_id": "2", "full_name": "Two", "submitted_at": "2025-01-01T09:01:00Z",
             "team_preferences": ["B", "A"], "status": "pending"},
            {"application_id": "3", "full_name": "Three", "submitted_at": "2025-01-01T09:02:00Z",
             "team_preferences": ["B"], "status": "pending"},
            {"application_id": "4", "full_name": "Four", "submitted_at": "2025-01-01T09:03:00Z",
             "team_preferences": [], "status": "pending"},
        ],
    }
    return run_assignment(snapshot, now="2025-03-01T12:00:00Z")


class TestOrdinal:
    def test_ordinals(self):
        assert [ordinal(n) for n in (1, 2, 3, 4, 9)] == ["1st", "2nd", "3rd", "4th", "9th"]
        assert ordinal(11) == "11th"
        assert ordinal(12) == "12th"
        assert ordinal(13) == "13th"
        assert ordinal(21) == "21st"


class TestSummary:
    def test_totals(self):
        summary = _run()["summary"]
        assert summary["total_processed"] == 3
        assert summary["total_assigned"] == 2
        assert summary["total_waitlisted"] == 1
        assert summary["total_skipped"] == 1

    def test_preference_rank_breakdown(self):
        summary = _run()["summary"]
        assert summary["assigned_by_preference_rank"] == {"1st": 1, "2nd": 1}
        assert summary["first_choice_rate"] == 50.0

    def test_capacity_totals(self):
        summary = _run()["summary"]
        assert summary["total_capacity"] == 3
        assert summary["total_occupancy"] == 2
        assert summary["teams_full"] == 1

    def test_reason_counts(self):
        summary = _run()["summary"]
        assert summary["reason_counts"]["waitlisted: 1st preference full"] == 1

    def test_empty_run(self):
        summary = build_summary([], [], [], [])
        assert summary["total_processed"] == 0
        assert summary["first_choice_rate"] == 0.0


class TestFillLevels:
    def test_sorted_by_name(self):
        rows = team_fill_levels(
            [{"team_id": "B", "name": "Beta", "max_capacity": 1}, {"team_id": "A", "name": "Alpha", "max_capacity": 4}],
            {"A": 1, "B": 0},
            {"A": 2, "B": 1},
        )
        assert [r["name"] for r in rows] == ["Alpha", "Beta"]
        alpha = rows[0]
        assert alpha["newly_assigned"] == 1
        assert alpha["remaining"] == 2
        assert alpha["fill_pct"] == 50.0
        assert alpha["over_capacity"] is False

    def test_malformed_capacity_coerced(self):
        rows = team_fill_levels(
            [{"team_id": "A", "name": "A", "max_capacity": "3.0"}, {"team_id": "B", "name": "B", "max_capacity": "n/a"}],
            {},
            {"A": 1},
        )
        assert [(r["max_capacity"], r["remaining"], r["fill_pct"]) for r in rows] == [(3, 2, 33.3), (0, 0, 0.0)]

    def test_over_capacity_flag(self):
        rows = team_fill_levels([{"team_id": "A", "name": "A", "max_capacity": 1}], {"A": 2}, {"A": 2})
        assert rows[0]["over_capacity"] is True
        assert rows[0]["remaining"] == 0


class TestRunLog:
    def test_file_name(self):
        assert log_file_name({"generated_at": "2025-03-01T12:00:00Z"}) == "team-assignments-2025-03-01T12-00-00.txt"
        assert log_file_name({}) == "team-assignments-unknown.txt"

    def test_sections(self):
        text = _run()["log_text"]
        for heading in ("TEAM ASSIGNMENT LOG", "SUMMARY", "TEAM FILL LEVELS", "ASSIGNMENTS", "SKIPPED"):
            assert heading in text
        assert "CAPACITY ANOMALIES" not in text

    def test_lines(self):
        text = _run()["log_text"]
        assert "Total processed:   3" in text
        assert "One -> Beta: assigned to 1st preference" in text
        assert "Two -> Alpha: assigned to 2nd preference (1st preference full)" in text
        assert "Three -> WAITLIST: waitlisted: 1st preference full" in text
        assert "Beta: 1/1 (+1 this run, 0 open)" in text
        assert "Four: no_preferences" in text

    def test_empty_run_log(self):
        run = run_assignment({"applications": [], "teams": []}, now="2025-03-01T12:00:00Z")
        text = render_run_log(run)
        assert "(no pending applications)" in text
        assert "(no teams)" in text
