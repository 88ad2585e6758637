"""Tests for the preference-capacity allocator."""

from __future__ import annotations

import copy

import pytest

from assignment_core.allocator import (
    allocate,
    capacity_anomalies,
    compute_occupancy,
    explain_outcome,
    remaining_capacity,
    run_assignment,
)
from assignment_core.constraints import validate_run_invariants


def _team(team_id, capacity, name=None):
    return {"team_id": team_id, "name": name or f"Team {team_id}", "max_capacity": capacity}


def _app(app_id, ts, prefs, status="pending", team=None):
    return {
        "application_id": app_id,
        "full_name": app_id,
        "submitted_at": ts,
        "team_preferences": prefs,
        "status": status,
        "assigned_team_id": team,
    }


def _snapshot(applications, teams):
    return {"snapshot_id": "snap-test", "applications": applications, "teams": teams}


def _by_id(run):
    return {o["application_id"]: o for o in run["outcomes"]}


T1 = "2025-01-01T09:00:00Z"
T2 = "2025-01-01T10:00:00Z"
T3 = "2025-01-01T11:00:00Z"


class TestScenarios:
    def test_second_applicant_falls_to_second_preference(self):
        run = run_assignment(_snapshot(
            [_app("X", T1, ["A", "B"]), _app("Y", T2, ["A", "B"])],
            [_team("A", 1), _team("B", 1)],
        ))
        out = _by_id(run)
        assert out["X"]["assigned_team_id"] == "A"
        assert out["X"]["reason"] == "assigned to 1st preference"
        assert out["Y"]["assigned_team_id"] == "B"
        assert out["Y"]["preference_rank"] == 2
        assert out["Y"]["reason"] == "assigned to 2nd preference (1st preference full)"

    def test_single_preference_full_waitlists(self):
        run = run_assignment(_snapshot(
            [_app("X", T1, ["A"]), _app("Y", T2, ["A"])],
            [_team("A", 1)],
        ))
        out = _by_id(run)
        assert out["X"]["new_status"] == "assigned"
        assert out["Y"]["new_status"] == "waitlisted"
        assert out["Y"]["assigned_team_id"] is None
        assert out["Y"]["reason"] == "waitlisted: 1st preference full"

    def test_dangling_preference_skipped(self):
        run = run_assignment(_snapshot([_app("Z", T1, ["GONE", "A"])], [_team("A", 1)]))
        z = _by_id(run)["Z"]
        assert z["assigned_team_id"] == "A"
        assert z["preference_rank"] == 2
        assert z["checks"][0] == {"rank": 1, "team_id": "GONE", "result": "unknown_team", "remaining": 0}
        assert z["reason"] == "assigned to 2nd preference (1st preference unavailable)"

    def test_rerun_after_commit_processes_nothing(self):
        apps = [_app("X", T1, ["A", "B"]), _app("Y", T2, ["A", "B"])]
        teams = [_team("A", 1), _team("B", 1)]
        first = run_assignment(_snapshot(apps, teams))
        committed = [
            {**a, "status": o["new_status"], "assigned_team_id": o["assigned_team_id"]}
            for a, o in zip(apps, first["outcomes"])
        ]
        second = run_assignment(_snapshot(committed, teams))
        assert second["summary"]["total_processed"] == 0
        assert second["updates"] == []
        assert second["occupancy_after"] == second["occupancy_before"] == {"A": 1, "B": 1}

    def test_all_preferences_full(self):
        run = run_assignment(_snapshot(
            [_app("X", T1, ["A"]), _app("Y", T2, ["B"]), _app("W", T3, ["A", "B"])],
            [_team("A", 1), _team("B", 1)],
        ))
        assert _by_id(run)["W"]["reason"] == "waitlisted: all 2 preferences full"

    def test_mixed_full_and_unknown_waitlist_reason(self):
        run = run_assignment(_snapshot(
            [_app("X", T1, ["A"]), _app("W", T2, ["A", "GONE"])],
            [_team("A", 1)],
        ))
        assert _by_id(run)["W"]["reason"] == (
            "waitlisted: no preferred team available (1st preference full; 2nd preference unavailable)"
        )


class TestOrdering:
    def test_earlier_submission_wins_regardless_of_input_order(self):
        run = run_assignment(_snapshot(
            [_app("late", T2, ["A"]), _app("early", T1, ["A"])],
            [_team("A", 1)],
        ))
        out = _by_id(run)
        assert out["early"]["new_status"] == "assigned"
        assert out["late"]["new_status"] == "waitlisted"
        assert [o["application_id"] for o in run["outcomes"]] == ["early", "late"]

    def test_tie_broken_by_application_id(self):
        run = run_assignment(_snapshot(
            [_app("b-2", T1, ["A"]), _app("a-1", T1, ["A"])],
            [_team("A", 1)],
        ))
        assert _by_id(run)["a-1"]["new_status"] == "assigned"
        assert _by_id(run)["b-2"]["new_status"] == "waitlisted"

    def test_offsets_compared_in_utc(self):
        # 10:30+02:00 is 08:30Z, before 09:00Z
        run = run_assignment(_snapshot(
            [_app("utc", T1, ["A"]), _app("cest", "2025-01-01T10:30:00+02:00", ["A"])],
            [_team("A", 1)],
        ))
        assert _by_id(run)["cest"]["new_status"] == "assigned"

    def test_two_digit_fraction_keeps_its_place(self):
        run = run_assignment(_snapshot(
            [_app("late", T2, ["A"]), _app("early", "2025-01-01T09:00:00.12Z", ["A"])],
            [_team("A", 1)],
        ))
        assert _by_id(run)["early"]["new_status"] == "assigned"
        assert _by_id(run)["late"]["new_status"] == "waitlisted"

    def test_unparseable_timestamp_sorts_last(self):
        run = run_assignment(_snapshot(
            [_app("bad", "yesterday", ["A"]), _app("good", T3, ["A"])],
            [_team("A", 1)],
        ))
        assert _by_id(run)["good"]["new_status"] == "assigned"
        assert _by_id(run)["bad"]["new_status"] == "waitlisted"


class TestCapacity:
    def test_existing_members_count_against_capacity(self):
        run = run_assignment(_snapshot(
            [_app("old", T1, ["A"], status="assigned", team="A"), _app("new", T2, ["A", "B"])],
            [_team("A", 1), _team("B", 3)],
        ))
        assert _by_id(run)["new"]["assigned_team_id"] == "B"

    def test_stored_current_size_is_ignored(self):
        team = {**_team("A", 1), "current_size": 1}
        run = run_assignment(_snapshot([_app("X", T1, ["A"])], [team]))
        assert _by_id(run)["X"]["assigned_team_id"] == "A"

    def test_never_exceeds_capacity(self):
        apps = [_app(f"app-{i:02d}", f"2025-01-01T09:{i:02d}:00Z", ["A", "B"]) for i in range(10)]
        run = run_assignment(_snapshot(apps, [_team("A", 3), _team("B", 2)]))
        assert run["occupancy_after"] == {"A": 3, "B": 2}
        assert run["summary"]["total_assigned"] == 5
        assert run["summary"]["total_waitlisted"] == 5

    def test_over_capacity_team_reported_and_treated_as_full(self, caplog):
        apps = [
            _app("m1", T1, ["A"], status="assigned", team="A"),
            _app("m2", T1, ["A"], status="assigned", team="A"),
            _app("new", T2, ["A"]),
        ]
        with caplog.at_level("WARNING"):
            run = run_assignment(_snapshot(apps, [_team("A", 1)]))
        assert run["anomalies"] == [
            {"team_id": "A", "name": "Team A", "max_capacity": 1, "occupancy": 2, "excess": 1}
        ]
        assert _by_id(run)["new"]["new_status"] == "waitlisted"
        assert "exceeds capacity" in caplog.text

    def test_remaining_capacity_clamped(self):
        assert remaining_capacity(3, 1) == 2
        assert remaining_capacity(1, 4) == 0
        assert remaining_capacity(None, 0) == 0
        assert remaining_capacity("x", 0) == 0
        assert remaining_capacity("2.0", 0) == 2
        assert remaining_capacity(-3, 0) == 0

    def test_decimal_string_capacity(self):
        snapshot = _snapshot([_app("X", T1, ["A", "B"])], [_team("A", "2.0"), _team("B", 1)])
        run = run_assignment(snapshot)
        assert _by_id(run)["X"]["assigned_team_id"] == "A"
        fill = {t["team_id"]: t for t in run["teams"]}
        assert fill["A"]["max_capacity"] == 2
        assert fill["A"]["remaining"] == 1
        assert validate_run_invariants(run, snapshot) == []

    def test_garbage_capacity_treated_as_full(self):
        snapshot = _snapshot(
            [_app("X", T1, ["A", "B"]), _app("Y", T2, ["A", "B"])],
            [_team("A", "ten"), _team("B", 1)],
        )
        run = run_assignment(snapshot)
        out = _by_id(run)
        assert out["X"]["assigned_team_id"] == "B"
        assert out["X"]["reason"] == "assigned to 2nd preference (1st preference full)"
        assert out["Y"]["new_status"] == "waitlisted"
        assert {t["team_id"]: t["max_capacity"] for t in run["teams"]} == {"A": 0, "B": 1}
        assert "Team A: 0/0" in run["log_text"]
        assert validate_run_invariants(run, snapshot) == []

    def test_garbage_capacity_with_members_is_an_anomaly(self):
        run = run_assignment(_snapshot(
            [_app("m", T1, ["A"], status="assigned", team="A"), _app("X", T2, ["A"])],
            [_team("A", None)],
        ))
        assert run["anomalies"][0]["max_capacity"] == 0
        assert _by_id(run)["X"]["new_status"] == "waitlisted"

    def test_compute_occupancy_ignores_unknown_and_unassigned(self):
        apps = [
            _app("a", T1, ["A"], status="assigned", team="A"),
            _app("b", T1, ["A"], status="assigned", team="GONE"),
            _app("c", T1, ["A"], status="waitlisted", team="A"),
        ]
        assert compute_occupancy(apps, [_team("A", 2), _team("B", 2)]) == {"A": 1, "B": 0}

    def test_capacity_anomalies_empty_when_within_limits(self):
        assert capacity_anomalies([_team("A", 2)], {"A": 2}) == []


class TestPurity:
    def test_inputs_not_mutated(self):
        snapshot = _snapshot([_app("X", T1, ["A", "A", ""]), _app("Y", T2, ["A"])], [_team("A", 1)])
        before = copy.deepcopy(snapshot)
        run_assignment(snapshot)
        assert snapshot == before

    def test_allocate_copies_occupancy(self):
        occupancy = {"A": 0}
        result = allocate([_app("X", T1, ["A"])], [_team("A", 1)], occupancy)
        assert occupancy == {"A": 0}
        assert result.occupancy_after == {"A": 1}
        assert result.occupancy_before == {"A": 0}

    def test_deterministic(self):
        apps = [_app(f"app-{i}", T1 if i % 2 else T2, ["A", "B", "C"]) for i in range(8)]
        teams = [_team("A", 2), _team("B", 2), _team("C", 1)]
        a = run_assignment(_snapshot(apps, teams), now="2025-03-01T12:00:00Z")
        b = run_assignment(_snapshot(list(reversed(apps)), teams), now="2025-03-01T12:00:00Z")
        assert a["outcomes"] == b["outcomes"]
        assert a["log_text"] == b["log_text"].replace(b["run_id"], a["run_id"])


class TestRunShape:
    def test_run_fields(self):
        run = run_assignment(_snapshot([_app("X", T1, ["A"])], [_team("A", 1)]), now="2025-03-01T12:00:00Z")
        assert run["run_id"].startswith("run-")
        assert run["snapshot_id"] == "snap-test"
        assert run["generated_at"] == "2025-03-01T12:00:00Z"
        assert run["log_file_name"] == "team-assignments-2025-03-01T12-00-00.txt"
        assert run["updates"] == [
            {
                "application_id": "X",
                "status": "assigned",
                "assigned_team_id": "A",
                "assignment_reason": "assigned to 1st preference",
            }
        ]

    def test_outcome_records_previous_status(self):
        run = run_assignment(_snapshot([_app("X", T1, ["A"])], [_team("A", 1)]))
        assert _by_id(run)["X"]["previous_status"] == "pending"
        assert _by_id(run)["X"]["submitted_at"] == T1

    def test_no_teams_waitlists_everyone(self):
        run = run_assignment(_snapshot([_app("X", T1, ["A"])], []))
        assert _by_id(run)["X"]["new_status"] == "waitlisted"
        assert _by_id(run)["X"]["reason"] == "waitlisted: 1st preference unavailable"


class TestExplainOutcome:
    def test_explains(self):
        run = run_assignment(_snapshot([_app("X", T1, ["A"])], [_team("A", 1, name="Alpha")]))
        info = explain_outcome(run, "X")
        assert info["team"] == "Alpha"
        assert info["reason"] == "assigned to 1st preference"
        assert info["checks"][0]["result"] == "assigned"

    def test_unknown_application(self):
        run = run_assignment(_snapshot([], [_team("A", 1)]))
        with pytest.raises(KeyError):
            explain_outcome(run, "missing")
