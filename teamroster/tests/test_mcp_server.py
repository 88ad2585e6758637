"""Exercise the MCP tool functions directly against a temporary store."""

import pytest

from assignment_core.io import db_loader
from teamroster import mcp_server


@pytest.fixture
def server(monkeypatch, tmp_path):
    monkeypatch.setenv("TEAMROSTER_ARTIFACT_DIR", str(tmp_path / "artifacts"))
    monkeypatch.setenv("TEAMROSTER_DB_PATH", str(tmp_path / "roster.db"))
    monkeypatch.setenv("TEAMROSTER_ORGANIZATION", "Robotics Society")
    monkeypatch.setattr(mcp_server, "_RUNNER", None)
    monkeypatch.setattr(mcp_server, "_ENV_FILE", str(tmp_path / "missing.env"))

    db = mcp_server._runner().db_path
    db_loader.insert_team(db, name="Robotics", max_capacity=1, team_id="A")
    db_loader.insert_application(
        db, full_name="X", email="x@example.org", team_preferences=["A"],
        submitted_at="2025-01-01T09:00:00Z", application_id="X",
    )
    db_loader.insert_application(
        db, full_name="Y", email="y@example.org", team_preferences=["A"],
        submitted_at="2025-01-01T10:00:00Z", application_id="Y",
    )
    return mcp_server


class TestTools:
    def test_auto_assign_and_stats(self, server):
        db_loader.insert_absence(server._runner().db_path, application_id="X", start_date="2025-02-01")
        response = server.auto_assign_teams()
        assert response["summary"]["total_assigned"] == 1
        assert server.application_stats() == {
            "total": 2,
            "assigned": 1,
            "waitlisted": 1,
            "pending": 0,
            "active_absences": 1,
            "teams": [{"team_id": "A", "name": "Robotics", "members": 1, "max_capacity": 1}],
        }

    def test_preview_leaves_store_untouched(self, server):
        preview = server.preview_assignment()
        assert "log_text" not in preview
        assert preview["violations"] == []
        assert server.application_stats()["pending"] == 2

    def test_run_history(self, server):
        run_id = server.auto_assign_teams()["run_id"]
        assert server.load_run()["run_id"] == run_id
        assert server.list_runs()[0]["run_id"] == run_id
        log = server.get_run_log(run_id)
        assert log["log_file_name"].startswith("team-assignments-")
        assert server.evaluate_run(run_id)["placement_rate"] == 50.0
        assert server.compare_runs(run_id, run_id)["identical"] is True

    def test_export_run(self, server, tmp_path):
        run_id = server.auto_assign_teams()["run_id"]
        written = server.export_run(run_id, xlsx=False)
        assert "summary.json" in written

    def test_override_and_delete_team(self, server):
        server.override_application_status("X", "assigned", assigned_team_id="A")
        assert server.delete_team("A") == {"team_id": "A", "members_reset": 1}
        assert server.application_stats()["pending"] == 2
