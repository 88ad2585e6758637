"""teamroster MCP server.

Exposes the team assignment admin actions: auto-assign, dry-run preview,
run history and logs, roster statistics, manual overrides, and portal sync.
"""
from __future__ import annotations

import argparse
import os
from typing import Any

from mcp.server.fastmcp import FastMCP

from assignment_core.io import db_loader

from .config import get_portal_config, load_env, runtime_config
from .ingest import SnapshotBuildInput, build_snapshot
from .portal_client import ReadOnlyPortalClient
from .runner import AssignmentRunner, action_response
from .storage import (
    list_runs as _list_runs,
    list_snapshots as _list_snapshots,
    load_run as _load_run,
    load_run_log as _load_run_log,
    load_snapshot as _load_snapshot,
    save_snapshot as _save_snapshot,
)

mcp = FastMCP(
    "teamroster",
    host=os.getenv("HOST", "127.0.0.1"),
    port=int(os.getenv("PORT", "8000")),
    instructions=(
        "Team assignment back office for a student organization. "
        "Assigns pending applications to teams by ranked preference and capacity, "
        "first come first served, and waitlists the rest. "
        "One assignment run at a time; each run is committed atomically."
    ),
)

_ENV_FILE: str | None = None
_RUNNER: AssignmentRunner | None = None


def _config():
    load_env(_ENV_FILE or os.getenv("TEAMROSTER_ENV_FILE"))
    return runtime_config()


def _runner() -> AssignmentRunner:
    global _RUNNER
    if _RUNNER is None:
        cfg = _config()
        db_loader.init_db(cfg.db_path)
        _RUNNER = AssignmentRunner(
            db_path=cfg.db_path,
            artifact_root=cfg.artifact_root,
            organization=cfg.organization,
        )
    return _RUNNER


# -- Assignment --

@mcp.tool()
def auto_assign_teams() -> dict[str, Any]:
    """Assign every pending application to a team, or waitlist it, and commit the result.

    Returns the run summary, per-application outcomes, and the run log
    (log_file_name / log_file_content) for download.
    """
    run = _runner().run()
    return action_response(run)


@mcp.tool()
def preview_assignment() -> dict[str, Any]:
    """Dry run: compute assignments for current pending applications without saving them."""
    run = _runner().preview()
    return {k: v for k, v in run.items() if k != "log_text"}


@mcp.tool()
def application_stats() -> dict[str, Any]:
    """Count applications by status, plus active absences and per-team roster sizes."""
    from .stats import application_stats as _application_stats

    return _application_stats(db_loader.load_snapshot_from_db(_runner().db_path))


# -- Run history --

@mcp.tool()
def list_runs(limit: int = 20) -> list[dict[str, Any]]:
    """List run manifests (committed and previews), newest first."""
    return _list_runs(_config().artifact_root, limit=limit)


@mcp.tool()
def load_run(run_id: str | None = None) -> dict[str, Any]:
    """Load a full run JSON by ID (or the latest committed run if omitted)."""
    return _load_run(_config().artifact_root, run_id=run_id)


@mcp.tool()
def get_run_log(run_id: str | None = None) -> dict[str, str]:
    """Return the downloadable text log of a run."""
    name, text = _load_run_log(_config().artifact_root, run_id=run_id)
    return {"log_file_name": name, "log_file_content": text}


@mcp.tool()
def evaluate_run(run_id: str | None = None) -> dict[str, Any]:
    """Placement rate, preference satisfaction and team utilization for a run."""
    from .stats import evaluate_run_lite

    return evaluate_run_lite(_load_run(_config().artifact_root, run_id=run_id))


@mcp.tool()
def compare_runs(run_id_a: str, run_id_b: str) -> dict[str, Any]:
    """Compare two runs side by side: totals, team occupancy, per-application divergence."""
    from .compare import compare_runs_impl

    root = _config().artifact_root
    return compare_runs_impl(_load_run(root, run_id=run_id_a), _load_run(root, run_id=run_id_b))


@mcp.tool()
def export_run(run_id: str | None = None, xlsx: bool = True) -> dict[str, str]:
    """Write summary.json, the run log and (optionally) an XLSX workbook for a run."""
    from assignment_core.io import render_xlsx, write_output

    root = _config().artifact_root
    run = _load_run(root, run_id=run_id)
    out_dir = root / "exports" / run["run_id"]
    written = write_output(run, out_dir)
    if xlsx:
        written["assignments.xlsx"] = render_xlsx(run, out_dir / "assignments.xlsx")
    return {name: str(path) for name, path in written.items()}


# -- Roster administration --

@mcp.tool()
def override_application_status(
    application_id: str,
    status: str,
    assigned_team_id: str | None = None,
    reason: str | None = None,
) -> dict[str, Any]:
    """Manually set an application's status (pending, assigned, waitlisted)."""
    db_loader.set_application_status(
        _runner().db_path,
        application_id,
        status,
        assigned_team_id=assigned_team_id,
        reason=reason,
    )
    return {"application_id": application_id, "status": status, "assigned_team_id": assigned_team_id}


@mcp.tool()
def delete_team(team_id: str) -> dict[str, Any]:
    """Delete a team; its members go back to pending for the next run."""
    reset = db_loader.delete_team(_runner().db_path, team_id)
    return {"team_id": team_id, "members_reset": reset}


# -- Portal sync --

@mcp.tool()
def sync_snapshot() -> dict[str, Any]:
    """Fetch applications, teams and absences from the membership portal into a local snapshot."""
    cfg = _config()
    raw_payload = ReadOnlyPortalClient().fetch_snapshot_payload(get_portal_config())
    snapshot = build_snapshot(SnapshotBuildInput(organization=cfg.organization, payload=raw_payload))
    target = _save_snapshot(cfg.artifact_root, snapshot, raw_payload)
    return {
        "snapshot_id": snapshot["snapshot_id"],
        "counts": snapshot["metadata"]["counts"],
        "path": str(target),
    }


@mcp.tool()
def list_snapshots(limit: int = 20) -> list[dict[str, Any]]:
    """List local snapshot manifests, newest first."""
    return _list_snapshots(_config().artifact_root, limit=limit)


@mcp.tool()
def load_snapshot(snapshot_id: str | None = None) -> dict[str, Any]:
    """Load a full snapshot JSON by ID (or latest if omitted)."""
    return _load_snapshot(_config().artifact_root, snapshot_id=snapshot_id)


@mcp.tool()
def preview_snapshot(snapshot_id: str | None = None) -> dict[str, Any]:
    """Run the allocator on a stored portal snapshot without touching the store."""
    from assignment_core.allocator import run_assignment
    from assignment_core.constraints import validate_run_invariants

    snapshot = _load_snapshot(_config().artifact_root, snapshot_id=snapshot_id)
    run = run_assignment(snapshot)
    run["violations"] = validate_run_invariants(run, snapshot)
    return {k: v for k, v in run.items() if k != "log_text"}


# -- Server entrypoints --

async def _run_http() -> None:
    import uvicorn
    from starlette.middleware.base import BaseHTTPMiddleware
    from starlette.responses import JSONResponse, PlainTextResponse
    from starlette.routing import Route

    api_key = os.getenv("MCP_API_KEY")

    class BearerAuth(BaseHTTPMiddleware):
        async def dispatch(self, request, call_next):
            if request.url.path == "/health":
                return await call_next(request)
            auth = request.headers.get("authorization", "")
            if not auth.startswith("Bearer ") or auth[7:] != api_key:
                return JSONResponse({"error": "unauthorized"}, status_code=401)
            return await call_next(request)

    starlette_app = mcp.streamable_http_app()

    if api_key:
        starlette_app.add_middleware(BearerAuth)

    starlette_app.routes.append(
        Route("/health", lambda r: PlainTextResponse("ok"))
    )

    config = uvicorn.Config(
        starlette_app,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8080")),
        log_level="info",
    )
    await uvicorn.Server(config).serve()


def main() -> None:
    global _ENV_FILE

    parser = argparse.ArgumentParser(description="Run teamroster MCP server")
    parser.add_argument("--env-file", default=None, help="Path to .env file")
    parser.add_argument(
        "--transport",
        default=None,
        choices=["stdio", "sse", "streamable-http"],
        help="MCP transport (default: streamable-http when PORT is set, else stdio)",
    )
    args = parser.parse_args()
    _ENV_FILE = args.env_file

    transport = args.transport
    if transport is None:
        transport = "streamable-http" if os.getenv("PORT") else "stdio"

    if transport == "streamable-http":
        import anyio
        anyio.run(_run_http)
    else:
        mcp.run(transport=transport)


if __name__ == "__main__":
    main()
