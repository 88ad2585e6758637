from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def _json_dump(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, ensure_ascii=False)


def _json_load(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def snapshot_root(artifact_root: Path) -> Path:
    path = artifact_root / "snapshots"
    path.mkdir(parents=True, exist_ok=True)
    return path


def run_root(artifact_root: Path) -> Path:
    path = artifact_root / "runs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def _list_manifests(root: Path, limit: int) -> list[dict[str, Any]]:
    manifests: list[dict[str, Any]] = []
    for child in root.iterdir():
        if not child.is_dir():
            continue
        manifest_file = child / "manifest.json"
        if not manifest_file.exists():
            continue
        try:
            manifests.append(_json_load(manifest_file))
        except (OSError, ValueError):
            logger.exception("unreadable manifest %s", manifest_file)
            continue
    manifests.sort(key=lambda row: row.get("generated_at", ""), reverse=True)
    return manifests[:limit]


def save_snapshot(artifact_root: Path, snapshot: dict[str, Any], raw_payload: dict[str, Any] | None = None) -> Path:
    root = snapshot_root(artifact_root)
    sid = snapshot["snapshot_id"]
    target = root / sid
    (target / "normalized").mkdir(parents=True, exist_ok=True)

    _json_dump(target / "normalized" / "snapshot.json", snapshot)
    for key, value in (raw_payload or {}).items():
        _json_dump(target / "raw" / f"{key}.json", value)

    manifest = {
        "snapshot_id": sid,
        "organization": snapshot.get("organization"),
        "generated_at": snapshot.get("generated_at"),
        "counts": snapshot.get("metadata", {}).get("counts", {}),
        "path": str(target.resolve()),
    }
    _json_dump(target / "manifest.json", manifest)
    _json_dump(root / "latest.json", manifest)
    return target


def list_snapshots(artifact_root: Path, limit: int = 20) -> list[dict[str, Any]]:
    return _list_manifests(snapshot_root(artifact_root), limit)


def load_snapshot(artifact_root: Path, snapshot_id: str | None = None) -> dict[str, Any]:
    root = snapshot_root(artifact_root)
    manifest_path = root / snapshot_id / "manifest.json" if snapshot_id else root / "latest.json"
    if not manifest_path.exists():
        raise FileNotFoundError("snapshot manifest not found")
    sid = _json_load(manifest_path)["snapshot_id"]
    path = root / sid / "normalized" / "snapshot.json"
    if not path.exists():
        raise FileNotFoundError(f"snapshot payload not found: {sid}")
    return _json_load(path)


def save_run(artifact_root: Path, run: dict[str, Any], *, committed: bool) -> Path:
    """Store the run JSON, its downloadable log and a manifest.

    Only committed runs move ``latest.json``; previews are kept for audit.
    """
    root = run_root(artifact_root)
    rid = run["run_id"]
    target = root / rid
    target.mkdir(parents=True, exist_ok=True)
    _json_dump(target / "run.json", run)

    log_name = run.get("log_file_name") or "run_log.txt"
    (target / log_name).write_text(run.get("log_text", ""), encoding="utf-8")

    manifest = {
        "run_id": rid,
        "snapshot_id": run.get("snapshot_id"),
        "generated_at": run.get("generated_at"),
        "committed": committed,
        "log_file_name": log_name,
        "counts": {
            k: run.get("summary", {}).get(k, 0)
            for k in ("total_processed", "total_assigned", "total_waitlisted", "total_skipped")
        },
        "path": str(target.resolve()),
    }
    _json_dump(target / "manifest.json", manifest)
    if committed:
        _json_dump(root / "latest.json", manifest)
    return target


def list_runs(artifact_root: Path, limit: int = 20) -> list[dict[str, Any]]:
    return _list_manifests(run_root(artifact_root), limit)


def _run_manifest(artifact_root: Path, run_id: str | None) -> dict[str, Any]:
    root = run_root(artifact_root)
    manifest_path = root / run_id / "manifest.json" if run_id else root / "latest.json"
    if not manifest_path.exists():
        raise FileNotFoundError("run manifest not found")
    return _json_load(manifest_path)


def load_run(artifact_root: Path, run_id: str | None = None) -> dict[str, Any]:
    manifest = _run_manifest(artifact_root, run_id)
    path = run_root(artifact_root) / manifest["run_id"] / "run.json"
    if not path.exists():
        raise FileNotFoundError(f"run payload not found: {manifest['run_id']}")
    return _json_load(path)


def load_run_log(artifact_root: Path, run_id: str | None = None) -> tuple[str, str]:
    """Return (file name, text) of a run's log."""
    manifest = _run_manifest(artifact_root, run_id)
    path = run_root(artifact_root) / manifest["run_id"] / manifest["log_file_name"]
    if not path.exists():
        raise FileNotFoundError(f"run log not found: {manifest['run_id']}")
    return manifest["log_file_name"], path.read_text(encoding="utf-8")
