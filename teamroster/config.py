from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


@dataclass(frozen=True)
class PortalConfig:
    base_url: str
    api_token: str


@dataclass(frozen=True)
class RuntimeConfig:
    portal_url: str
    artifact_root: Path
    db_path: Path
    organization: str


def load_env(dotenv_path: str | Path | None = None) -> None:
    path = Path(dotenv_path) if dotenv_path else None
    if path and path.exists():
        load_dotenv(path)
        return
    load_dotenv()


def runtime_config() -> RuntimeConfig:
    portal_url = os.getenv("TEAMROSTER_PORTAL_URL", "http://localhost:5000").rstrip("/")
    artifact_root = Path(os.getenv("TEAMROSTER_ARTIFACT_DIR", "./artifacts")).expanduser().resolve()
    artifact_root.mkdir(parents=True, exist_ok=True)
    db_path = Path(os.getenv("TEAMROSTER_DB_PATH", str(artifact_root / "teamroster.db"))).expanduser().resolve()
    organization = os.getenv("TEAMROSTER_ORGANIZATION", "")
    return RuntimeConfig(
        portal_url=portal_url,
        artifact_root=artifact_root,
        db_path=db_path,
        organization=organization,
    )


def get_portal_config() -> PortalConfig:
    base_url = os.getenv("TEAMROSTER_PORTAL_URL", "http://localhost:5000").rstrip("/")
    api_token = os.getenv("TEAMROSTER_PORTAL_TOKEN", "").strip()
    if not api_token:
        raise ValueError(
            "Missing membership portal credentials. "
            "Expected env var TEAMROSTER_PORTAL_TOKEN (and optionally TEAMROSTER_PORTAL_URL)."
        )
    return PortalConfig(base_url=base_url, api_token=api_token)
