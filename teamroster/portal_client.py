from __future__ import annotations

import logging
from dataclasses import dataclass
from time import sleep
from typing import Any

import httpx

from .config import PortalConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReadOperation:
    method: str
    path: str


READ_ONLY_OPERATIONS: dict[str, ReadOperation] = {
    "applications": ReadOperation("GET", "/api/applications"),
    "teams": ReadOperation("GET", "/api/teams"),
    "absences": ReadOperation("GET", "/api/absences"),
}


class ReadOnlyPortalClient:
    """Strict read-only client for the membership portal REST API.

    Only the operation names listed in READ_ONLY_OPERATIONS are executable.
    Any unknown operation is rejected before any network request is sent.
    """

    def __init__(self, *, timeout_s: float = 30.0, retries: int = 3):
        self.timeout_s = timeout_s
        self.retries = max(1, retries)

    def _headers(self, cfg: PortalConfig) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {cfg.api_token}",
            "Accept": "application/json",
        }

    def _request(
        self,
        *,
        operation: str,
        cfg: PortalConfig,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        op = READ_ONLY_OPERATIONS.get(operation)
        if op is None:
            raise ValueError(f"Operation '{operation}' is not allowed in read-only mode")

        url = f"{cfg.base_url.rstrip('/')}{op.path}"

        last_exc: Exception | None = None
        for attempt in range(self.retries):
            try:
                resp = httpx.request(
                    op.method,
                    url,
                    headers=self._headers(cfg),
                    params=params,
                    timeout=self.timeout_s,
                )
                if resp.status_code >= 500 and attempt < self.retries - 1:
                    logger.warning("portal %s returned %s, retrying", operation, resp.status_code)
                    sleep(2**attempt)
                    continue
                resp.raise_for_status()
                return resp
            except (httpx.TimeoutException, httpx.ConnectError) as exc:
                last_exc = exc
                if attempt < self.retries - 1:
                    logger.warning("portal %s failed (%s), retrying", operation, exc)
                    sleep(2**attempt)
                    continue
                raise
        if last_exc:
            raise last_exc
        raise RuntimeError("request failed without an explicit exception")

    def _fetch_list(self, operation: str, cfg: PortalConfig) -> list[dict[str, Any]]:
        payload = self._request(operation=operation, cfg=cfg).json()
        if isinstance(payload, dict) and isinstance(payload.get("data"), list):
            return payload["data"]
        if isinstance(payload, list):
            return payload
        return []

    def fetch_applications(self, cfg: PortalConfig) -> list[dict[str, Any]]:
        return self._fetch_list("applications", cfg)

    def fetch_teams(self, cfg: PortalConfig) -> list[dict[str, Any]]:
        return self._fetch_list("teams", cfg)

    def fetch_absences(self, cfg: PortalConfig) -> list[dict[str, Any]]:
        return self._fetch_list("absences", cfg)

    def fetch_snapshot_payload(self, cfg: PortalConfig) -> dict[str, Any]:
        try:
            absences = self.fetch_absences(cfg)
        except httpx.HTTPStatusError:
            # older portal deployments do not expose absences
            logger.exception("absences fetch failed; continuing without absences")
            absences = []

        return {
            "applications": self.fetch_applications(cfg),
            "teams": self.fetch_teams(cfg),
            "absences": absences,
        }
