"""Shared timestamp helpers used by the allocation ordering."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any

UTC = timezone.utc

_FRACTION = re.compile(r"([T ]\d{2}:\d{2}:\d{2})\.(\d+)")


def _pad_fraction(match: re.Match) -> str:
    # fromisoformat before 3.11 only accepts 3 or 6 fractional digits
    return f"{match.group(1)}.{match.group(2)[:6].ljust(6, '0')}"


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp (``Z`` suffix allowed) into an aware UTC datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        text = _FRACTION.sub(_pad_fraction, text, count=1)
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def submission_sort_key(application: dict[str, Any]) -> tuple[int, float, str]:
    """First-come-first-served key: timestamp ascending, then application id.

    Records without a parseable timestamp sort after every dated record.
    """
    ts = parse_timestamp(application.get("submitted_at"))
    app_id = str(application.get("application_id") or "")
    if ts is None:
        return (1, 0.0, app_id)
    return (0, ts.timestamp(), app_id)


def now_utc_iso() -> str:
    return datetime.now(UTC).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def to_utc_iso(value: Any) -> str:
    """Normalize a timestamp to ``YYYY-MM-DDTHH:MM:SSZ``; unparseable -> empty string."""
    dt = parse_timestamp(value)
    if dt is None:
        return ""
    return dt.replace(microsecond=0).isoformat().replace("+00:00", "Z")
