from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC timestamp; every fact and updated_at is stored this way."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Read a stored or client-supplied ISO-8601 timestamp as naive UTC.

    Empty values give None. A trailing "Z" or an explicit offset is
    converted to UTC; a value without offset is taken to be UTC already.
    """
    if value is None or not value.strip():
        return None

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Render a timestamp for JSON payloads, e.g. 2026-10-18T09:15:02.120431Z.

    Naive values are UTC. Microseconds are kept so that facts recorded
    within the same second still sort correctly.
    """
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.isoformat() + "Z"
