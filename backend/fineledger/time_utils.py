# Overview: UTC time helpers shared by models, services and reports.

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional


# SQLite strftime patterns for report buckets
PERIOD_FORMATS = {
    "day": "%Y-%m-%d",
    "week": "%Y-W%W",
    "month": "%Y-%m",
}


def utcnow() -> datetime:
    """Current time as a UTC-naive datetime; the only form stored in the ledger."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str], *, end_of_day: bool = False) -> Optional[datetime]:
    """
    Parse an ISO-8601 date or datetime into a UTC-naive datetime.

    - None / "" -> None
    - "2026-03-01" -> midnight UTC that day, or its last microsecond when
      end_of_day is set (inclusive upper bounds)
    - naive datetimes are taken as UTC
    - "...Z" and "+HH:MM" offsets are converted to UTC

    Raises ValueError for anything else.
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None

    if len(text) == 10:
        return datetime.combine(date.fromisoformat(text), time.max if end_of_day else time.min)

    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Render a stored datetime as ISO-8601 with a trailing 'Z', to the second."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"
