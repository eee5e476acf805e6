"""
UTC time helpers.

Every timestamp the pipeline stores or compares is timezone-aware UTC.
Naive datetimes coming from older rows or user input are assumed to be UTC.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(tz=timezone.utc)


def as_utc(ts: datetime) -> datetime:
    """Return ``ts`` in UTC; naive values are taken to already be UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string to UTC; ``None`` or empty gives ``None``."""
    if not value:
        return None
    return as_utc(datetime.fromisoformat(value))
