"""
Timestamp utilities (stdlib-only).

All durable timestamps are UTC and written in one fixed-width format so
that string comparison in SQL orders them correctly (retention relies on
this).  Records keep full ISO-8601 for display.
"""

from __future__ import annotations

from datetime import UTC, datetime

#: Durable column format.  Fixed width, lexicographically sortable.
DB_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def to_iso8601(dt: datetime | None) -> str | None:
    """Convert datetime to ISO 8601 string."""
    if dt is None:
        return None
    return dt.isoformat()


def from_iso8601(s: str | None) -> datetime | None:
    """Parse ISO 8601 string to datetime (``Z`` suffix accepted)."""
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def to_db_timestamp(dt: datetime) -> str:
    """Render *dt* in the durable column format (converted to UTC)."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(UTC)
    return dt.strftime(DB_TIMESTAMP_FORMAT)
