"""
UTC timestamp utilities.

All envelopes, audit events, and execution records carry timezone-aware
UTC datetimes; serialization goes through ``to_iso8601`` so the wire format
is consistent. ``epoch_millis`` feeds run id generation.
"""

import time
from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def epoch_millis() -> int:
    """Milliseconds since the Unix epoch."""
    return int(time.time() * 1000)


def to_iso8601(dt: datetime | None) -> str | None:
    """Convert datetime to ISO 8601 string."""
    if dt is None:
        return None
    return dt.isoformat()


def from_iso8601(s: str | None) -> datetime | None:
    """Parse ISO 8601 string to a timezone-aware datetime.

    A trailing ``Z`` is accepted; naive values are assumed to be UTC.
    """
    if s is None:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    parsed = datetime.fromisoformat(s)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
