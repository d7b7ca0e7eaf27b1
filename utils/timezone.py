"""Aware-UTC datetimes only. Naive values are never produced here."""

from datetime import datetime, timezone


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def from_timestamp(seconds: int | float) -> datetime:
    """POSIX seconds (a JWT NumericDate, say) as an aware UTC datetime."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc)
