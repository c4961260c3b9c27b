"""Date-time helpers.

Timestamps are stored as naive UTC values, so every "now" in the service goes
through these helpers.
"""

from datetime import date, datetime, timezone


def utcnow() -> datetime:
    """Return the current UTC time without tzinfo."""

    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed to be UTC already."""

    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def utc_today(now: datetime | None = None) -> date:
    """Return the UTC calendar date for the provided timestamp."""

    current = to_naive_utc(now) if now else utcnow()
    return current.date()
