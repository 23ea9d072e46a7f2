"""Timestamp normalisation.

Stored and compared timestamps are naive and in server-local time, the
same clock ``datetime.now()`` reads. Timezone-aware values coming in from
clients are converted to that clock and stripped of their offset so that
every comparison is between naive datetimes.
"""

from datetime import datetime


def to_local_naive(value: datetime | None) -> datetime | None:
    """Convert an aware datetime to naive local time; naive values pass through."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse an ISO 8601 string (or take a datetime) and normalise it."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return to_local_naive(value)
