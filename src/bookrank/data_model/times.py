"""Timestamp conversion for SQLite columns.

Timestamps are stored as UTC ISO-8601 strings with microsecond precision
so range predicates compare lexically.
"""

from datetime import UTC, datetime


def to_db_time(moment: datetime) -> str:
    """Normalize a timestamp to the stored UTC string form.

    Naive timestamps are taken to be UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).isoformat(timespec="microseconds")


def from_db_time(value: str | None) -> datetime | None:
    """Parse a stored timestamp."""
    if not value:
        return None
    return datetime.fromisoformat(value)
