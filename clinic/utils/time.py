"""Datetime helpers shared by the models and the query engine."""

from datetime import UTC, date, datetime


def as_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime, reading naive values as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def day_of(value: datetime) -> date:
    """Calendar day of a datetime, in UTC."""
    return as_utc(value).date()
