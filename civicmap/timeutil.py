"""Timestamp helpers.

The store keeps naive UTC datetimes so that PostgreSQL and SQLite compare
them the same way. Everything entering the core goes through ``as_utc``.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_utc(value: Optional[datetime]) -> datetime:
    """Normalize to naive UTC. ``None`` means now; naive values are taken as UTC."""
    if value is None:
        return utcnow()
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def years_before(value: datetime, years: int) -> datetime:
    """Same calendar date ``years`` earlier; Feb 29 falls back to Feb 28."""
    try:
        return value.replace(year=value.year - years)
    except ValueError:
        return value.replace(year=value.year - years, day=28)


def next_after(value: datetime) -> datetime:
    return value + timedelta(microseconds=1)
