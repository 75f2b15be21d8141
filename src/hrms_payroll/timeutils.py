"""Date and time helpers.

All instants are stored in UTC. SQLite hands back naive datetimes, so values
read from storage go through ensure_utc before any arithmetic.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return value as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def week_bounds(day: date) -> tuple[date, date]:
    """Monday and Sunday of the week containing day."""
    week_start = day - timedelta(days=day.weekday())
    return week_start, week_start + timedelta(days=6)


def local_date(instant: datetime, tz_name: str) -> date:
    """Calendar date of instant in the named timezone."""
    return ensure_utc(instant).astimezone(ZoneInfo(tz_name)).date()
