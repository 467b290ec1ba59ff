"""Calendar-day helpers shared by the daily cap, streaks and stats.

Timestamps are stored in UTC. A "day" is a calendar day in the configured
activity timezone, so day boundaries are converted back to UTC for queries.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Normalize to an aware UTC datetime. Naive values are taken as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@lru_cache(maxsize=32)
def get_zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def local_date(dt: datetime, tz_name: str) -> date:
    """Calendar date of ``dt`` as seen in ``tz_name``."""
    return ensure_utc(dt).astimezone(get_zone(tz_name)).date()


def day_bounds(day: date, tz_name: str) -> tuple[datetime, datetime]:
    """Get [start, end) of ``day`` in ``tz_name`` expressed in UTC."""
    zone = get_zone(tz_name)
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def today(tz_name: str, now: datetime | None = None) -> date:
    return local_date(now or utcnow(), tz_name)
