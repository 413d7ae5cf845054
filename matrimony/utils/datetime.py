"""Time utilities with timezone-aware defaults.

Every service works on aware UTC datetimes. Storage adapters call
:func:`to_storage` / :func:`ensure_utc` at their boundary so naive values never
reach quota arithmetic.
"""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta


def utc_now() -> datetime:
    """Return current UTC time with tzinfo."""

    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive values and convert aware ones to UTC."""

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_storage(value: datetime | None) -> datetime | None:
    """Naive UTC representation for DATETIME columns."""

    if value is None:
        return None
    return ensure_utc(value).replace(tzinfo=None)


def next_weekly_boundary(from_: datetime, tz: str = "UTC") -> datetime:
    """Return the next Monday 00:00 in ``tz`` strictly after ``from_``.

    A Monday input always moves a full week ahead, any other weekday moves
    to the coming Monday. The result is an aware UTC datetime.
    """

    zone = ZoneInfo(tz)
    local = ensure_utc(from_).astimezone(zone)
    days_ahead = 7 - local.weekday()
    boundary_date = local.date() + timedelta(days=days_ahead)
    boundary = datetime.combine(boundary_date, time.min, tzinfo=zone)
    return boundary.astimezone(timezone.utc)


def add_months(value: datetime, months: int) -> datetime:
    """Calendar month addition, clamping the day to the target month's end."""

    return value + relativedelta(months=months)


__all__ = ["utc_now", "ensure_utc", "to_storage", "next_weekly_boundary", "add_months"]
