"""Date helpers shared by models, services and reports.

All timestamps are stored as naive UTC datetimes in plain `DateTime`
columns; SQLite drops tzinfo on round-trip, so values coming from clients
are normalised on the way in.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple

PERIOD_DAYS = {"30days": 30, "90days": 90}


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive UTC; naive values pass through."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def date_window(start: Optional[date], end: Optional[date]) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Return `[start, end)` datetimes for an inclusive date range.

    Either bound may be missing; the end date is inclusive so the upper
    bound is midnight of the following day.
    """
    lower = datetime.combine(start, time()) if start else None
    upper = datetime.combine(end, time()) + timedelta(days=1) if end else None
    return lower, upper


def period_start(period: str, now: Optional[datetime] = None) -> datetime:
    """Start of an analytics period (`30days`, `90days`, `12months`).

    Unknown periods fall back to 30 days. `12months` goes back one calendar
    year on the same day.
    """
    now = now or utcnow()
    if period == "12months":
        try:
            return now.replace(year=now.year - 1)
        except ValueError:
            # 29 February
            return now.replace(year=now.year - 1, day=28)
    return now - timedelta(days=PERIOD_DAYS.get(period, 30))


def month_starts(count: int, now: Optional[datetime] = None):
    """Return the first instants of the last `count` calendar months, oldest first."""
    now = now or utcnow()
    year, month = now.year, now.month
    out = []
    for _ in range(count):
        out.append(datetime(year, month, 1))
        month -= 1
        if month == 0:
            month = 12
            year -= 1
    return list(reversed(out))


def next_month(value: datetime) -> datetime:
    if value.month == 12:
        return datetime(value.year + 1, 1, 1)
    return datetime(value.year, value.month + 1, 1)


def days_between(earlier: datetime, later: datetime) -> int:
    return int((later - earlier).total_seconds() // 86400)
