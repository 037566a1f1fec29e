from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Optional

from dateutil import tz as dateutil_tz

MINUTE_MS = 60_000
HOUR_MS = 60 * MINUTE_MS

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def resolve_tz(name: Optional[str]) -> tzinfo:
    value = (name or "").strip()
    if not value or value.lower() in {"local", "system"}:
        return dateutil_tz.tzlocal()
    if value.upper() in {"UTC", "Z", "GMT"}:
        return timezone.utc
    zone = dateutil_tz.gettz(value)
    if zone is None:
        raise ValueError(f"Invalid timezone identifier: {value!r}")
    return zone


def to_datetime(instant: int, zone: Optional[tzinfo] = None) -> datetime:
    utc = _EPOCH + timedelta(milliseconds=instant)
    return utc.astimezone(zone or dateutil_tz.tzlocal())


def to_instant(moment: datetime, zone: Optional[tzinfo] = None) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=zone or dateutil_tz.tzlocal())
    return (moment - _EPOCH) // timedelta(milliseconds=1)


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def is_leap_year(year: int) -> bool:
    return calendar.isleap(year)


def js_weekday(day: date) -> int:
    """Weekday index with Sunday as 0, as stored in recurrence rules."""
    return (day.weekday() + 1) % 7


def shift_month(year: int, month: int, months: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def add_months(base: datetime, months: int, day: Optional[int] = None) -> datetime:
    # Jan 31 + 1 month is Feb 28/29, never Mar 3
    year, month = shift_month(base.year, base.month, months)
    wanted = base.day if day is None else day
    return base.replace(year=year, month=month, day=min(max(wanted, 1), days_in_month(year, month)))


def add_years(base: datetime, years: int) -> datetime:
    year = base.year + years
    day = base.day
    if base.month == 2 and day == 29 and not is_leap_year(year):
        day = 28
    return base.replace(year=year, day=day)


def add_days(base: datetime, days: int) -> datetime:
    return base + timedelta(days=days)
