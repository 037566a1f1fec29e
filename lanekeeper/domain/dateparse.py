from __future__ import annotations

import logging
import re
from datetime import date, datetime, tzinfo
from typing import Optional

from dateutil import parser as date_parser

from .clock import (
    HOUR_MS,
    MINUTE_MS,
    add_days,
    add_months,
    days_in_month,
    js_weekday,
    to_datetime,
    to_instant,
)

logger = logging.getLogger(__name__)

DEFAULT_HOUR = 9

_NUMBER_WORDS = {
    "a": 1, "an": 1,
    "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10,
    "eleven": 11, "twelve": 12, "fifteen": 15, "twenty": 20,
    "thirty": 30, "forty-five": 45, "forty": 40, "sixty": 60,
}

_AMOUNT = "|".join([r"\d+", *(re.escape(word) for word in _NUMBER_WORDS)])
_RELATIVE_RE = re.compile(rf"\bin\s+({_AMOUNT})\s+(minute|hour|day|week|month)s?\b")

_TIME_RE = re.compile(
    r"(?<![\d:/\-])(\d{1,2})(?::(\d{2}))?\s*(am|pm)?(?![\d/\-])"
)

_WEEKDAYS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")
_NEXT_WEEKDAY_RE = re.compile(r"\bnext\s+(sun|mon|tue|wed|thu|fri|sat)")
_MONTHS = ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec")
_MONTH_DAY_RE = re.compile(r"\b([a-z]+)\s+(\d{1,2})(?![\d:])")
_SLASH_RE = re.compile(r"\b(\d{1,2})/(\d{1,2})(?:/(\d{2,4}))?\b")

_INVALID = object()


def parse_natural_date(text: Optional[str], now: int, tz: Optional[tzinfo] = None) -> Optional[int]:
    """Instant for text like "tomorrow 3pm", "in 2 hours", "next fri" or "1/5/26"; None when not understood."""
    if not text or not text.strip():
        return None
    try:
        return _parse(text.strip(), to_datetime(now, tz))
    except (OverflowError, ValueError):
        logger.debug("Date text out of range %r", text)
        return None


def _parse(raw: str, current: datetime) -> Optional[int]:
    lowered = raw.lower()

    offset = _relative_offset(lowered, current)
    if offset is not None:
        return offset

    clock = _extract_time(lowered)
    time_specified = clock is not None
    hour, minute = clock or (DEFAULT_HOUR, 0)

    day = _resolve_named_day(lowered, current.date())
    if day is None:
        absolute = _resolve_absolute(lowered, current.date())
        if absolute is _INVALID:
            return None
        day = absolute
    if day is None:
        if time_specified:
            day = current.date()
        else:
            return _fallback_parse(raw, current)

    target = datetime(day.year, day.month, day.day, hour, minute, tzinfo=current.tzinfo)
    return to_instant(target)


def _relative_offset(text: str, current: datetime) -> Optional[int]:
    match = _RELATIVE_RE.search(text)
    if not match:
        return None
    token, unit = match.group(1), match.group(2)
    amount = _NUMBER_WORDS[token] if token in _NUMBER_WORDS else int(token)
    if unit == "minute":
        return to_instant(current) + amount * MINUTE_MS
    if unit == "hour":
        return to_instant(current) + amount * HOUR_MS
    if unit == "day":
        return to_instant(add_days(current, amount))
    if unit == "week":
        return to_instant(add_days(current, amount * 7))
    return to_instant(add_months(current, amount))


def _extract_time(text: str) -> Optional[tuple[int, int]]:
    day_spans = _day_number_spans(text)
    for match in _TIME_RE.finditer(text):
        hours_s, minutes_s, meridiem = match.groups()
        # the "5" of "jan 5" is a day, not 5 o'clock
        if minutes_s is None and meridiem is None and match.span(1) in day_spans:
            continue
        hours = int(hours_s)
        minutes = int(minutes_s) if minutes_s else 0
        if minutes > 59:
            continue
        if meridiem:
            if not 1 <= hours <= 12:
                continue
            if meridiem == "pm" and hours != 12:
                hours += 12
            if meridiem == "am" and hours == 12:
                hours = 0
        elif hours > 23:
            continue
        return hours, minutes
    return None


def _day_number_spans(text: str) -> set[tuple[int, int]]:
    return {m.span(2) for m in _MONTH_DAY_RE.finditer(text) if _month_of(m.group(1)) is not None}


def _month_of(word: str) -> Optional[int]:
    return next((i for i, name in enumerate(_MONTHS, start=1) if word.startswith(name)), None)


def _resolve_named_day(text: str, today: date) -> Optional[date]:
    start = datetime(today.year, today.month, today.day)
    if "today" in text:
        return today
    if "tomorrow" in text:
        return add_days(start, 1).date()
    if "yesterday" in text:
        return add_days(start, -1).date()
    if re.search(r"next\s+week", text):
        return add_days(start, 7).date()
    if re.search(r"beginning\s+of\s+next\s+month", text):
        return add_months(start, 1, day=1).date()
    if re.search(r"end\s+of\s+(this\s+)?month", text):
        return today.replace(day=days_in_month(today.year, today.month))
    if re.search(r"next\s+month", text):
        return add_months(start, 1).date()
    match = _NEXT_WEEKDAY_RE.search(text)
    if match:
        delta = _WEEKDAYS.index(match.group(1)) - js_weekday(today)
        if delta <= 0:
            delta += 7
        return add_days(start, delta).date()
    return None


def _resolve_absolute(text: str, today: date):
    for match in _MONTH_DAY_RE.finditer(text):
        word, day_s = match.groups()
        month = _month_of(word)
        if month is None:
            continue
        return _build_date(today, month, int(day_s), None)

    match = _SLASH_RE.search(text)
    if match:
        month_s, day_s, year_s = match.groups()
        year = None
        if year_s:
            year = int(year_s)
            if year < 100:
                year += 2000
        return _build_date(today, int(month_s), int(day_s), year)
    return None


def _build_date(today: date, month: int, day: int, year: Optional[int]):
    # 2000 is a leap year, so this is the longest the month can ever be
    if not 1 <= month <= 12 or not 1 <= day <= days_in_month(2000, month):
        return _INVALID
    if year is not None:
        if day > days_in_month(year, month):
            return _INVALID
        return date(year, month, day)
    candidate_year = today.year
    # Past dates roll forward; Feb 29 keeps rolling until a leap year
    while day > days_in_month(candidate_year, month) or date(candidate_year, month, day) < today:
        candidate_year += 1
    return date(candidate_year, month, day)


def _fallback_parse(raw: str, current: datetime) -> Optional[int]:
    default = current.replace(hour=0, minute=0, second=0, microsecond=0, tzinfo=None)
    try:
        parsed = date_parser.parse(raw, default=default)
    except (ValueError, OverflowError):
        logger.debug("Unrecognized date text %r", raw)
        return None
    return to_instant(parsed, current.tzinfo)
