from __future__ import annotations

import math
from dataclasses import replace
from datetime import date, datetime, tzinfo
from typing import Optional

from .clock import (
    add_days,
    add_months,
    add_years,
    days_in_month,
    js_weekday,
    shift_month,
    to_datetime,
    to_instant,
)
from .entities import LAST_WEEK, RecurrenceRule
from .enums import CustomUnit, EndType, MonthlyMode, RecurrenceType

DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
FULL_DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


def next_occurrence(
    current_due: Optional[int],
    rule: Optional[RecurrenceRule],
    now: int,
    tz: Optional[tzinfo] = None,
) -> Optional[int]:
    """None for non-repeating rules and past an ON_DATE end."""
    if rule is None or rule.type == RecurrenceType.NONE:
        return None

    anchor = to_datetime(current_due if current_due is not None else now, tz)
    interval = _positive(rule.interval)

    if rule.type == RecurrenceType.DAILY:
        upcoming = add_days(anchor, interval)
    elif rule.type == RecurrenceType.WEEKLY:
        upcoming = _next_weekly(anchor, rule.days_of_week, interval)
    elif rule.type == RecurrenceType.MONTHLY:
        if rule.monthly_mode == MonthlyMode.NTH_WEEKDAY:
            upcoming = _next_nth_weekday(anchor, interval, rule.week_of_month, rule.weekday)
        else:
            upcoming = add_months(anchor, interval, day=_day_of_month(rule.day_of_month))
    elif rule.type == RecurrenceType.YEARLY:
        upcoming = add_years(anchor, interval)
    elif rule.type == RecurrenceType.CUSTOM:
        upcoming = _next_custom(anchor, rule)
    else:
        return None

    instant = to_instant(upcoming)
    if rule.end_type == EndType.ON_DATE and rule.end_instant is not None and instant > rule.end_instant:
        return None
    return instant


def has_remaining_occurrences(rule: Optional[RecurrenceRule], now: int) -> bool:
    if rule is None or rule.type == RecurrenceType.NONE:
        return False
    if rule.end_type == EndType.NEVER:
        return True
    if rule.end_type == EndType.ON_DATE and rule.end_instant is not None:
        return now < rule.end_instant
    if rule.end_type == EndType.AFTER_COUNT and rule.end_count:
        return (rule.completed_count or 0) < rule.end_count
    return True


def advance_count(rule: RecurrenceRule) -> RecurrenceRule:
    return replace(rule, completed_count=(rule.completed_count or 0) + 1)


def default_rule() -> RecurrenceRule:
    return RecurrenceRule()


def rule_for_due_date(
    kind: RecurrenceType,
    due: Optional[int],
    now: int,
    tz: Optional[tzinfo] = None,
    monthly_mode: MonthlyMode = MonthlyMode.DAY_OF_MONTH,
) -> RecurrenceRule:
    """Prefill a rule of `kind` from the task's due date (or today)."""
    day = to_datetime(due if due is not None else now, tz).date()
    if kind == RecurrenceType.WEEKLY:
        return RecurrenceRule(type=kind, days_of_week=(js_weekday(day),))
    if kind == RecurrenceType.MONTHLY:
        if monthly_mode == MonthlyMode.NTH_WEEKDAY:
            week = LAST_WEEK if is_last_week_of_month(day) else min(week_of_month(day), 4)
            return RecurrenceRule(
                type=kind,
                monthly_mode=monthly_mode,
                week_of_month=week,
                weekday=js_weekday(day),
            )
        return RecurrenceRule(type=kind, day_of_month=day.day)
    return RecurrenceRule(type=kind)


def ordinal_suffix(n: int) -> str:
    suffixes = ("th", "st", "nd", "rd")
    v = n % 100
    if 11 <= v <= 13:
        return f"{n}th"
    return f"{n}{suffixes[v % 10] if v % 10 < 4 else 'th'}"


def week_of_month(day: date) -> int:
    return math.ceil(day.day / 7)


def is_last_week_of_month(day: date) -> bool:
    return day.day > days_in_month(day.year, day.month) - 7


def format_rule(rule: Optional[RecurrenceRule], tz: Optional[tzinfo] = None) -> str:
    if rule is None or rule.type == RecurrenceType.NONE:
        return "Does not repeat"

    interval = _positive(rule.interval)
    text = ""
    if rule.type == RecurrenceType.DAILY:
        text = "Daily" if interval == 1 else f"Every {interval} days"
    elif rule.type == RecurrenceType.WEEKLY:
        text = "Weekly" if interval == 1 else f"Every {interval} weeks"
        days = [DAY_NAMES[d] for d in rule.days_of_week if 0 <= d <= 6]
        if days:
            text += f" on {', '.join(days)}"
    elif rule.type == RecurrenceType.MONTHLY:
        if rule.monthly_mode == MonthlyMode.NTH_WEEKDAY:
            week = _week_of_month(rule.week_of_month)
            week_name = "last" if week == LAST_WEEK else ordinal_suffix(week)
            on = f"the {week_name} {FULL_DAY_NAMES[_weekday(rule.weekday)]}"
        else:
            on = f"the {ordinal_suffix(_day_of_month(rule.day_of_month))}"
        text = f"Monthly on {on}" if interval == 1 else f"Every {interval} months on {on}"
    elif rule.type == RecurrenceType.YEARLY:
        text = "Yearly" if interval == 1 else f"Every {interval} years"
    elif rule.type == RecurrenceType.CUSTOM:
        text = f"Every {_positive(rule.custom_amount)} {rule.custom_unit or CustomUnit.DAYS}"

    if rule.end_type == EndType.ON_DATE and rule.end_instant is not None:
        end = to_datetime(rule.end_instant, tz)
        text += f", until {end.month}/{end.day}/{end.year}"
    elif rule.end_type == EndType.AFTER_COUNT and rule.end_count:
        text += f", {rule.end_count} times"
    return text


def _next_weekly(anchor: datetime, days_of_week: tuple[int, ...], interval: int) -> datetime:
    days = sorted({d for d in days_of_week if 0 <= d <= 6})
    if not days:
        return add_days(anchor, 7 * interval)
    current = js_weekday(anchor.date())
    later = next((d for d in days if d > current), None)
    if later is not None:
        return add_days(anchor, later - current)
    return add_days(anchor, 7 * interval - current + days[0])


def _next_nth_weekday(anchor: datetime, interval: int, week, weekday: Optional[int]) -> datetime:
    year, month = shift_month(anchor.year, anchor.month, interval)
    target = _weekday(weekday)
    week = _week_of_month(week)
    if week == LAST_WEEK:
        day = days_in_month(year, month)
        while js_weekday(date(year, month, day)) != target:
            day -= 1
    else:
        first = js_weekday(date(year, month, 1))
        day = 1 + (target - first) % 7 + (week - 1) * 7
    return anchor.replace(year=year, month=month, day=day)


def _next_custom(anchor: datetime, rule: RecurrenceRule) -> datetime:
    amount = _positive(rule.custom_amount)
    if rule.custom_unit == CustomUnit.WEEKS:
        return add_days(anchor, amount * 7)
    if rule.custom_unit == CustomUnit.MONTHS:
        return add_months(anchor, amount)
    return add_days(anchor, amount)


def _positive(value: Optional[int]) -> int:
    try:
        return max(int(value or 1), 1)
    except (TypeError, ValueError):
        return 1


def _day_of_month(value: Optional[int]) -> int:
    if value is None or not 1 <= value <= 31:
        return 1
    return value


def _week_of_month(value) -> int | str:
    if value == LAST_WEEK:
        return LAST_WEEK
    if isinstance(value, int) and 1 <= value <= 4:
        return value
    return 1


def _weekday(value: Optional[int]) -> int:
    if value is None or not 0 <= value <= 6:
        return 0
    return value
