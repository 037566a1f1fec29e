from __future__ import annotations

from enum import StrEnum


class RecurrenceType(StrEnum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    CUSTOM = "custom"


class MonthlyMode(StrEnum):
    DAY_OF_MONTH = "dayOfMonth"
    NTH_WEEKDAY = "dayOfWeek"


class CustomUnit(StrEnum):
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"


class EndType(StrEnum):
    NEVER = "never"
    ON_DATE = "onDate"
    AFTER_COUNT = "afterCount"


class PrioritySection(StrEnum):
    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class DropPosition(StrEnum):
    ABOVE = "above"
    BELOW = "below"


class EventKind(StrEnum):
    OVERDUE = "overdue"
    SCHEDULED_CHANGE_APPLIED = "scheduled_change_applied"
