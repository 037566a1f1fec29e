from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .enums import CustomUnit, EndType, MonthlyMode, RecurrenceType

LAST_WEEK = "last"


@dataclass(frozen=True)
class RecurrenceRule:
    type: RecurrenceType = RecurrenceType.NONE
    interval: int = 1
    days_of_week: tuple[int, ...] = ()
    monthly_mode: MonthlyMode = MonthlyMode.DAY_OF_MONTH
    day_of_month: Optional[int] = None
    # 1-4 or LAST_WEEK
    week_of_month: int | str | None = None
    weekday: Optional[int] = None
    custom_amount: int = 1
    custom_unit: CustomUnit = CustomUnit.DAYS
    end_type: EndType = EndType.NEVER
    end_instant: Optional[int] = None
    end_count: Optional[int] = None
    completed_count: int = 0


@dataclass(frozen=True)
class ScheduledPriorityChange:
    trigger_instant: Optional[int]
    new_priority: float


@dataclass(frozen=True)
class Task:
    id: int
    priority: float
    title: str = ""
    completed: bool = False
    deleted: bool = False
    due_instant: Optional[int] = None
    recurrence: Optional[RecurrenceRule] = None
    scheduled_priority_changes: tuple[ScheduledPriorityChange, ...] = ()
    notes: str = ""
    tags: tuple[str, ...] = ()
    deleted_at: Optional[int] = None


@dataclass(frozen=True)
class TaskUpdate:
    """A proposed mutation; only fields that are set get written."""

    task_id: int
    priority: Optional[float] = None
    due_instant: Optional[int] = None
    clear_due_instant: bool = False
    scheduled_priority_changes: Optional[tuple[ScheduledPriorityChange, ...]] = None
    recurrence: Optional[RecurrenceRule] = None
    completed: Optional[bool] = None
    notes: Optional[str] = None
    # deleting stamps deleted_at, restoring clears it
    deleted: Optional[bool] = None
    deleted_at: Optional[int] = None

    def changes(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.priority is not None:
            out["priority"] = self.priority
        if self.clear_due_instant:
            out["due_instant"] = None
        elif self.due_instant is not None:
            out["due_instant"] = self.due_instant
        if self.scheduled_priority_changes is not None:
            out["scheduled_priority_changes"] = self.scheduled_priority_changes
        if self.recurrence is not None:
            out["recurrence"] = self.recurrence
        if self.completed is not None:
            out["completed"] = self.completed
        if self.notes is not None:
            out["notes"] = self.notes
        if self.deleted is not None:
            out["deleted"] = self.deleted
            out["deleted_at"] = self.deleted_at if self.deleted else None
        return out
