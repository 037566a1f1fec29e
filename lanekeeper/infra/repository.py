from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Optional, TypeVar

from dateutil import parser as date_parser
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from lanekeeper.domain.clock import to_instant
from lanekeeper.domain.display import format_tags, parse_tags
from lanekeeper.domain.entities import LAST_WEEK, RecurrenceRule, ScheduledPriorityChange, Task, TaskUpdate
from lanekeeper.domain.enums import CustomUnit, EndType, MonthlyMode, RecurrenceType
from lanekeeper.domain.filters import TaskFilters

from .db import SessionLocal
from .models import TaskModel

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


def _enum(cls: type[E], raw: Any, default: E) -> E:
    try:
        return cls(raw)
    except ValueError:
        return default


def _int(raw: Any) -> Optional[int]:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def _instant(raw: Any) -> Optional[int]:
    if isinstance(raw, str):
        try:
            return to_instant(date_parser.isoparse(raw))
        except ValueError:
            return None
    return _int(raw)


def rule_to_json(rule: Optional[RecurrenceRule]) -> Optional[dict[str, Any]]:
    if rule is None:
        return None
    return {
        "type": rule.type.value,
        "interval": rule.interval,
        "daysOfWeek": list(rule.days_of_week),
        "monthlyMode": rule.monthly_mode.value,
        "dayOfMonth": rule.day_of_month,
        "weekOfMonth": rule.week_of_month,
        "dayOfWeek": rule.weekday,
        "customInterval": rule.custom_amount,
        "customUnit": rule.custom_unit.value,
        "endType": rule.end_type.value,
        "endDate": rule.end_instant,
        "endCount": rule.end_count,
        "completedCount": rule.completed_count,
    }


def rule_from_json(data: Optional[dict[str, Any]]) -> Optional[RecurrenceRule]:
    """Build a rule from stored JSON; unknown or missing values get defaults."""
    if not data:
        return None
    week = data.get("weekOfMonth")
    return RecurrenceRule(
        type=_enum(RecurrenceType, data.get("type"), RecurrenceType.NONE),
        interval=_int(data.get("interval")) or 1,
        days_of_week=tuple(d for d in (_int(v) for v in data.get("daysOfWeek") or ()) if d is not None),
        monthly_mode=_enum(MonthlyMode, data.get("monthlyMode"), MonthlyMode.DAY_OF_MONTH),
        day_of_month=_int(data.get("dayOfMonth")),
        week_of_month=LAST_WEEK if week == LAST_WEEK else _int(week),
        weekday=_int(data.get("dayOfWeek")),
        custom_amount=_int(data.get("customInterval")) or 1,
        custom_unit=_enum(CustomUnit, data.get("customUnit"), CustomUnit.DAYS),
        end_type=_enum(EndType, data.get("endType"), EndType.NEVER),
        end_instant=_instant(data.get("endDate")),
        end_count=_int(data.get("endCount")),
        completed_count=_int(data.get("completedCount")) or 0,
    )


def changes_to_json(changes) -> list[dict[str, Any]]:
    return [{"time": c.trigger_instant, "newPriority": c.new_priority} for c in changes]


def changes_from_json(data: Optional[list]) -> tuple[ScheduledPriorityChange, ...]:
    out = []
    for item in data or ():
        if not isinstance(item, dict):
            continue
        out.append(
            ScheduledPriorityChange(
                trigger_instant=_int(item.get("time")),
                new_priority=float(item.get("newPriority") or 0),
            )
        )
    return tuple(out)


def _to_entity(model: TaskModel) -> Task:
    return Task(
        id=model.id,
        priority=float(model.priority or 0),
        title=model.title,
        completed=bool(model.completed),
        deleted=bool(model.deleted),
        due_instant=model.due_instant,
        recurrence=rule_from_json(model.recurrence),
        scheduled_priority_changes=changes_from_json(model.scheduled_priority_changes),
        notes=model.notes,
        tags=parse_tags(model.tags),
        deleted_at=model.deleted_at,
    )


def _to_columns(data: dict[str, Any]) -> dict[str, Any]:
    columns = dict(data)
    if "recurrence" in columns:
        columns["recurrence"] = rule_to_json(columns["recurrence"])
    if "scheduled_priority_changes" in columns:
        columns["scheduled_priority_changes"] = changes_to_json(columns["scheduled_priority_changes"])
    if "tags" in columns and not isinstance(columns["tags"], str):
        columns["tags"] = format_tags(columns["tags"])
    return columns


def _apply_filters(stmt, filters: TaskFilters) -> object:
    stmt = stmt.where(TaskModel.deleted == filters.deleted)

    if filters.tags:
        stmt = stmt.where(or_(*(_has_tag(tag) for tag in filters.tags)))

    if filters.search:
        pattern = f"%{filters.search}%"
        stmt = stmt.where(
            or_(
                TaskModel.title.ilike(pattern),
                TaskModel.notes.ilike(pattern),
                TaskModel.tags.ilike(pattern),
            )
        )

    return stmt


def _has_tag(tag: str):
    # tags are stored as "a, b, c"
    return or_(
        TaskModel.tags == tag,
        TaskModel.tags.startswith(f"{tag}, ", autoescape=True),
        TaskModel.tags.endswith(f", {tag}", autoescape=True),
        TaskModel.tags.contains(f", {tag}, ", autoescape=True),
    )


class TaskRepository:
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal) -> None:
        self._session_factory = session_factory

    def list_tasks(self, filters: Optional[TaskFilters] = None) -> list[Task]:
        with self._session_factory() as session:
            stmt = select(TaskModel)
            if filters is not None:
                stmt = _apply_filters(stmt, filters)
            stmt = stmt.order_by(TaskModel.priority.desc(), TaskModel.id.asc())
            return [_to_entity(task) for task in session.scalars(stmt)]

    def get_task(self, task_id: int) -> Optional[Task]:
        with self._session_factory() as session:
            task = session.get(TaskModel, task_id)
            return _to_entity(task) if task else None

    def create_task(self, data: dict) -> Task:
        with self._session_factory() as session:
            task = TaskModel(**_to_columns(data))
            session.add(task)
            session.commit()
            session.refresh(task)
            return _to_entity(task)

    def apply_update(self, update: TaskUpdate) -> Optional[Task]:
        with self._session_factory() as session:
            task = session.get(TaskModel, update.task_id)
            if not task:
                return None
            for key, value in _to_columns(update.changes()).items():
                setattr(task, key, value)
            session.commit()
            session.refresh(task)
            return _to_entity(task)

    def delete_task(self, task_id: int) -> bool:
        with self._session_factory() as session:
            task = session.get(TaskModel, task_id)
            if not task:
                return False
            session.delete(task)
            session.commit()
            return True

    def migrate_legacy_schedules(self) -> int:
        """Fold the old single scheduled change into the list form, once."""
        migrated = 0
        with self._session_factory() as session:
            stmt = select(TaskModel).where(TaskModel.legacy_scheduled_change.is_not(None))
            for task in session.scalars(stmt):
                legacy = task.legacy_scheduled_change
                changes = list(task.scheduled_priority_changes or [])
                if isinstance(legacy, dict) and legacy.get("time") is not None and legacy not in changes:
                    changes.append(legacy)
                task.scheduled_priority_changes = changes
                task.legacy_scheduled_change = None
                migrated += 1
            session.commit()
        if migrated:
            logger.info("Migrated %s legacy scheduled priority changes", migrated)
        return migrated
