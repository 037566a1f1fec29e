from __future__ import annotations

import logging
from datetime import tzinfo
from typing import Any, Protocol

from lanekeeper.domain.clock import MINUTE_MS
from lanekeeper.domain.dateparse import parse_natural_date
from lanekeeper.domain.entities import ScheduledPriorityChange, Task, TaskUpdate
from lanekeeper.domain.enums import DropPosition, EventKind, PrioritySection, RecurrenceType
from lanekeeper.domain.filters import TaskFilters, all_tags
from lanekeeper.domain.ordering import (
    MAX_PRIORITY,
    MIN_PRIORITY,
    is_same_spot,
    neighbors,
    reorder_on_drop,
    reorder_on_section_drop,
    sort_tasks,
)
from lanekeeper.domain.recurrence import advance_count, has_remaining_occurrences, next_occurrence

from .notifications import NotificationDispatcher, NotificationEvent
from .sweep import ReconciliationSweep, SweepResult

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 5.0
SNOOZE_PRIORITY = 8.0


class TaskStore(Protocol):
    def list_tasks(self, filters: TaskFilters | None = None) -> list[Task]: ...

    def get_task(self, task_id: int) -> Task | None: ...

    def create_task(self, data: dict) -> Task: ...

    def apply_update(self, update: TaskUpdate) -> Task | None: ...

    def delete_task(self, task_id: int) -> bool: ...


def clamp_priority(value: Any, default: float = DEFAULT_PRIORITY) -> float:
    try:
        priority = float(value)
    except (TypeError, ValueError):
        return default
    if priority != priority:  # NaN
        return default
    return max(MIN_PRIORITY, min(MAX_PRIORITY, priority))


class TaskService:
    def __init__(
        self,
        repo: TaskStore,
        dispatcher: NotificationDispatcher | None = None,
        tz: tzinfo | None = None,
        snooze_minutes: int = 60,
    ) -> None:
        self._repo = repo
        self._dispatcher = dispatcher
        self._tz = tz
        self._snooze_minutes = snooze_minutes

    def list_tasks(self, now: int, filters: TaskFilters | None = None) -> list[Task]:
        return sort_tasks(self._repo.list_tasks(filters or TaskFilters()), now)

    def list_deleted(self) -> list[Task]:
        return self._repo.list_tasks(TaskFilters(deleted=True))

    def list_tags(self) -> list[str]:
        return all_tags(self._repo.list_tasks(TaskFilters()))

    def get_task(self, task_id: int) -> Task | None:
        return self._repo.get_task(task_id)

    def update_priority(self, task_id: int, priority: Any) -> Task | None:
        return self._repo.apply_update(TaskUpdate(task_id=task_id, priority=clamp_priority(priority)))

    def update_notes(self, task_id: int, notes: str) -> Task | None:
        return self._repo.apply_update(TaskUpdate(task_id=task_id, notes=notes or ""))

    def delete_task(self, task_id: int, now: int) -> Task | None:
        return self._repo.apply_update(TaskUpdate(task_id=task_id, deleted=True, deleted_at=now))

    def restore_task(self, task_id: int) -> Task | None:
        return self._repo.apply_update(TaskUpdate(task_id=task_id, deleted=False))

    def purge_task(self, task_id: int) -> bool:
        removed = self._repo.delete_task(task_id)
        if removed:
            logger.info("Task %s permanently deleted", task_id)
        return removed

    def create_task(self, data: dict, now: int) -> Task:
        normalized = dict(data)
        normalized["priority"] = clamp_priority(normalized.get("priority", DEFAULT_PRIORITY))
        due_text = normalized.pop("due_text", None)
        if due_text:
            normalized["due_instant"] = parse_natural_date(due_text, now, self._tz)
        return self._repo.create_task(normalized)

    def set_due_from_text(self, task_id: int, text: str, now: int) -> Task | None:
        """Parse `text` into the task's due instant; None when the text is not a date."""
        due = parse_natural_date(text, now, self._tz)
        if due is None:
            logger.info("Could not parse due text %r for task %s", text, task_id)
            return None
        return self._repo.apply_update(TaskUpdate(task_id=task_id, due_instant=due))

    def clear_due(self, task_id: int) -> Task | None:
        return self._repo.apply_update(TaskUpdate(task_id=task_id, clear_due_instant=True))

    def drop_on_task(self, dragged_id: int, target_id: int, position: DropPosition, now: int) -> Task | None:
        ordered = self.list_tasks(now)
        if is_same_spot([t.id for t in ordered], dragged_id, target_id, position):
            return None

        by_id = {t.id: t for t in ordered}
        dragged = by_id.get(dragged_id)
        target = by_id.get(target_id)
        if dragged is None or target is None:
            return None

        above, below = neighbors(ordered, target_id)
        result = reorder_on_drop(dragged, target, position, above, below, now)
        logger.info(
            "Dropped task %s %s task %s -> priority %s",
            dragged_id,
            position.value,
            target_id,
            result.new_priority,
        )
        return self._repo.apply_update(
            TaskUpdate(
                task_id=dragged_id,
                priority=result.new_priority,
                clear_due_instant=result.clear_due_instant,
            )
        )

    def drop_on_section(self, task_id: int, section: PrioritySection, now: int) -> Task | None:
        task = self._repo.get_task(task_id)
        if not task:
            return None
        result = reorder_on_section_drop(task, section, now)
        return self._repo.apply_update(
            TaskUpdate(
                task_id=task_id,
                priority=result.new_priority,
                clear_due_instant=result.clear_due_instant,
            )
        )

    def complete_task(self, task_id: int, now: int) -> Task | None:
        """Mark done, or roll a recurring task over to its next occurrence."""
        task = self._repo.get_task(task_id)
        if not task:
            return None

        rule = task.recurrence
        if rule is not None and rule.type != RecurrenceType.NONE and has_remaining_occurrences(rule, now):
            upcoming = next_occurrence(task.due_instant, rule, now, self._tz)
            if upcoming is not None:
                logger.info("Task %s rolled over to %s", task_id, upcoming)
                return self._repo.apply_update(
                    TaskUpdate(
                        task_id=task_id,
                        completed=False,
                        due_instant=upcoming,
                        recurrence=advance_count(rule),
                    )
                )
        return self._repo.apply_update(TaskUpdate(task_id=task_id, completed=True))

    def reopen_task(self, task_id: int) -> Task | None:
        return self._repo.apply_update(TaskUpdate(task_id=task_id, completed=False))

    def snooze(self, task_id: int, now: int) -> Task | None:
        return self._repo.apply_update(
            TaskUpdate(
                task_id=task_id,
                due_instant=now + self._snooze_minutes * MINUTE_MS,
                priority=SNOOZE_PRIORITY,
            )
        )

    def schedule_priority_change(self, task_id: int, trigger_instant: int, new_priority: Any) -> Task | None:
        task = self._repo.get_task(task_id)
        if not task:
            return None
        change = ScheduledPriorityChange(trigger_instant, clamp_priority(new_priority))
        return self._repo.apply_update(
            TaskUpdate(
                task_id=task_id,
                scheduled_priority_changes=(*task.scheduled_priority_changes, change),
            )
        )

    def clear_scheduled_changes(self, task_id: int) -> Task | None:
        return self._repo.apply_update(TaskUpdate(task_id=task_id, scheduled_priority_changes=()))

    def run_sweep(self, sweep: ReconciliationSweep, now: int) -> SweepResult:
        result = sweep.tick(self._repo.list_tasks(), now)
        for update in result.updates:
            try:
                self._repo.apply_update(update)
            except Exception:  # noqa: BLE001
                logger.exception("sweep update failed task_id=%s", update.task_id)
        for event in result.events:
            self._dispatch(sweep, event)
        return result

    def _dispatch(self, sweep: ReconciliationSweep, event: NotificationEvent) -> None:
        if self._dispatcher is None:
            return
        try:
            self._dispatcher.dispatch(event)
        except Exception:  # noqa: BLE001
            logger.exception("notify failed task_id=%s kind=%s", event.task_id, event.kind.value)
            if event.kind == EventKind.OVERDUE:
                # report it again on the next tick
                sweep.forget(event.task_id)
