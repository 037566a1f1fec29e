from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from lanekeeper.domain.entities import ScheduledPriorityChange, Task, TaskUpdate
from lanekeeper.domain.enums import EventKind
from lanekeeper.domain.ordering import MAX_PRIORITY, MIN_PRIORITY, is_overdue

from .notifications import NotificationEvent

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    updates: list[TaskUpdate] = field(default_factory=list)
    events: list[NotificationEvent] = field(default_factory=list)


def split_scheduled_changes(
    changes: Sequence[ScheduledPriorityChange],
    now: int,
) -> tuple[list[ScheduledPriorityChange], list[ScheduledPriorityChange]]:
    """Partition into (triggered, pending), keeping list order.

    Entries without a trigger instant stay in pending untouched.
    """
    triggered: list[ScheduledPriorityChange] = []
    pending: list[ScheduledPriorityChange] = []
    for change in changes or ():
        if change.trigger_instant is not None and change.trigger_instant <= now:
            triggered.append(change)
        else:
            pending.append(change)
    return triggered, pending


class ReconciliationSweep:
    def __init__(self) -> None:
        # task ids already reported overdue by this instance
        self._notified: set[int] = set()

    @property
    def notified(self) -> frozenset[int]:
        return frozenset(self._notified)

    def forget(self, task_id: int) -> None:
        self._notified.discard(task_id)

    def tick(self, tasks: Iterable[Task], now: int) -> SweepResult:
        result = SweepResult()
        seen = 0
        for task in tasks:
            if task.deleted:
                continue
            seen += 1
            try:
                update, events = self._reconcile(task, now)
            except Exception:  # noqa: BLE001
                logger.exception("sweep failed task_id=%s", task.id)
                continue
            if update is not None:
                result.updates.append(update)
            result.events.extend(events)

        logger.debug(
            "sweep tick now=%s tasks=%s updates=%s events=%s",
            now,
            seen,
            len(result.updates),
            len(result.events),
        )
        return result

    def _reconcile(self, task: Task, now: int) -> tuple[Optional[TaskUpdate], list[NotificationEvent]]:
        events: list[NotificationEvent] = []
        priority: Optional[float] = None
        remaining: Optional[tuple[ScheduledPriorityChange, ...]] = None

        if is_overdue(task, now):
            if task.priority < MAX_PRIORITY:
                priority = MAX_PRIORITY
            if task.id not in self._notified:
                self._notified.add(task.id)
                events.append(
                    NotificationEvent(
                        task_id=task.id,
                        kind=EventKind.OVERDUE,
                        payload={"title": task.title, "due_instant": task.due_instant},
                    )
                )

        triggered, pending = split_scheduled_changes(task.scheduled_priority_changes, now)
        if triggered:
            applied = triggered[-1]
            priority = max(MIN_PRIORITY, min(MAX_PRIORITY, float(applied.new_priority)))
            remaining = tuple(pending)
            events.append(
                NotificationEvent(
                    task_id=task.id,
                    kind=EventKind.SCHEDULED_CHANGE_APPLIED,
                    payload={
                        "title": task.title,
                        "new_priority": priority,
                        "trigger_instant": applied.trigger_instant,
                    },
                )
            )

        if priority is None and remaining is None:
            return None, events
        return TaskUpdate(task_id=task.id, priority=priority, scheduled_priority_changes=remaining), events
