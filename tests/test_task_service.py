from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

from lanekeeper.domain.clock import HOUR_MS, to_instant
from lanekeeper.domain.entities import RecurrenceRule, ScheduledPriorityChange, Task, TaskUpdate
from lanekeeper.domain.enums import DropPosition, EndType, EventKind, PrioritySection, RecurrenceType
from lanekeeper.domain.filters import TaskFilters, matches
from lanekeeper.services.notifications import NotificationEvent
from lanekeeper.services.sweep import ReconciliationSweep
from lanekeeper.services.task_service import TaskService, clamp_priority

UTC = timezone.utc


def ms(*args: int) -> int:
    return to_instant(datetime(*args, tzinfo=UTC))


NOW = ms(2025, 6, 15, 10, 30)


class FakeRepo:
    def __init__(self) -> None:
        self.tasks: list[Task] = []
        self.updates: list[TaskUpdate] = []
        self._id = 1

    def list_tasks(self, filters: TaskFilters | None = None) -> list[Task]:
        return [t for t in self.tasks if filters is None or matches(t, filters)]

    def get_task(self, task_id: int) -> Task | None:
        return next((t for t in self.tasks if t.id == task_id), None)

    def create_task(self, data: dict) -> Task:
        task = Task(
            id=self._id,
            title=data.get("title", ""),
            priority=data.get("priority", 5.0),
            due_instant=data.get("due_instant"),
            recurrence=data.get("recurrence"),
            deleted=data.get("deleted", False),
            notes=data.get("notes", ""),
            tags=tuple(data.get("tags", ())),
            completed=data.get("completed", False),
        )
        self.tasks.append(task)
        self._id += 1
        return task

    def apply_update(self, update: TaskUpdate) -> Task | None:
        task = self.get_task(update.task_id)
        if not task:
            return None
        self.updates.append(update)
        updated = replace(task, **update.changes())
        self.tasks = [updated if t.id == update.task_id else t for t in self.tasks]
        return updated

    def delete_task(self, task_id: int) -> bool:
        before = len(self.tasks)
        self.tasks = [t for t in self.tasks if t.id != task_id]
        return len(self.tasks) < before


class FakeDispatcher:
    def __init__(self) -> None:
        self.events: list[NotificationEvent] = []

    def dispatch(self, event: NotificationEvent) -> None:
        self.events.append(event)


def make_service() -> tuple[TaskService, FakeRepo, FakeDispatcher]:
    repo = FakeRepo()
    dispatcher = FakeDispatcher()
    return TaskService(repo, dispatcher=dispatcher, tz=UTC, snooze_minutes=60), repo, dispatcher


def test_clamp_priority() -> None:
    assert clamp_priority(12) == 10.0
    assert clamp_priority(-3) == 0.0
    assert clamp_priority("7.5") == 7.5
    assert clamp_priority("soon") == 5.0
    assert clamp_priority(None) == 5.0
    assert clamp_priority(float("nan")) == 5.0


def test_create_task_parses_due_text() -> None:
    service, repo, _ = make_service()
    task = service.create_task({"title": "Call mom", "priority": 42, "due_text": "tomorrow 3pm"}, NOW)
    assert task.priority == 10.0
    assert task.due_instant == ms(2025, 6, 16, 15, 0)


def test_list_tasks_hides_deleted_and_sorts() -> None:
    service, repo, _ = make_service()
    repo.create_task({"title": "low", "priority": 2.0})
    repo.create_task({"title": "gone", "priority": 9.0, "deleted": True})
    repo.create_task({"title": "late", "priority": 1.0, "due_instant": NOW - 1})
    repo.create_task({"title": "high", "priority": 8.0})
    assert [t.title for t in service.list_tasks(NOW)] == ["late", "high", "low"]


def test_set_due_from_text() -> None:
    service, repo, _ = make_service()
    task = repo.create_task({"title": "x"})
    assert service.set_due_from_text(task.id, "next monday", NOW).due_instant == ms(2025, 6, 16, 9, 0)
    assert service.set_due_from_text(task.id, "whenever", NOW) is None
    assert repo.get_task(task.id).due_instant == ms(2025, 6, 16, 9, 0)

    assert service.clear_due(task.id).due_instant is None


def test_drop_on_task_between_neighbours() -> None:
    service, repo, _ = make_service()
    top = repo.create_task({"priority": 6.0})
    target = repo.create_task({"priority": 5.0})
    dragged = repo.create_task({"priority": 4.0})

    assert service.drop_on_task(dragged.id, top.id, DropPosition.BELOW, NOW).priority == 5.5
    assert [t.id for t in service.list_tasks(NOW)] == [top.id, dragged.id, target.id]


def test_drop_on_same_spot_is_skipped() -> None:
    service, repo, _ = make_service()
    first = repo.create_task({"priority": 6.0})
    second = repo.create_task({"priority": 5.0})

    assert service.drop_on_task(first.id, second.id, DropPosition.ABOVE, NOW) is None
    assert service.drop_on_task(first.id, first.id, DropPosition.BELOW, NOW) is None
    assert repo.updates == []


def test_overdue_task_dropped_on_low_section_loses_due() -> None:
    service, repo, _ = make_service()
    task = repo.create_task({"priority": 10.0, "due_instant": NOW - HOUR_MS})

    updated = service.drop_on_section(task.id, PrioritySection.LOW, NOW)
    assert updated.priority == 2.0
    assert updated.due_instant is None


def test_overdue_task_dragged_below_urgent_neighbour_loses_due() -> None:
    service, repo, _ = make_service()
    late = repo.create_task({"priority": 10.0, "due_instant": NOW - HOUR_MS})
    high = repo.create_task({"priority": 8.0})
    low = repo.create_task({"priority": 3.0})

    updated = service.drop_on_task(late.id, high.id, DropPosition.BELOW, NOW)
    assert updated.priority < 8.0
    assert updated.due_instant is None
    assert repo.get_task(low.id).priority == 3.0


def test_complete_plain_task() -> None:
    service, repo, _ = make_service()
    task = repo.create_task({"title": "once"})
    assert service.complete_task(task.id, NOW).completed is True
    assert service.reopen_task(task.id).completed is False
    assert service.complete_task(999, NOW) is None


def test_complete_recurring_task_rolls_over_in_place() -> None:
    service, repo, _ = make_service()
    rule = RecurrenceRule(type=RecurrenceType.WEEKLY, days_of_week=(1, 3, 5))
    task = repo.create_task({"title": "standup", "due_instant": ms(2025, 6, 16, 9, 0), "recurrence": rule})

    rolled = service.complete_task(task.id, NOW)
    assert rolled.id == task.id
    assert rolled.completed is False
    assert rolled.due_instant == ms(2025, 6, 18, 9, 0)
    assert rolled.recurrence.completed_count == 1
    assert len(repo.tasks) == 1


def test_recurring_task_completes_after_last_occurrence() -> None:
    service, repo, _ = make_service()
    rule = RecurrenceRule(
        type=RecurrenceType.MONTHLY,
        day_of_month=1,
        end_type=EndType.AFTER_COUNT,
        end_count=2,
    )
    task = repo.create_task({"title": "rent", "due_instant": ms(2025, 7, 1, 9, 0), "recurrence": rule})

    service.complete_task(task.id, NOW)
    second = service.complete_task(task.id, NOW)
    assert second.recurrence.completed_count == 2
    assert second.due_instant == ms(2025, 9, 1, 9, 0)
    assert second.completed is False

    final = service.complete_task(task.id, NOW)
    assert final.completed is True
    assert final.due_instant == ms(2025, 9, 1, 9, 0)


def test_recurring_task_past_end_date_just_completes() -> None:
    service, repo, _ = make_service()
    rule = RecurrenceRule(type=RecurrenceType.DAILY, end_type=EndType.ON_DATE, end_instant=ms(2025, 6, 15, 20, 0))
    task = repo.create_task({"due_instant": ms(2025, 6, 15, 9, 0), "recurrence": rule})
    assert service.complete_task(task.id, NOW).completed is True


def test_snooze_pushes_due_and_raises_priority() -> None:
    service, repo, _ = make_service()
    task = repo.create_task({"priority": 3.0, "due_instant": NOW - 1})
    snoozed = service.snooze(task.id, NOW)
    assert snoozed.due_instant == NOW + HOUR_MS
    assert snoozed.priority == 8.0


def test_schedule_and_clear_priority_changes() -> None:
    service, repo, _ = make_service()
    task = repo.create_task({"priority": 3.0})

    service.schedule_priority_change(task.id, NOW + HOUR_MS, 12)
    updated = service.schedule_priority_change(task.id, NOW + 2 * HOUR_MS, "oops")
    assert updated.scheduled_priority_changes == (
        ScheduledPriorityChange(NOW + HOUR_MS, 10.0),
        ScheduledPriorityChange(NOW + 2 * HOUR_MS, 5.0),
    )
    assert service.clear_scheduled_changes(task.id).scheduled_priority_changes == ()
    assert service.schedule_priority_change(999, NOW, 5) is None


def test_run_sweep_writes_updates_and_dispatches() -> None:
    service, repo, dispatcher = make_service()
    late = repo.create_task({"title": "late", "priority": 2.0, "due_instant": NOW - 1})
    planned = repo.create_task({"title": "planned", "priority": 2.0})
    service.schedule_priority_change(planned.id, NOW - 1, 9)

    sweep = ReconciliationSweep()
    service.run_sweep(sweep, NOW)

    assert repo.get_task(late.id).priority == 10.0
    assert repo.get_task(planned.id).priority == 9.0
    assert repo.get_task(planned.id).scheduled_priority_changes == ()
    assert sorted(e.kind for e in dispatcher.events) == sorted(
        [EventKind.OVERDUE, EventKind.SCHEDULED_CHANGE_APPLIED]
    )

    dispatcher.events.clear()
    service.run_sweep(sweep, NOW + 1)
    assert dispatcher.events == []


class FlakyRepo(FakeRepo):
    def __init__(self, failing_id: int) -> None:
        super().__init__()
        self.failing_id = failing_id

    def apply_update(self, update: TaskUpdate) -> Task | None:
        if update.task_id == self.failing_id:
            self.failing_id = None
            raise RuntimeError("database is locked")
        return super().apply_update(update)


class FlakyDispatcher(FakeDispatcher):
    def __init__(self) -> None:
        super().__init__()
        self.failures = 1

    def dispatch(self, event: NotificationEvent) -> None:
        if self.failures:
            self.failures -= 1
            raise ConnectionError("sms gateway down")
        super().dispatch(event)


def test_failed_write_does_not_lose_other_updates_or_events() -> None:
    repo = FlakyRepo(failing_id=1)
    dispatcher = FakeDispatcher()
    service = TaskService(repo, dispatcher=dispatcher, tz=UTC)
    repo.create_task({"title": "first", "priority": 2.0, "due_instant": NOW - 1})
    repo.create_task({"title": "second", "priority": 2.0, "due_instant": NOW - 1})

    sweep = ReconciliationSweep()
    service.run_sweep(sweep, NOW)
    assert repo.get_task(1).priority == 2.0
    assert repo.get_task(2).priority == 10.0
    assert sorted(e.task_id for e in dispatcher.events) == [1, 2]

    service.run_sweep(sweep, NOW + 60_000)
    assert repo.get_task(1).priority == 10.0
    assert sorted(e.task_id for e in dispatcher.events) == [1, 2]


def test_failed_overdue_dispatch_is_retried_next_tick() -> None:
    repo = FakeRepo()
    dispatcher = FlakyDispatcher()
    service = TaskService(repo, dispatcher=dispatcher, tz=UTC)
    repo.create_task({"title": "late", "priority": 2.0, "due_instant": NOW - 1})

    sweep = ReconciliationSweep()
    service.run_sweep(sweep, NOW)
    assert dispatcher.events == []
    assert sweep.notified == frozenset()

    service.run_sweep(sweep, NOW + 60_000)
    assert [e.kind for e in dispatcher.events] == [EventKind.OVERDUE]

    service.run_sweep(sweep, NOW + 120_000)
    assert len(dispatcher.events) == 1


def test_soft_delete_restore_and_purge() -> None:
    service, repo, _ = make_service()
    task = repo.create_task({"title": "old"})
    keep = repo.create_task({"title": "keep"})

    deleted = service.delete_task(task.id, NOW)
    assert deleted.deleted is True
    assert deleted.deleted_at == NOW
    assert [t.id for t in service.list_tasks(NOW)] == [keep.id]
    assert [t.id for t in service.list_deleted()] == [task.id]

    restored = service.restore_task(task.id)
    assert restored.deleted is False
    assert restored.deleted_at is None
    assert service.list_deleted() == []

    service.delete_task(task.id, NOW)
    assert service.purge_task(task.id) is True
    assert service.purge_task(task.id) is False
    assert repo.get_task(task.id) is None


def test_deleted_task_is_not_swept() -> None:
    service, repo, dispatcher = make_service()
    task = repo.create_task({"priority": 2.0, "due_instant": NOW - 1})
    service.delete_task(task.id, NOW)
    service.run_sweep(ReconciliationSweep(), NOW)
    assert repo.get_task(task.id).priority == 2.0
    assert dispatcher.events == []


def test_update_priority_and_notes() -> None:
    service, repo, _ = make_service()
    task = repo.create_task({"priority": 3.0})
    assert service.update_priority(task.id, 11).priority == 10.0
    assert service.update_priority(task.id, "x").priority == 5.0
    assert service.update_notes(task.id, "bring receipts").notes == "bring receipts"
    assert service.update_notes(task.id, None).notes == ""


def test_search_and_tag_filters() -> None:
    service, repo, _ = make_service()
    repo.create_task({"title": "Pay rent", "priority": 8.0, "tags": ("home", "money")})
    repo.create_task({"title": "Standup", "priority": 6.0, "notes": "rent the room", "tags": ("work",)})
    repo.create_task({"title": "Gym", "priority": 4.0, "tags": ("health",)})
    repo.create_task({"title": "Old rent", "priority": 9.0, "deleted": True, "tags": ("home",)})

    def titles(filters: TaskFilters) -> list[str]:
        return [t.title for t in service.list_tasks(NOW, filters)]

    assert titles(TaskFilters(search="RENT")) == ["Pay rent", "Standup"]
    assert titles(TaskFilters(search="work")) == ["Standup"]
    assert titles(TaskFilters(tags=("home", "health"))) == ["Pay rent", "Gym"]
    assert titles(TaskFilters(search="rent", tags=("work",))) == ["Standup"]
    assert service.list_tags() == ["health", "home", "money", "work"]
