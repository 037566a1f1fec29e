from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence

from .entities import Task
from .enums import DropPosition, PrioritySection

MIN_PRIORITY = 0.0
MAX_PRIORITY = 10.0
STEP = 0.1


@dataclass(frozen=True)
class SectionBounds:
    min: float
    max: float


@dataclass(frozen=True)
class DropResult:
    new_priority: float
    clear_due_instant: bool = False


SECTION_BOUNDS = {
    PrioritySection.URGENT: SectionBounds(10.0, 10.0),
    PrioritySection.HIGH: SectionBounds(7.0, 9.9),
    PrioritySection.MEDIUM: SectionBounds(4.0, 6.9),
    PrioritySection.LOW: SectionBounds(0.0, 3.9),
}

SECTION_ANCHORS = {
    PrioritySection.URGENT: 10.0,
    PrioritySection.HIGH: 8.0,
    PrioritySection.MEDIUM: 5.0,
    PrioritySection.LOW: 2.0,
}


def section_of(priority: Optional[float]) -> PrioritySection:
    p = priority or 0
    if p >= 10:
        return PrioritySection.URGENT
    if p >= 7:
        return PrioritySection.HIGH
    if p >= 4:
        return PrioritySection.MEDIUM
    return PrioritySection.LOW


def section_bounds(priority: Optional[float]) -> SectionBounds:
    return SECTION_BOUNDS[section_of(priority)]


def is_overdue(task: Task, now: int) -> bool:
    if task.due_instant is None or task.completed:
        return False
    return task.due_instant <= now


def reorder_on_drop(
    dragged: Task,
    target: Task,
    position: DropPosition,
    neighbor_above: Optional[Task],
    neighbor_below: Optional[Task],
    now: int,
) -> DropResult:
    # drops that would not move the task are skipped by the caller (is_same_spot)
    target_p = target.priority
    bounds = section_bounds(target_p)

    if position == DropPosition.ABOVE:
        above_p = neighbor_above.priority if neighbor_above is not None else bounds.max + STEP
        new = _round1((target_p + above_p) / 2)
        if new <= target_p:
            new = target_p + STEP
    else:
        below_p = neighbor_below.priority if neighbor_below is not None else bounds.min - STEP
        new = _round1((target_p + below_p) / 2)
        if new >= target_p:
            new = target_p - STEP

    new = max(bounds.min, min(bounds.max, new))
    new = max(MIN_PRIORITY, min(MAX_PRIORITY, new))
    new = _round1(new)
    return DropResult(new, _leaves_urgent(dragged, new, now))


def reorder_on_section_drop(dragged: Task, section: PrioritySection, now: int) -> DropResult:
    new = SECTION_ANCHORS[section]
    return DropResult(new, _leaves_urgent(dragged, new, now))


def sort_tasks(tasks: Sequence[Task], now: int) -> list[Task]:
    """Overdue first, then open tasks by priority descending, completed last."""
    return sorted(
        tasks,
        key=lambda t: (not is_overdue(t, now), t.completed, -(t.priority or 0)),
    )


def neighbors(ordered: Sequence[Task], target_id: int) -> tuple[Optional[Task], Optional[Task]]:
    index = next((i for i, t in enumerate(ordered) if t.id == target_id), None)
    if index is None:
        return None, None
    above = ordered[index - 1] if index > 0 else None
    below = ordered[index + 1] if index < len(ordered) - 1 else None
    return above, below


def is_same_spot(
    ordered_ids: Sequence[int],
    dragged_id: int,
    target_id: int,
    position: DropPosition,
) -> bool:
    """True when the drop would leave `dragged_id` where it already is."""
    try:
        dragged_index = list(ordered_ids).index(dragged_id)
        target_index = list(ordered_ids).index(target_id)
    except ValueError:
        return False
    if target_index == dragged_index:
        return True
    if position == DropPosition.ABOVE:
        return target_index == dragged_index + 1
    return target_index == dragged_index - 1


def _leaves_urgent(dragged: Task, new_priority: float, now: int) -> bool:
    return is_overdue(dragged, now) and new_priority < SECTION_BOUNDS[PrioritySection.URGENT].min


def _round1(value: float) -> float:
    # half-up
    return math.floor(value * 10 + 0.5) / 10
