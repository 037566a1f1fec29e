from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from .entities import Task


@dataclass(frozen=True)
class TaskFilters:
    search: Optional[str] = None
    # a task matches when it carries any of these
    tags: tuple[str, ...] = ()
    deleted: bool = False


def matches(task: Task, filters: TaskFilters) -> bool:
    if task.deleted != filters.deleted:
        return False
    if filters.tags and not set(filters.tags) & set(task.tags):
        return False
    if not filters.search:
        return True
    query = filters.search.lower()
    return query in task.title.lower() or query in task.notes.lower() or query in " ".join(task.tags).lower()


def all_tags(tasks: Iterable[Task]) -> list[str]:
    return sorted({tag for task in tasks for tag in task.tags})
