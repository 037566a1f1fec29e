from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from lanekeeper.domain.enums import EventKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationEvent:
    task_id: int
    kind: EventKind
    payload: dict[str, Any] = field(default_factory=dict)


class NotificationDispatcher(Protocol):
    def dispatch(self, event: NotificationEvent) -> None: ...


class LoggingDispatcher:
    """Records events in the log; delivery (SMS, email) lives outside this package."""

    def dispatch(self, event: NotificationEvent) -> None:
        logger.info("notify task_id=%s kind=%s payload=%s", event.task_id, event.kind.value, event.payload)
