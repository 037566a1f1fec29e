from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from .sweep import ReconciliationSweep, SweepResult
from .task_service import TaskService

logger = logging.getLogger(__name__)


def system_clock() -> int:
    return int(time.time() * 1000)


class SweepRunner:
    """Runs one ReconciliationSweep on a fixed interval until stopped."""

    def __init__(
        self,
        service: TaskService,
        sweep: Optional[ReconciliationSweep] = None,
        *,
        interval_seconds: float = 60.0,
        clock: Callable[[], int] = system_clock,
    ) -> None:
        self._service = service
        self._sweep = sweep or ReconciliationSweep()
        self._interval = max(1.0, float(interval_seconds))
        self._clock = clock
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def sweep(self) -> ReconciliationSweep:
        return self._sweep

    def run_once(self) -> SweepResult | None:
        now = self._clock()
        try:
            result = self._service.run_sweep(self._sweep, now)
        except Exception:  # noqa: BLE001
            logger.exception("sweep tick failed now=%s", now)
            return None
        if result.updates or result.events:
            logger.info("Sweep applied %s updates, %s events", len(result.updates), len(result.events))
        return result

    def run_forever(self) -> None:
        logger.info("Sweep runner started interval=%ss", self._interval)
        while not self._stop_event.is_set():
            self.run_once()
            self._stop_event.wait(self._interval)
        logger.info("Sweep runner stopped")

    def start(self) -> threading.Thread:
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.run_forever, name="lanekeeper-sweep", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: float | None = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
