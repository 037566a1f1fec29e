from __future__ import annotations

import logging
import signal
import sys

from lanekeeper.config import SETTINGS
from lanekeeper.domain.clock import resolve_tz
from lanekeeper.infra.db import init_db
from lanekeeper.infra.logging import setup_logging
from lanekeeper.infra.repository import TaskRepository
from lanekeeper.services.notifications import LoggingDispatcher
from lanekeeper.services.sweep_runner import SweepRunner
from lanekeeper.services.task_service import TaskService

logger = logging.getLogger(__name__)


def build_service() -> TaskService:
    repo = TaskRepository()
    repo.migrate_legacy_schedules()
    return TaskService(
        repo,
        dispatcher=LoggingDispatcher(),
        tz=resolve_tz(SETTINGS.timezone),
        snooze_minutes=SETTINGS.snooze_minutes,
    )


def main() -> None:
    setup_logging()
    try:
        init_db()
    except Exception:  # noqa: BLE001
        logger.exception("Database is not reachable at %s", SETTINGS.database_url)
        sys.exit(1)

    runner = SweepRunner(build_service(), interval_seconds=SETTINGS.sweep_interval_seconds)

    def _shutdown(signum, frame) -> None:
        logger.info("Received signal %s, stopping", signum)
        runner.stop()

    signal.signal(signal.SIGTERM, _shutdown)
    try:
        runner.run_forever()
    except KeyboardInterrupt:
        runner.stop()


if __name__ == "__main__":
    main()
