from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from lanekeeper.config import PROJECT_ROOT, SETTINGS, Settings

LOG_FILE_NAME = "lanekeeper.log"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# chatty third-party loggers and the level they are held at
QUIET_LOGGERS = {
    "sqlalchemy.engine": logging.WARNING,
    "sqlalchemy.pool": logging.WARNING,
}


def setup_logging(settings: Settings = SETTINGS) -> Path:
    """Send records to a rotating file under ``settings.log_dir`` and the console."""
    log_dir = PROJECT_ROOT / settings.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    file_handler = RotatingFileHandler(log_file, maxBytes=2_000_000, backupCount=3, encoding="utf-8")
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    logging.basicConfig(
        level=settings.log_level.upper(),
        handlers=[file_handler, console_handler],
        force=True,
    )
    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)
    logging.captureWarnings(True)
    return log_file
