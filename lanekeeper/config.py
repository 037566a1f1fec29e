from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


def _resolve_project_root() -> Path:
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parents[1]


PROJECT_ROOT = _resolve_project_root()


def load_env() -> None:
    env_name = os.getenv("APP_ENV", "development")
    candidates = [Path.cwd(), PROJECT_ROOT]
    for base in candidates:
        env_path = base / ".env"
        if env_path.exists():
            load_dotenv(env_path)
            break

    for base in candidates:
        env_specific = base / f".env.{env_name}"
        if env_specific.exists():
            load_dotenv(env_specific, override=True)
            break


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc
    return max(value, minimum)


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///lanekeeper.db"
    log_level: str = "INFO"
    log_dir: str = "logs"
    timezone: str = "local"
    sweep_interval_seconds: int = 60
    snooze_minutes: int = 60


def load_settings() -> Settings:
    load_env()
    return Settings(
        database_url=os.getenv("DATABASE_URL", "").strip() or Settings.database_url,
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_dir=os.getenv("LOG_DIR", "logs"),
        timezone=os.getenv("LANEKEEPER_TIMEZONE", "").strip() or "local",
        sweep_interval_seconds=_env_int("SWEEP_INTERVAL_SECONDS", 60),
        snooze_minutes=_env_int("SNOOZE_MINUTES", 60),
    )


SETTINGS = load_settings()
