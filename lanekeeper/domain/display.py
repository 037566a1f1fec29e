from __future__ import annotations

import math
from datetime import timedelta, tzinfo
from typing import Iterable, Optional

from .clock import to_datetime


def format_due_instant(due: Optional[int], now: int, tz: Optional[tzinfo] = None) -> str:
    """"Today 03:00 PM", "Tomorrow 09:00 AM" or "Jun 20 09:00 AM"."""
    if due is None:
        return ""
    moment = to_datetime(due, tz)
    today = to_datetime(now, tz).date()
    time_str = moment.strftime("%I:%M %p")
    if moment.date() == today:
        return f"Today {time_str}"
    if moment.date() == today + timedelta(days=1):
        return f"Tomorrow {time_str}"
    return f"{moment.strftime('%b')} {moment.day} {time_str}"


def format_priority(priority: float) -> str:
    value = float(priority)
    if value.is_integer():
        return str(int(value))
    return f"{value:.1f}".removesuffix(".0")


def priority_color(priority: Optional[float]) -> dict[str, str]:
    """Background/text colours fading from white (0) to dark red (10)."""
    ratio = max(0.0, min(10.0, float(priority or 0))) / 10

    def channel(start: float, span: float) -> int:
        return math.floor(start - span * ratio + 0.5)

    bg = (channel(255, 55), channel(255, 155), channel(255, 155))
    text = (channel(100, -80), channel(100, 60), channel(100, 60))
    return {
        "bg": "rgb({}, {}, {})".format(*bg),
        "text": "rgb({}, {}, {})".format(*text),
    }


def parse_tags(raw: Optional[str]) -> tuple[str, ...]:
    if not raw:
        return ()
    return tuple(t.strip().lower() for t in raw.split(",") if t.strip())


def format_tags(tags: Iterable[str]) -> str:
    return ", ".join(tags)
