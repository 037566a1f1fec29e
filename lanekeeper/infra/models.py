from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, BigInteger, Boolean, Column, DateTime, Float, Integer, String, Text

from .db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskModel(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False, default="")
    notes = Column(Text, nullable=False, default="")
    tags = Column(Text, nullable=False, default="")
    priority = Column(Float, nullable=False, default=5.0)
    completed = Column(Boolean, nullable=False, default=False, index=True)
    deleted = Column(Boolean, nullable=False, default=False, index=True)
    due_instant = Column(BigInteger, nullable=True)
    deleted_at = Column(BigInteger, nullable=True)
    recurrence = Column(JSON(none_as_null=True), nullable=True)
    scheduled_priority_changes = Column(JSON, nullable=False, default=list)
    # single-change field from the older schema; read once by migrate_legacy_schedules
    legacy_scheduled_change = Column(JSON(none_as_null=True), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
