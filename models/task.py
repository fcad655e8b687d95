# planner/models/task.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional
import uuid

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from core.settings import DEFAULTS
from datetime_utils import utc_now

TASK_STATUSES = ("backlog", "scheduled", "in_progress", "completed", "cancelled")
RECURRING_TYPES = ("daily", "weekly")


class Task(SQLModel, table=True):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    user_id: str = Field(index=True)
    title: str
    description: Optional[str] = None
    estimated_minutes: int = 30
    actual_minutes: Optional[int] = None
    is_recurring: bool = False
    recurring_type: Optional[str] = None     # daily / weekly
    recurring_days: Optional[List[int]] = Field(default=None, sa_column=Column(JSON))
    status: str = Field(default="backlog", index=True)
    category: Optional[str] = None
    color: str = DEFAULTS.color
    week_id: Optional[str] = Field(default=None, index=True)
    target_count: Optional[int] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


__all__ = ["RECURRING_TYPES", "TASK_STATUSES", "Task"]
