"""Recurring weekly templates."""
from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Optional
import uuid

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from core.settings import DEFAULTS
from datetime_utils import utc_now


class Routine(SQLModel, table=True):
    """Template that is never placed on a date itself.

    ``days`` uses 0=Sunday .. 6=Saturday. ``items`` holds
    ``{"id", "title", "order"}`` dicts (templates carry no completion
    state). ``end_date`` of ``None`` means the routine runs indefinitely.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    user_id: str = Field(index=True)
    title: str
    description: Optional[str] = None
    days: List[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    start_time: str
    end_time: str
    items: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    is_active: bool = True
    auto_schedule: bool = True
    color: str = DEFAULTS.color
    category: Optional[str] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    created_at: dt.datetime = Field(default_factory=utc_now)


__all__ = ["Routine"]
