"""Concrete, dated time blocks rendered on the calendar."""
from __future__ import annotations

import datetime as dt
from typing import Any, Dict, Iterable, List, Optional
import uuid

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

from core.settings import DEFAULTS
from datetime_utils import utc_now

SCHEDULE_STATUSES = ("planned", "completed", "partial", "skipped", "rescheduled")
# modified_reason marking a routine occurrence removed for a single day
DELETED_REASON = "deleted"


def new_id() -> str:
    return str(uuid.uuid4())


class Schedule(SQLModel, table=True):
    """One occurrence on one date.

    ``items`` holds ``{"id", "title", "is_completed", "order"}`` dicts. Once
    the list is non-empty the status is derived from it (see
    :func:`derive_status`).
    """

    __table_args__ = (
        UniqueConstraint("user_id", "routine_id", "date", name="ux_schedule_routine_date"),
    )

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(index=True)
    title: str = DEFAULTS.schedule_title
    description: Optional[str] = None
    color: str = DEFAULTS.color
    date: dt.date = Field(index=True)
    start_time: str
    end_time: str
    items: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    status: str = "planned"
    completed_minutes: Optional[int] = None
    task_id: Optional[str] = Field(default=None, index=True)
    routine_id: Optional[str] = Field(default=None, index=True)
    google_event_id: Optional[str] = None
    synced_from_google: bool = False
    original_date: Optional[dt.date] = None
    original_start_time: Optional[str] = None
    original_end_time: Optional[str] = None
    modified_at: Optional[dt.datetime] = None
    modified_reason: Optional[str] = None
    created_at: dt.datetime = Field(default_factory=utc_now)


def make_item(
    title: str,
    order: int,
    *,
    completed: bool = False,
    item_id: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "id": item_id or new_id(),
        "title": title.strip(),
        "is_completed": bool(completed),
        "order": order,
    }


def normalize_items(raw: Optional[Iterable[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """Copy item dicts, keeping ids and re-numbering ``order`` by position.

    Accepts ``isCompleted`` as well as ``is_completed`` so payloads coming
    straight from a camelCase front end can be stored unchanged.
    """
    items: List[Dict[str, Any]] = []
    for raw_item in raw or []:
        title = str(raw_item.get("title") or "").strip()
        if not title:
            continue
        completed = raw_item.get("is_completed", raw_item.get("isCompleted", False))
        items.append(make_item(title, len(items), completed=bool(completed), item_id=raw_item.get("id")))
    return items


def derive_status(items: List[Dict[str, Any]], current: str) -> str:
    """``completed`` iff every item is done, else ``planned``; no items keeps ``current``."""
    if not items:
        return current
    if all(item.get("is_completed") for item in items):
        return "completed"
    return "planned"


def is_tombstone(schedule: Schedule) -> bool:
    """A routine occurrence deleted for one day; it only keeps the slot from re-materializing."""
    return (
        bool(schedule.routine_id)
        and schedule.status == "skipped"
        and schedule.modified_reason == DELETED_REASON
    )


def is_schedule_completed(schedule: Schedule) -> bool:
    if schedule.items:
        return derive_status(schedule.items, schedule.status) == "completed"
    return schedule.status == "completed"


__all__ = [
    "DELETED_REASON",
    "SCHEDULE_STATUSES",
    "Schedule",
    "derive_status",
    "is_schedule_completed",
    "is_tombstone",
    "make_item",
    "new_id",
    "normalize_items",
]
