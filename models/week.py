"""Week aggregate and its structured goals."""
from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional
import uuid

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from datetime_utils import utc_now


class Week(SQLModel, table=True):
    user_id: str = Field(primary_key=True)
    id: str = Field(primary_key=True)          # ISO week id, e.g. 2026-W04
    start_date: dt.date
    end_date: dt.date
    goals: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    weekly_goals: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    notes: Optional[str] = None
    planned_minutes: int = 0
    completed_minutes: int = 0
    created_at: dt.datetime = Field(default_factory=utc_now)


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class GoalSubTask:
    title: str
    target_count: int = 1
    completed_count: int = 0
    estimated_minutes: int = 30
    category: Optional[str] = None
    id: str = field(default_factory=_new_id)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GoalSubTask":
        return cls(
            id=str(data.get("id") or _new_id()),
            title=str(data.get("title") or "").strip(),
            target_count=max(1, int(data.get("target_count", data.get("targetCount", 1)) or 1)),
            completed_count=int(data.get("completed_count", data.get("completedCount", 0)) or 0),
            estimated_minutes=int(data.get("estimated_minutes", data.get("estimatedMinutes", 30)) or 30),
            category=data.get("category") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class WeeklyGoal:
    title: str
    sub_tasks: List[GoalSubTask] = field(default_factory=list)
    is_completed: bool = False
    id: str = field(default_factory=_new_id)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WeeklyGoal":
        raw_subs = data.get("sub_tasks", data.get("subTasks")) or []
        return cls(
            id=str(data.get("id") or _new_id()),
            title=str(data.get("title") or "").strip(),
            sub_tasks=[GoalSubTask.from_dict(item) for item in raw_subs],
            is_completed=bool(data.get("is_completed", data.get("isCompleted", False))),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "is_completed": self.is_completed,
            "sub_tasks": [sub.to_dict() for sub in self.sub_tasks],
        }


__all__ = ["GoalSubTask", "Week", "WeeklyGoal"]
