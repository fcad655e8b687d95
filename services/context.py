"""Per-call handle carrying the user identity and the caller's "today"."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from core.errors import NotAuthenticatedError


@dataclass(frozen=True)
class PlannerContext:
    user_id: Optional[str]
    today: date = field(default_factory=date.today)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    def require_user(self) -> str:
        if not self.user_id:
            raise NotAuthenticatedError()
        return self.user_id

    def at(self, moment: datetime) -> "PlannerContext":
        return PlannerContext(user_id=self.user_id, today=moment.date())


__all__ = ["PlannerContext"]
