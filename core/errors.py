"""Exception types shared by the planner services."""
from __future__ import annotations

from typing import Optional


class PlannerError(Exception):
    """Base class for every error raised by the planner core."""


class ValidationError(PlannerError, ValueError):
    """Input rejected before anything was written."""


class NotAuthenticatedError(PlannerError):
    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class NotFoundError(PlannerError, LookupError):
    def __init__(self, entity: str, entity_id: object):
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class PersistenceError(PlannerError):
    """A storage call failed; prior persisted state stays authoritative."""


class DuplicateOccurrenceError(PersistenceError):
    """A routine was already materialized for the given date."""


class ScopeRequiredError(PlannerError):
    """A routine-linked schedule needs a "today only" / "all future" choice.

    Raised instead of applying an edit or delete so the caller can ask the
    user which occurrences the change should reach.
    """

    def __init__(self, schedule_id: str, routine_id: Optional[str], action: str):
        super().__init__(
            f"Schedule {schedule_id} belongs to routine {routine_id}; choose a scope to {action}"
        )
        self.schedule_id = schedule_id
        self.routine_id = routine_id
        self.action = action


__all__ = [
    "DuplicateOccurrenceError",
    "NotAuthenticatedError",
    "NotFoundError",
    "PersistenceError",
    "PlannerError",
    "ScopeRequiredError",
    "ValidationError",
]
