"""ORM models and value objects exposed by the planner."""
from .external_event import CalendarInfo, ExternalEvent
from .routine import Routine
from .schedule import Schedule
from .task import Task
from .week import GoalSubTask, Week, WeeklyGoal

__all__ = [
    "CalendarInfo",
    "ExternalEvent",
    "GoalSubTask",
    "Routine",
    "Schedule",
    "Task",
    "Week",
    "WeeklyGoal",
]
