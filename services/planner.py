"""Wiring of the planner services around one repository."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from core.errors import PlannerError
from core.logs import get_logger
from core.settings import TIMELINE, TimelineSettings
from datetime_utils import local_day_bounds, week_dates
from models.schedule import Schedule
from models.week import Week
from services.context import PlannerContext
from services.google_calendar import CalendarFeedResult, GoogleCalendarFeed
from services.routines import RoutineService
from services.schedules import ScheduleService
from services.tasks import TaskService
from services.timeline import Occurrence, TimelineService, to_payload
from services.weekly_goals import WeekService
from storage.config import AppConfig
from storage.repository import PlannerRepository


@dataclass
class DayView:
    day: date
    occurrences: List[Occurrence] = field(default_factory=list)
    materialized: List[Schedule] = field(default_factory=list)
    completed: List[Schedule] = field(default_factory=list)
    calendar_error: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "date": self.day.isoformat(),
            "occurrences": [to_payload(occ) for occ in self.occurrences],
            "calendarError": self.calendar_error,
        }


@dataclass
class WeekView:
    week: Optional[Week]
    days: Dict[date, List[Occurrence]] = field(default_factory=dict)
    calendar_error: Optional[str] = None


class Planner:
    def __init__(
        self,
        repo: PlannerRepository,
        *,
        feed: Optional[GoogleCalendarFeed] = None,
        config: Optional[AppConfig] = None,
        settings: TimelineSettings = TIMELINE,
    ):
        self.repo = repo
        self.feed = feed
        self.config = config or AppConfig()
        self.settings = settings
        self.logger = get_logger("planner")

        self.routines = RoutineService(repo, day_start_hour=settings.day_start_hour)
        self.schedules = ScheduleService(repo, self.routines)
        self.tasks = TaskService(repo, self.schedules)
        self.weeks = WeekService(repo, self.tasks)
        self.timeline = TimelineService(repo, self.routines, settings)

    def external_events(self, start: date, end: date) -> CalendarFeedResult:
        if self.feed is None:
            return CalendarFeedResult()
        time_min, time_max = local_day_bounds(start, end)
        return self.feed.list_events(time_min, time_max, self.config.enabled_calendars)

    def _reconcile(self, ctx: PlannerContext, now: Optional[datetime]) -> List[Schedule]:
        try:
            return self.schedules.reconcile_overdue(ctx, now)
        except PlannerError as exc:
            self.logger.warning("Overdue reconciliation skipped: %s", exc)
            return []

    def load_day(self, ctx: PlannerContext, day: Optional[date] = None, *, now: Optional[datetime] = None) -> DayView:
        """Reconcile overdue blocks, fill in routines, then merge everything for ``day``."""
        target = day or ctx.today
        completed = self._reconcile(ctx, now)
        materialized = self.routines.materialize_for_date(ctx, target)
        feed = self.external_events(target, target)
        return DayView(
            day=target,
            occurrences=self.timeline.view_for(ctx, target, feed.events),
            materialized=materialized,
            completed=completed,
            calendar_error=feed.error,
        )

    def load_week(self, ctx: PlannerContext, day: Optional[date] = None, *, now: Optional[datetime] = None) -> WeekView:
        target = day or ctx.today
        dates = week_dates(target)
        self._reconcile(ctx, now)
        self.routines.materialize_range(ctx, dates[0], dates[-1])
        feed = self.external_events(dates[0], dates[-1])
        return WeekView(
            week=self.weeks.get_or_create_week(ctx, target),
            days=self.timeline.view_for_week(ctx, target, feed.events),
            calendar_error=feed.error,
        )

    def delete_schedule(self, ctx: PlannerContext, schedule_id: str, *, scope: Optional[str] = None) -> None:
        """Delete a schedule and send a task that lost its placement back to the backlog."""
        schedule = self.schedules.get(ctx, schedule_id)
        self.schedules.delete(ctx, schedule_id, scope=scope)
        if schedule is not None and schedule.task_id:
            self.tasks.reconcile_task_statuses(ctx)


__all__ = ["DayView", "Planner", "WeekView"]
