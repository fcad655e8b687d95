# planner/services/routines.py
from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional

from core.errors import NotFoundError, PersistenceError, ValidationError
from core.logs import get_logger
from core.palette import normalize_color
from core.settings import DEFAULTS, TIMELINE
from datetime_utils import parse_day, weekday_index
from helpers.datetime_utils import normalize_time, operating_minutes
from models.routine import Routine
from models.schedule import Schedule, make_item, new_id
from services.context import PlannerContext
from storage.repository import PlannerRepository


_UPDATABLE = {
    "title",
    "description",
    "days",
    "start_time",
    "end_time",
    "items",
    "is_active",
    "auto_schedule",
    "color",
    "category",
    "start_date",
    "end_date",
}


def is_in_force(routine: Routine, day: date) -> bool:
    """Whether ``routine`` produces an occurrence on ``day``."""
    if not routine.is_active:
        return False
    if weekday_index(day) not in (routine.days or []):
        return False
    if routine.start_date and day < routine.start_date:
        return False
    if routine.end_date and day > routine.end_date:
        return False
    return True


def template_items(raw: Optional[Iterable[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """Routine template items: ``id``, ``title`` and ``order`` only."""
    items: List[Dict[str, Any]] = []
    for entry in raw or []:
        title = str(entry.get("title") or "").strip()
        if not title:
            continue
        items.append({"id": entry.get("id") or new_id(), "title": title, "order": len(items)})
    return items


def routine_to_schedule_fields(routine: Routine, day: date) -> Dict[str, Any]:
    """Field set for a concrete schedule copied from ``routine`` on ``day``.

    Items get fresh ids and start unchecked.
    """
    ordered = sorted(routine.items or [], key=lambda item: item.get("order", 0))
    return {
        "title": routine.title,
        "description": routine.description,
        "color": routine.color,
        "date": day,
        "start_time": routine.start_time,
        "end_time": routine.end_time,
        "items": [make_item(item["title"], idx) for idx, item in enumerate(ordered)],
        "status": "planned",
        "routine_id": routine.id,
    }


class RoutineService:
    MAX_ROUTINES = 200

    def __init__(self, repo: PlannerRepository, *, day_start_hour: int = TIMELINE.day_start_hour):
        self.repo = repo
        self.day_start_hour = day_start_hour
        self.logger = get_logger("routines")

    # ---------- validation ----------
    @staticmethod
    def _clean_title(title: Optional[str]) -> str:
        cleaned = (title or "").strip()
        if not cleaned:
            raise ValidationError("Routine title must not be empty")
        if len(cleaned) > DEFAULTS.max_title_length:
            raise ValidationError("Routine title is too long")
        return cleaned

    @staticmethod
    def _clean_days(days: Optional[Iterable[int]]) -> List[int]:
        try:
            cleaned = sorted({int(d) for d in (days or [])})
        except (TypeError, ValueError):
            raise ValidationError("Weekdays must be integers 0..6") from None
        if not cleaned:
            raise ValidationError("At least one weekday must be selected")
        if any(d < 0 or d > 6 for d in cleaned):
            raise ValidationError("Weekdays must be integers 0..6")
        return cleaned

    @staticmethod
    def _check_window(start_date: Optional[date], end_date: Optional[date]) -> None:
        if start_date and end_date and end_date < start_date:
            raise ValidationError("Routine end date must not be before its start date")

    # ---------- CRUD ----------
    def list_all(self, ctx: PlannerContext) -> List[Routine]:
        if not ctx.is_authenticated:
            return []
        return self.repo.list_routines(ctx.user_id)

    def get(self, ctx: PlannerContext, routine_id: str) -> Optional[Routine]:
        if not ctx.is_authenticated:
            return None
        return self.repo.get_routine(ctx.user_id, routine_id)

    def require(self, ctx: PlannerContext, routine_id: str) -> Routine:
        routine = self.get(ctx, routine_id)
        if routine is None:
            raise NotFoundError("routine", routine_id)
        return routine

    def create(
        self,
        ctx: PlannerContext,
        *,
        title: str,
        days: Iterable[int],
        start_time: str,
        end_time: str,
        items: Optional[Iterable[Dict[str, Any]]] = None,
        is_active: bool = True,
        auto_schedule: bool = True,
        color: Optional[str] = None,
        category: Optional[str] = None,
        description: Optional[str] = None,
        start_date: date | str | None = None,
        end_date: date | str | None = None,
    ) -> Routine:
        user_id = ctx.require_user()
        fields = {
            "title": self._clean_title(title),
            "days": self._clean_days(days),
            "start_time": normalize_time(start_time),
            "end_time": normalize_time(end_time),
            "items": template_items(items),
            "is_active": bool(is_active),
            "auto_schedule": bool(auto_schedule),
            "color": normalize_color(color),
            "category": category or None,
            "description": description or None,
            "start_date": parse_day(start_date),
            "end_date": parse_day(end_date),
        }
        self._check_window(fields["start_date"], fields["end_date"])
        if len(self.repo.list_routines(user_id)) >= self.MAX_ROUTINES:
            raise ValidationError(f"Routine limit reached ({self.MAX_ROUTINES})")
        routine = self.repo.insert_routine(user_id, **fields)
        self.logger.info("Routine created: %s", routine.id)
        return routine

    def update(self, ctx: PlannerContext, routine_id: str, **changes: Any) -> Routine:
        user_id = ctx.require_user()
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValidationError(f"Unknown routine fields: {', '.join(sorted(unknown))}")
        current = self.require(ctx, routine_id)

        fields: Dict[str, Any] = {}
        for key, value in changes.items():
            if key == "title":
                fields[key] = self._clean_title(value)
            elif key == "days":
                fields[key] = self._clean_days(value)
            elif key in ("start_time", "end_time"):
                fields[key] = normalize_time(value)
            elif key == "items":
                fields[key] = template_items(value)
            elif key == "color":
                fields[key] = normalize_color(value)
            elif key in ("start_date", "end_date"):
                fields[key] = parse_day(value)
            elif key in ("is_active", "auto_schedule"):
                fields[key] = bool(value)
            else:
                fields[key] = value or None

        self._check_window(
            fields.get("start_date", current.start_date),
            fields.get("end_date", current.end_date),
        )
        return self.repo.update_routine(user_id, routine_id, **fields)

    def delete(self, ctx: PlannerContext, routine_id: str) -> None:
        user_id = ctx.require_user()
        self.repo.delete_routine(user_id, routine_id)
        self.logger.info("Routine deleted: %s", routine_id)

    def toggle_active(self, ctx: PlannerContext, routine_id: str) -> Routine:
        routine = self.require(ctx, routine_id)
        return self.update(ctx, routine_id, is_active=not routine.is_active)

    def end_before(self, ctx: PlannerContext, routine_id: str, day: date) -> Routine:
        """Stop generating occurrences from ``day`` on, keeping earlier history.

        The end date becomes the day before ``day``. When that would fall
        before the routine's own start date the routine is deactivated
        instead, since no valid window is left.
        """
        routine = self.require(ctx, routine_id)
        last_day = day - timedelta(days=1)
        if routine.end_date and routine.end_date <= last_day:
            return routine
        if routine.start_date and last_day < routine.start_date:
            self.logger.info("Routine %s ends before it starts; deactivating", routine_id)
            return self.update(ctx, routine_id, is_active=False)
        self.logger.info("Routine %s truncated to end on %s", routine_id, last_day)
        return self.update(ctx, routine_id, end_date=last_day)

    # ---------- expansion ----------
    def active_on(self, ctx: PlannerContext, day: date) -> List[Routine]:
        """Routines in force on ``day``, ordered by operating-day start time."""
        routines = [r for r in self.list_all(ctx) if is_in_force(r, day)]
        routines.sort(key=lambda r: operating_minutes(r.start_time, self.day_start_hour))
        return routines

    def materialize_for_date(self, ctx: PlannerContext, day: date) -> List[Schedule]:
        """Insert a schedule for every auto-scheduled routine not yet placed on ``day``.

        Safe to call repeatedly: routines that already have a schedule on
        ``day`` are skipped, and the ``(user, routine, date)`` unique index
        rejects a concurrent duplicate. Each insert is independent; a
        failing routine is logged and retried on the next call.
        """
        if not ctx.is_authenticated:
            return []
        eligible = [r for r in self.active_on(ctx, day) if r.auto_schedule]
        if not eligible:
            return []

        try:
            existing = self.repo.list_schedules(ctx.user_id, day=day)
        except PersistenceError as exc:
            self.logger.warning("Skipping materialization for %s: %s", day, exc)
            return []
        placed = {s.routine_id for s in existing if s.routine_id}

        created: List[Schedule] = []
        for routine in eligible:
            if routine.id in placed:
                continue
            try:
                schedule = self.repo.insert_schedule(ctx.user_id, **routine_to_schedule_fields(routine, day))
            except PersistenceError as exc:
                self.logger.warning("Routine %s not materialized for %s: %s", routine.id, day, exc)
                continue
            placed.add(routine.id)
            created.append(schedule)

        if created:
            self.logger.info("Materialized %d routine(s) for %s", len(created), day)
        return created

    def materialize_range(self, ctx: PlannerContext, start: date, end: date) -> List[Schedule]:
        if start > end:
            return []
        created: List[Schedule] = []
        current = start
        while current <= end:
            created.extend(self.materialize_for_date(ctx, current))
            current += timedelta(days=1)
        return created


__all__ = [
    "RoutineService",
    "is_in_force",
    "routine_to_schedule_fields",
    "template_items",
]
