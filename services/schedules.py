# planner/services/schedules.py
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from core.errors import (
    DuplicateOccurrenceError,
    NotFoundError,
    ScopeRequiredError,
    ValidationError,
)
from core.logs import get_logger
from core.palette import normalize_color
from core.settings import DEFAULTS
from datetime_utils import parse_day, utc_now
from helpers.datetime_utils import add_minutes, block_end_datetime, duration, normalize_time
from models.schedule import (
    DELETED_REASON,
    SCHEDULE_STATUSES,
    Schedule,
    derive_status,
    is_tombstone,
    make_item,
    normalize_items,
)
from services.context import PlannerContext
from services.routines import RoutineService, is_in_force, routine_to_schedule_fields
from storage.repository import PlannerRepository

# Scope of an edit or delete on a routine-linked schedule.
SCOPE_TODAY = "today"
SCOPE_ALL_FUTURE = "all_future"
SCOPES = (SCOPE_TODAY, SCOPE_ALL_FUTURE)

_EDITABLE = ("title", "description", "color", "start_time", "end_time", "items")


class ScheduleService:
    def __init__(self, repo: PlannerRepository, routines: RoutineService):
        self.repo = repo
        self.routines = routines
        self.logger = get_logger("schedules")

    # ---------- helpers ----------
    @staticmethod
    def _clean_title(title: Optional[str]) -> str:
        cleaned = (title or "").strip()
        if not cleaned:
            raise ValidationError("Schedule title must not be empty")
        if len(cleaned) > DEFAULTS.max_title_length:
            raise ValidationError("Schedule title is too long")
        return cleaned

    @staticmethod
    def _check_scope(scope: Optional[str]) -> None:
        if scope is not None and scope not in SCOPES:
            raise ValidationError(f"Unknown scope: {scope!r}")

    def _clean_changes(self, changes: Dict[str, Any]) -> Dict[str, Any]:
        unknown = set(changes) - set(_EDITABLE)
        if unknown:
            raise ValidationError(f"Unknown schedule fields: {', '.join(sorted(unknown))}")
        fields: Dict[str, Any] = {}
        for key, value in changes.items():
            if key == "title":
                fields[key] = self._clean_title(value)
            elif key in ("start_time", "end_time"):
                fields[key] = normalize_time(value)
            elif key == "color":
                fields[key] = normalize_color(value)
            elif key == "items":
                fields[key] = normalize_items(value)
            else:
                fields[key] = value or None
        return fields

    @staticmethod
    def _is_untouched(schedule: Schedule) -> bool:
        """Still planned with nothing checked off; safe to rewrite or prune."""
        if schedule.status != "planned":
            return False
        return not any(item.get("is_completed") for item in schedule.items or [])

    def _save_items(self, ctx: PlannerContext, schedule: Schedule, items: List[Dict[str, Any]]) -> Schedule:
        return self.repo.update_schedule(
            ctx.require_user(),
            schedule.id,
            items=items,
            status=derive_status(items, schedule.status),
        )

    # ---------- reads ----------
    def get(self, ctx: PlannerContext, schedule_id: str) -> Optional[Schedule]:
        if not ctx.is_authenticated:
            return None
        return self.repo.get_schedule(ctx.user_id, schedule_id)

    def require(self, ctx: PlannerContext, schedule_id: str) -> Schedule:
        schedule = self.get(ctx, schedule_id)
        if schedule is None:
            raise NotFoundError("schedule", schedule_id)
        return schedule

    def list_for_date(self, ctx: PlannerContext, day: date) -> List[Schedule]:
        if not ctx.is_authenticated:
            return []
        return [s for s in self.repo.list_schedules(ctx.user_id, day=day) if not is_tombstone(s)]

    def list_range(self, ctx: PlannerContext, start: date, end: date) -> List[Schedule]:
        if not ctx.is_authenticated:
            return []
        rows = self.repo.list_schedules(ctx.user_id, start=start, end=end)
        return [s for s in rows if not is_tombstone(s)]

    # ---------- create ----------
    def create(
        self,
        ctx: PlannerContext,
        *,
        title: str,
        day: date | str,
        start_time: str,
        end_time: Optional[str] = None,
        duration_minutes: Optional[int] = None,
        items: Optional[Iterable[Dict[str, Any]]] = None,
        color: Optional[str] = None,
        description: Optional[str] = None,
        task_id: Optional[str] = None,
        routine_id: Optional[str] = None,
    ) -> Schedule:
        user_id = ctx.require_user()
        placed_on = parse_day(day)
        if placed_on is None:
            raise ValidationError(f"Invalid date: {day!r}")
        start = normalize_time(start_time)
        if end_time:
            end = normalize_time(end_time)
        elif duration_minutes and 0 < duration_minutes <= DEFAULTS.max_block_minutes:
            end = add_minutes(start, int(duration_minutes))
        elif duration_minutes and duration_minutes > DEFAULTS.max_block_minutes:
            raise ValidationError(f"A block lasts at most {DEFAULTS.max_block_minutes} minutes")
        else:
            raise ValidationError("Either an end time or a positive duration is required")

        clean_items = normalize_items(items)
        schedule = self.repo.insert_schedule(
            user_id,
            title=self._clean_title(title),
            description=description or None,
            color=normalize_color(color),
            date=placed_on,
            start_time=start,
            end_time=end,
            items=clean_items,
            status=derive_status(clean_items, "planned"),
            task_id=task_id,
            routine_id=routine_id,
        )
        self.logger.info("Schedule created: %s on %s %s-%s", schedule.id, placed_on, start, end)
        return schedule

    def convert_routine_occurrence(self, ctx: PlannerContext, routine_id: str, day: date) -> Schedule:
        """Turn a routine ghost into a real schedule, or return the one already there."""
        user_id = ctx.require_user()
        routine = self.routines.require(ctx, routine_id)
        existing = self.repo.list_schedules(user_id, day=day, routine_id=routine_id)
        if existing:
            return existing[0]
        try:
            return self.repo.insert_schedule(user_id, **routine_to_schedule_fields(routine, day))
        except DuplicateOccurrenceError:
            # materialized concurrently; the row now exists
            existing = self.repo.list_schedules(user_id, day=day, routine_id=routine_id)
            if not existing:
                raise
            return existing[0]

    # ---------- edit / delete ----------
    def edit(
        self,
        ctx: PlannerContext,
        schedule_id: str,
        *,
        scope: Optional[str] = None,
        **changes: Any,
    ) -> Schedule:
        """Apply ``changes`` to a schedule.

        A schedule that came from a routine needs ``scope``: ``"today"``
        touches this row only, ``"all_future"`` also rewrites the routine
        template and the later occurrences that are still untouched.
        Without a scope :class:`ScopeRequiredError` is raised and nothing
        is written.
        """
        user_id = ctx.require_user()
        self._check_scope(scope)
        fields = self._clean_changes(changes)
        schedule = self.require(ctx, schedule_id)
        if schedule.routine_id and scope is None:
            raise ScopeRequiredError(schedule.id, schedule.routine_id, "edit")

        if "items" in fields:
            fields["status"] = derive_status(fields["items"], schedule.status)
        updated = self.repo.update_schedule(user_id, schedule.id, **fields)

        if schedule.routine_id and scope == SCOPE_ALL_FUTURE:
            self._push_to_routine(ctx, updated)
        return updated

    def _push_to_routine(self, ctx: PlannerContext, schedule: Schedule) -> None:
        routine_id = schedule.routine_id
        template = [
            {"id": item.get("id"), "title": item.get("title"), "order": idx}
            for idx, item in enumerate(schedule.items or [])
        ]
        self.routines.update(
            ctx,
            routine_id,
            title=schedule.title,
            color=schedule.color,
            start_time=schedule.start_time,
            end_time=schedule.end_time,
            items=template,
        )

        later = self.repo.list_schedules(
            ctx.user_id, start=schedule.date + timedelta(days=1), routine_id=routine_id
        )
        refreshed = 0
        for row in later:
            if not self._is_untouched(row) or is_tombstone(row):
                continue
            self.repo.update_schedule(
                ctx.user_id,
                row.id,
                title=schedule.title,
                color=schedule.color,
                start_time=schedule.start_time,
                end_time=schedule.end_time,
                items=[make_item(item["title"], idx) for idx, item in enumerate(template)],
            )
            refreshed += 1
        self.logger.info(
            "Routine %s updated from schedule %s; %d later occurrence(s) refreshed",
            routine_id,
            schedule.id,
            refreshed,
        )

    def delete(self, ctx: PlannerContext, schedule_id: str, *, scope: Optional[str] = None) -> None:
        """Delete a schedule; routine-linked rows need a scope like :meth:`edit`.

        ``"today"`` keeps the routine running and leaves a hidden marker
        row so the occurrence is not materialized again for that date.
        ``"all_future"`` ends the routine the day before this schedule and
        drops later occurrences that were never touched; earlier rows stay.
        """
        user_id = ctx.require_user()
        self._check_scope(scope)
        schedule = self.get(ctx, schedule_id)
        if schedule is None:
            return
        if not schedule.routine_id:
            self.repo.delete_schedule(user_id, schedule.id)
            self.logger.info("Schedule deleted: %s", schedule.id)
            return
        if scope is None:
            raise ScopeRequiredError(schedule.id, schedule.routine_id, "delete")

        if scope == SCOPE_TODAY:
            self.repo.update_schedule(
                user_id,
                schedule.id,
                status="skipped",
                modified_at=utc_now(),
                modified_reason=DELETED_REASON,
            )
            self.logger.info("Routine occurrence %s removed for %s", schedule.id, schedule.date)
            return

        self.routines.end_before(ctx, schedule.routine_id, schedule.date)
        later = self.repo.list_schedules(
            user_id, start=schedule.date + timedelta(days=1), routine_id=schedule.routine_id
        )
        pruned = 0
        for row in later:
            if self._is_untouched(row) or is_tombstone(row):
                self.repo.delete_schedule(user_id, row.id)
                pruned += 1
        self.repo.delete_schedule(user_id, schedule.id)
        self.logger.info(
            "Schedule %s deleted with routine %s ended; %d later occurrence(s) pruned",
            schedule.id,
            schedule.routine_id,
            pruned,
        )

    # ---------- status ----------
    def set_status(
        self,
        ctx: PlannerContext,
        schedule_id: str,
        status: str,
        *,
        completed_minutes: Optional[int] = None,
    ) -> Schedule:
        """Explicit status write.

        When the schedule has items only ``completed`` and ``planned`` are
        accepted, and they check or uncheck every item so the derived
        status agrees with the write.
        """
        user_id = ctx.require_user()
        if status not in SCHEDULE_STATUSES:
            raise ValidationError(f"Unknown schedule status: {status!r}")
        if completed_minutes is not None and completed_minutes < 0:
            raise ValidationError("completed_minutes must not be negative")
        schedule = self.require(ctx, schedule_id)

        fields: Dict[str, Any] = {
            "status": status,
            "completed_minutes": completed_minutes if status == "partial" else None,
        }
        if schedule.items:
            if status not in ("completed", "planned"):
                raise ValidationError("Status of a schedule with items follows its items")
            done = status == "completed"
            fields["items"] = [dict(item, is_completed=done) for item in schedule.items]
        return self.repo.update_schedule(user_id, schedule.id, **fields)

    def toggle_completed(self, ctx: PlannerContext, schedule_id: str) -> Schedule:
        schedule = self.require(ctx, schedule_id)
        if schedule.items:
            done = all(item.get("is_completed") for item in schedule.items)
            return self.set_status(ctx, schedule_id, "planned" if done else "completed")
        next_status = "planned" if schedule.status == "completed" else "completed"
        return self.set_status(ctx, schedule_id, next_status)

    def _claim_routine_date(self, ctx: PlannerContext, schedule: Schedule, day: date) -> None:
        rows = self.repo.list_schedules(ctx.user_id, day=day, routine_id=schedule.routine_id)
        if any(not is_tombstone(row) for row in rows):
            raise ValidationError(f"Routine {schedule.routine_id} already has an occurrence on {day}")
        for row in rows:
            self.repo.delete_schedule(ctx.user_id, row.id)

    def _leave_marker(self, ctx: PlannerContext, schedule: Schedule) -> None:
        routine = self.routines.get(ctx, schedule.routine_id)
        if routine is None or not is_in_force(routine, schedule.date):
            return
        try:
            self.repo.insert_schedule(
                ctx.user_id,
                title=schedule.title,
                color=schedule.color,
                date=schedule.date,
                start_time=schedule.start_time,
                end_time=schedule.end_time,
                items=[],
                status="skipped",
                routine_id=schedule.routine_id,
                modified_at=utc_now(),
                modified_reason=DELETED_REASON,
            )
        except DuplicateOccurrenceError:
            self.logger.warning(
                "Routine %s was materialized again on %s while moving %s",
                schedule.routine_id,
                schedule.date,
                schedule.id,
            )

    def reschedule(
        self,
        ctx: PlannerContext,
        schedule_id: str,
        *,
        day: date | str | None = None,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Schedule:
        """Move a schedule in time, keeping where it was first planned.

        ``original_*`` fields are captured on the first move only. Moving
        only the start keeps the block's duration.

        A routine occurrence moved to another date leaves a hidden marker on
        the date it vacated so the routine is not materialized there again.
        Moving it onto a date that already holds that routine is rejected;
        a marker found there is replaced.
        """
        user_id = ctx.require_user()
        schedule = self.require(ctx, schedule_id)
        new_day = parse_day(day) if day is not None else schedule.date
        if new_day is None:
            raise ValidationError(f"Invalid date: {day!r}")
        new_start = normalize_time(start_time) if start_time else schedule.start_time
        if end_time:
            new_end = normalize_time(end_time)
        elif start_time:
            new_end = add_minutes(new_start, duration(schedule.start_time, schedule.end_time))
        else:
            new_end = schedule.end_time

        if (new_day, new_start, new_end) == (schedule.date, schedule.start_time, schedule.end_time):
            return schedule

        changes_date = bool(schedule.routine_id) and new_day != schedule.date
        if changes_date:
            self._claim_routine_date(ctx, schedule, new_day)

        fields: Dict[str, Any] = {
            "date": new_day,
            "start_time": new_start,
            "end_time": new_end,
            "modified_at": utc_now(),
            "modified_reason": reason or None,
            "status": derive_status(schedule.items, "rescheduled"),
        }
        if schedule.original_date is None:
            fields.update(
                original_date=schedule.date,
                original_start_time=schedule.start_time,
                original_end_time=schedule.end_time,
            )
        moved = self.repo.update_schedule(user_id, schedule.id, **fields)
        if changes_date:
            self._leave_marker(ctx, schedule)
        self.logger.info("Schedule %s moved to %s %s-%s", schedule.id, new_day, new_start, new_end)
        return moved

    # ---------- items ----------
    def toggle_item(self, ctx: PlannerContext, schedule_id: str, item_id: str) -> Schedule:
        schedule = self.require(ctx, schedule_id)
        items = [dict(item) for item in schedule.items or []]
        for item in items:
            if item.get("id") == item_id:
                item["is_completed"] = not item.get("is_completed")
                break
        else:
            raise NotFoundError("schedule item", item_id)
        return self._save_items(ctx, schedule, items)

    def add_item(self, ctx: PlannerContext, schedule_id: str, title: str) -> Schedule:
        cleaned = (title or "").strip()
        if not cleaned:
            raise ValidationError("Item title must not be empty")
        schedule = self.require(ctx, schedule_id)
        items = [dict(item) for item in schedule.items or []]
        items.append(make_item(cleaned, len(items)))
        return self._save_items(ctx, schedule, items)

    def rename_item(self, ctx: PlannerContext, schedule_id: str, item_id: str, title: str) -> Schedule:
        cleaned = (title or "").strip()
        if not cleaned:
            raise ValidationError("Item title must not be empty")
        schedule = self.require(ctx, schedule_id)
        items = [dict(item) for item in schedule.items or []]
        for item in items:
            if item.get("id") == item_id:
                item["title"] = cleaned
                break
        else:
            raise NotFoundError("schedule item", item_id)
        return self._save_items(ctx, schedule, items)

    def remove_item(self, ctx: PlannerContext, schedule_id: str, item_id: str) -> Schedule:
        schedule = self.require(ctx, schedule_id)
        kept = [dict(item) for item in schedule.items or [] if item.get("id") != item_id]
        if len(kept) == len(schedule.items or []):
            raise NotFoundError("schedule item", item_id)
        for idx, item in enumerate(kept):
            item["order"] = idx
        return self._save_items(ctx, schedule, kept)

    # ---------- overdue sweep ----------
    def reconcile_overdue(self, ctx: PlannerContext, now: Optional[datetime] = None) -> List[Schedule]:
        """Complete item-less planned schedules whose end has passed.

        Looks at today and yesterday so blocks crossing midnight are caught
        after the date changes. Schedules with items are left alone; their
        status comes from the items. Safe to run any number of times.
        """
        if not ctx.is_authenticated:
            return []
        moment = now or datetime.now()
        today = moment.date()
        candidates = self.repo.list_schedules(ctx.user_id, start=today - timedelta(days=1), end=today)
        completed: List[Schedule] = []
        for schedule in candidates:
            if schedule.status != "planned" or schedule.items or is_tombstone(schedule):
                continue
            if block_end_datetime(schedule.date, schedule.start_time, schedule.end_time) > moment:
                continue
            completed.append(self.repo.update_schedule(ctx.user_id, schedule.id, status="completed"))
        if completed:
            self.logger.info("Auto-completed %d overdue schedule(s)", len(completed))
        return completed


__all__ = ["SCOPES", "SCOPE_ALL_FUTURE", "SCOPE_TODAY", "ScheduleService"]
