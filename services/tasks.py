# planner/services/tasks.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from core.errors import NotFoundError, PersistenceError, ValidationError
from core.logs import get_logger
from core.palette import category_color, normalize_color
from core.settings import DEFAULTS
from models.schedule import Schedule, is_tombstone
from models.task import RECURRING_TYPES, TASK_STATUSES, Task
from services.context import PlannerContext
from services.schedules import ScheduleService
from storage.repository import PlannerRepository

_UPDATABLE = {
    "title",
    "description",
    "estimated_minutes",
    "actual_minutes",
    "category",
    "color",
    "week_id",
    "target_count",
    "is_recurring",
    "recurring_type",
    "recurring_days",
}


@dataclass(frozen=True)
class PlacementResult:
    """Outcome of placing a task; ``warning`` is set when the task status could not follow."""

    schedule: Schedule
    task: Task
    warning: Optional[str] = None


class TaskService:
    MAX_TASKS = 500
    EVENTS = ("after_create", "after_update", "after_delete")

    def __init__(self, repo: PlannerRepository, schedules: ScheduleService):
        self.repo = repo
        self.schedules = schedules
        self.logger = get_logger("tasks")
        self._listeners: Dict[str, Set[Callable[[str], None]]] = {event: set() for event in self.EVENTS}

    # ---------- events ----------
    def subscribe(self, event: str, callback: Callable[[str], None]) -> None:
        if event not in self._listeners:
            raise ValueError(f"Unsupported event: {event}")
        self._listeners[event].add(callback)

    def unsubscribe(self, event: str, callback: Callable[[str], None]) -> None:
        if event not in self._listeners:
            return
        self._listeners[event].discard(callback)

    def _emit(self, event: str, task_id: str) -> None:
        for listener in list(self._listeners.get(event, [])):
            try:
                listener(task_id)
            except Exception:
                self.logger.exception("Task listener failed for %s(%s)", event, task_id)

    # ---------- validation ----------
    @staticmethod
    def _clean_title(title: Optional[str]) -> str:
        cleaned = (title or "").strip()
        if not cleaned:
            raise ValidationError("Task title must not be empty")
        if len(cleaned) > DEFAULTS.max_title_length:
            raise ValidationError("Task title is too long")
        return cleaned

    @staticmethod
    def _clean_minutes(value: Any) -> int:
        try:
            minutes = int(value)
        except (TypeError, ValueError):
            raise ValidationError("Estimated minutes must be a number") from None
        if minutes < DEFAULTS.min_estimated_minutes:
            raise ValidationError(f"Estimated minutes must be at least {DEFAULTS.min_estimated_minutes}")
        if minutes > DEFAULTS.max_block_minutes:
            raise ValidationError(f"Estimated minutes must be at most {DEFAULTS.max_block_minutes}")
        return minutes

    @staticmethod
    def _clean_recurrence(
        is_recurring: bool, recurring_type: Optional[str], recurring_days: Optional[Iterable[int]]
    ) -> Dict[str, Any]:
        if not is_recurring:
            return {"is_recurring": False, "recurring_type": None, "recurring_days": None}
        if recurring_type not in RECURRING_TYPES:
            raise ValidationError(f"Unknown recurrence: {recurring_type!r}")
        days: Optional[List[int]] = None
        if recurring_type == "weekly":
            days = sorted({int(d) for d in (recurring_days or [])})
            if not days or any(d < 0 or d > 6 for d in days):
                raise ValidationError("Weekly recurrence needs weekdays 0..6")
        return {"is_recurring": True, "recurring_type": recurring_type, "recurring_days": days}

    @staticmethod
    def _clean_target(value: Optional[int]) -> Optional[int]:
        if value is None:
            return None
        target = int(value)
        if target < 1:
            raise ValidationError("Target count must be at least 1")
        return target

    # ---------- CRUD ----------
    def add(
        self,
        ctx: PlannerContext,
        title: str,
        *,
        estimated_minutes: int = 30,
        description: Optional[str] = None,
        category: Optional[str] = None,
        color: Optional[str] = None,
        week_id: Optional[str] = None,
        target_count: Optional[int] = None,
        is_recurring: bool = False,
        recurring_type: Optional[str] = None,
        recurring_days: Optional[Iterable[int]] = None,
        emit: bool = True,
    ) -> Task:
        user_id = ctx.require_user()
        fields = {
            "title": self._clean_title(title),
            "estimated_minutes": self._clean_minutes(estimated_minutes),
            "description": description or None,
            "category": category or None,
            "color": normalize_color(color) if color else category_color(category),
            "week_id": week_id or None,
            "target_count": self._clean_target(target_count),
            "status": "backlog",
        }
        fields.update(self._clean_recurrence(is_recurring, recurring_type, recurring_days))
        if len(self.repo.list_tasks(user_id)) >= self.MAX_TASKS:
            raise ValidationError(f"Task limit reached ({self.MAX_TASKS})")
        task = self.repo.insert_task(user_id, **fields)
        if emit:
            self._emit("after_create", task.id)
        return task

    def get(self, ctx: PlannerContext, task_id: str) -> Optional[Task]:
        if not ctx.is_authenticated:
            return None
        return self.repo.get_task(ctx.user_id, task_id)

    def require(self, ctx: PlannerContext, task_id: str) -> Task:
        task = self.get(ctx, task_id)
        if task is None:
            raise NotFoundError("task", task_id)
        return task

    def update(self, ctx: PlannerContext, task_id: str, *, emit: bool = True, **changes: Any) -> Task:
        user_id = ctx.require_user()
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValidationError(f"Unknown task fields: {', '.join(sorted(unknown))}")
        current = self.require(ctx, task_id)

        fields: Dict[str, Any] = {}
        if "title" in changes:
            fields["title"] = self._clean_title(changes["title"])
        if "estimated_minutes" in changes:
            fields["estimated_minutes"] = self._clean_minutes(changes["estimated_minutes"])
        if "target_count" in changes:
            fields["target_count"] = self._clean_target(changes["target_count"])
        if "color" in changes:
            fields["color"] = normalize_color(changes["color"])
        for key in ("description", "category", "week_id", "actual_minutes"):
            if key in changes:
                fields[key] = changes[key] if changes[key] not in ("", None) else None
        if {"is_recurring", "recurring_type", "recurring_days"} & set(changes):
            fields.update(
                self._clean_recurrence(
                    changes.get("is_recurring", current.is_recurring),
                    changes.get("recurring_type", current.recurring_type),
                    changes.get("recurring_days", current.recurring_days),
                )
            )

        task = self.repo.update_task(user_id, task_id, **fields)
        if emit:
            self._emit("after_update", task.id)
        return task

    def set_status(self, ctx: PlannerContext, task_id: str, status: str) -> Task:
        user_id = ctx.require_user()
        if status not in TASK_STATUSES:
            raise ValidationError(f"Unknown task status: {status!r}")
        task = self.repo.update_task(user_id, task_id, status=status)
        self._emit("after_update", task.id)
        return task

    def delete(self, ctx: PlannerContext, task_id: str, *, emit: bool = True) -> None:
        """Delete a task; schedules placed from it stay on the calendar, unlinked."""
        user_id = ctx.require_user()
        for schedule in self.repo.list_schedules(user_id, task_id=task_id):
            self.repo.update_schedule(user_id, schedule.id, task_id=None)
        if emit:
            self._emit("after_delete", task_id)
        self.repo.delete_task(user_id, task_id)

    # ---------- listings ----------
    def list_all(self, ctx: PlannerContext) -> List[Task]:
        if not ctx.is_authenticated:
            return []
        return self.repo.list_tasks(ctx.user_id)

    def list_backlog(self, ctx: PlannerContext) -> List[Task]:
        if not ctx.is_authenticated:
            return []
        return self.repo.list_tasks(ctx.user_id, status="backlog")

    def list_for_week(self, ctx: PlannerContext, week_id: str) -> List[Task]:
        if not ctx.is_authenticated:
            return []
        return self.repo.list_tasks(ctx.user_id, week_id=week_id)

    # ---------- placement ----------
    def _placements(self, ctx: PlannerContext, task_id: str) -> List[Schedule]:
        rows = self.repo.list_schedules(ctx.user_id, task_id=task_id)
        return [s for s in rows if not is_tombstone(s)]

    def is_task_scheduled(self, ctx: PlannerContext, task_id: str) -> bool:
        """Scheduled means a schedule references the task, whatever its status field says."""
        if not ctx.is_authenticated:
            return False
        return bool(self._placements(ctx, task_id))

    def place_task(
        self,
        ctx: PlannerContext,
        task_id: str,
        day: date,
        start_time: str = DEFAULTS.quick_place_time,
    ) -> PlacementResult:
        """Put a task on the calendar for its estimated duration.

        A task has at most one placement. The new schedule is written
        first and earlier placements are removed only once it exists, so a
        rejected time leaves the old placement in place. If the task status
        update then fails the schedule is kept and the result carries a
        warning; :meth:`reconcile_task_statuses` repairs it.
        """
        user_id = ctx.require_user()
        task = self.require(ctx, task_id)
        previous = self._placements(ctx, task_id)

        schedule = self.schedules.create(
            ctx,
            title=task.title,
            day=day,
            start_time=start_time,
            duration_minutes=task.estimated_minutes,
            color=task.color,
            description=task.description,
            task_id=task.id,
        )
        for old in previous:
            self.repo.delete_schedule(user_id, old.id)

        if task.status != "backlog":
            return PlacementResult(schedule=schedule, task=task)
        try:
            task = self.repo.update_task(user_id, task.id, status="scheduled")
        except (PersistenceError, NotFoundError) as exc:
            message = f"Schedule {schedule.id} created but task {task.id} is still backlog: {exc}"
            self.logger.warning(message)
            return PlacementResult(schedule=schedule, task=task, warning=message)
        self._emit("after_update", task.id)
        return PlacementResult(schedule=schedule, task=task)

    def unschedule_task(self, ctx: PlannerContext, task_id: str) -> Task:
        """Remove the task's placement and send it back to the backlog."""
        user_id = ctx.require_user()
        task = self.require(ctx, task_id)
        for schedule in self._placements(ctx, task_id):
            self.repo.delete_schedule(user_id, schedule.id)
        if task.status == "scheduled":
            task = self.repo.update_task(user_id, task.id, status="backlog")
            self._emit("after_update", task.id)
        return task

    def reconcile_task_statuses(self, ctx: PlannerContext) -> List[Task]:
        """Re-derive ``backlog``/``scheduled`` from the schedules referencing each task.

        Other statuses are user decisions and are left alone.
        """
        if not ctx.is_authenticated:
            return []
        placed = {
            s.task_id
            for s in self.repo.list_schedules(ctx.user_id)
            if s.task_id and not is_tombstone(s)
        }
        changed: List[Task] = []
        for task in self.repo.list_tasks(ctx.user_id):
            if task.status == "backlog" and task.id in placed:
                changed.append(self.repo.update_task(ctx.user_id, task.id, status="scheduled"))
            elif task.status == "scheduled" and task.id not in placed:
                changed.append(self.repo.update_task(ctx.user_id, task.id, status="backlog"))
        if changed:
            self.logger.info("Reconciled status of %d task(s)", len(changed))
        return changed


__all__ = ["PlacementResult", "TaskService"]
