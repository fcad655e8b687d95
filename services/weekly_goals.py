# planner/services/weekly_goals.py
from __future__ import annotations

import re
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from core.errors import ValidationError
from core.logs import get_logger
from datetime_utils import week_id as week_id_for, week_range, week_start_from_id
from helpers.datetime_utils import duration
from models.schedule import Schedule, is_schedule_completed, is_tombstone
from models.task import Task
from models.week import Week, WeeklyGoal
from services.context import PlannerContext
from services.tasks import TaskService
from storage.repository import PlannerRepository

_RE_COUNTED = re.compile(r"^(.+?)\s*\((\d+)회\)$")


def counted_title(title: str, target_count: int) -> str:
    """``"독서 (3회)"`` for counts above one, the bare title otherwise."""
    base = title.strip()
    return f"{base} ({target_count}회)" if target_count > 1 else base


def parse_counted_title(title: str) -> Tuple[str, int]:
    """Split ``"독서 (3회)"`` into ``("독서", 3)``; other titles count once."""
    match = _RE_COUNTED.match((title or "").strip())
    if match:
        return match.group(1).strip(), int(match.group(2))
    return (title or "").strip(), 1


def task_target(task: Task) -> Tuple[str, int]:
    """Base title and target of a task, preferring the stored ``target_count``."""
    base, parsed = parse_counted_title(task.title)
    if task.target_count:
        return base, task.target_count
    return base, parsed


def count_matching_items(
    schedules: Iterable[Schedule], title: str, *, completed_only: bool = False
) -> int:
    total = 0
    for schedule in schedules:
        for item in schedule.items or []:
            if item.get("title") != title:
                continue
            if completed_only and not item.get("is_completed"):
                continue
            total += 1
    return total


class WeekService:
    def __init__(self, repo: PlannerRepository, tasks: TaskService):
        self.repo = repo
        self.tasks = tasks
        self.logger = get_logger("weeks")

    # ---------- week rows ----------
    def get_or_create_week(self, ctx: PlannerContext, day: Optional[date] = None) -> Optional[Week]:
        """Week containing ``day`` (default today), created on first access."""
        if not ctx.is_authenticated:
            return None
        target = day or ctx.today
        start, end = week_range(target)
        return self.repo.get_or_create_week(ctx.user_id, week_id_for(target), start_date=start, end_date=end)

    def get_week(self, ctx: PlannerContext, week_id: str) -> Optional[Week]:
        if not ctx.is_authenticated:
            return None
        return self.repo.get_week(ctx.user_id, week_id)

    def _ensure_week(self, ctx: PlannerContext, week_id: str) -> Week:
        user_id = ctx.require_user()
        try:
            start = week_start_from_id(week_id)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        _, end = week_range(start)
        return self.repo.get_or_create_week(user_id, week_id_for(start), start_date=start, end_date=end)

    def update_goals(self, ctx: PlannerContext, week_id: str, goals: Iterable[str]) -> Week:
        cleaned = [g.strip() for g in goals if g and g.strip()]
        self._ensure_week(ctx, week_id)
        return self.repo.update_week_goals(ctx.user_id, week_id, goals=cleaned)

    def update_weekly_goals(
        self,
        ctx: PlannerContext,
        week_id: str,
        goals: Iterable[Union[WeeklyGoal, Dict[str, Any]]],
    ) -> Week:
        parsed = [g if isinstance(g, WeeklyGoal) else WeeklyGoal.from_dict(g) for g in goals]
        for goal in parsed:
            if not goal.title:
                raise ValidationError("Weekly goal title must not be empty")
            if any(not sub.title for sub in goal.sub_tasks):
                raise ValidationError("Sub-task title must not be empty")
        self._ensure_week(ctx, week_id)
        return self.repo.update_week_goals(
            ctx.user_id, week_id, weekly_goals=[g.to_dict() for g in parsed]
        )

    def update_notes(self, ctx: PlannerContext, week_id: str, notes: Optional[str]) -> Week:
        self._ensure_week(ctx, week_id)
        return self.repo.update_week(ctx.user_id, week_id, notes=(notes or "").strip() or None)

    def weekly_goals(self, ctx: PlannerContext, week_id: str) -> List[WeeklyGoal]:
        week = self.get_week(ctx, week_id)
        if week is None:
            return []
        return [WeeklyGoal.from_dict(raw) for raw in week.weekly_goals or []]

    # ---------- decomposition ----------
    def expand_goals_to_backlog(
        self,
        ctx: PlannerContext,
        week_id: str,
        goals: Optional[Iterable[Union[WeeklyGoal, Dict[str, Any]]]] = None,
    ) -> List[Task]:
        """One backlog task per goal sub-task, reusing tasks that already exist.

        A task is reused when its title and week id match exactly. Returns
        the tasks in sub-task order, created or found.
        """
        ctx.require_user()
        if goals is None:
            parsed = self.weekly_goals(ctx, week_id)
        else:
            parsed = [g if isinstance(g, WeeklyGoal) else WeeklyGoal.from_dict(g) for g in goals]

        existing = {task.title: task for task in self.tasks.list_for_week(ctx, week_id)}
        result: List[Task] = []
        created = 0
        for goal in parsed:
            for sub in goal.sub_tasks:
                if not sub.title:
                    continue
                title = counted_title(sub.title, sub.target_count)
                task = existing.get(title)
                if task is None:
                    task = self.tasks.add(
                        ctx,
                        title,
                        estimated_minutes=sub.estimated_minutes,
                        category=sub.category,
                        week_id=week_id,
                        target_count=sub.target_count,
                    )
                    existing[title] = task
                    created += 1
                result.append(task)
        self.logger.info("Expanded goals of %s: %d task(s), %d new", week_id, len(result), created)
        return result

    def _week_schedules(self, ctx: PlannerContext, week_id: str) -> List[Schedule]:
        start = week_start_from_id(week_id)
        _, end = week_range(start)
        rows = self.repo.list_schedules(ctx.user_id, start=start, end=end)
        return [s for s in rows if not is_tombstone(s)]

    def remaining_count(
        self,
        ctx: PlannerContext,
        task: Task,
        *,
        draft_items: Iterable[Dict[str, Any]] = (),
        exclude_schedule_id: Optional[str] = None,
    ) -> int:
        """How many more times ``task`` can be added to schedules this week.

        Counts items titled like the task's base title across every
        schedule of the task's week plus ``draft_items`` (the form being
        edited). The schedule being edited is excluded so its items are
        not counted twice. Never stored; never below zero.
        """
        if not ctx.is_authenticated:
            return 0
        base, target = task_target(task)
        week = task.week_id or week_id_for(ctx.today)
        schedules = [s for s in self._week_schedules(ctx, week) if s.id != exclude_schedule_id]
        consumed = count_matching_items(schedules, base)
        consumed += sum(1 for item in draft_items if (item.get("title") or "").strip() == base)
        return max(target - consumed, 0)

    def remaining_tasks(self, ctx: PlannerContext, week_id: str, **kwargs: Any) -> List[Tuple[Task, int]]:
        """Week tasks that still have repetitions left, with the count."""
        pairs = []
        for task in self.tasks.list_for_week(ctx, week_id):
            left = self.remaining_count(ctx, task, **kwargs)
            if left > 0:
                pairs.append((task, left))
        return pairs

    def goal_progress(self, ctx: PlannerContext, week_id: str) -> List[WeeklyGoal]:
        """Weekly goals with ``completed_count`` filled from checked schedule items."""
        goals = self.weekly_goals(ctx, week_id)
        if not goals:
            return []
        schedules = self._week_schedules(ctx, week_id)
        for goal in goals:
            for sub in goal.sub_tasks:
                sub.completed_count = count_matching_items(schedules, sub.title, completed_only=True)
            goal.is_completed = bool(goal.sub_tasks) and all(
                sub.completed_count >= sub.target_count for sub in goal.sub_tasks
            )
        return goals

    def refresh_totals(self, ctx: PlannerContext, week_id: str) -> Week:
        """Recompute the week's planned and completed minutes from its schedules."""
        week = self._ensure_week(ctx, week_id)
        planned = 0
        completed = 0
        for schedule in self._week_schedules(ctx, week_id):
            minutes = duration(schedule.start_time, schedule.end_time)
            planned += minutes
            if is_schedule_completed(schedule):
                completed += minutes
            elif schedule.status == "partial":
                completed += min(schedule.completed_minutes or 0, minutes)
        return self.repo.update_week(
            ctx.user_id, week.id, planned_minutes=planned, completed_minutes=completed
        )


__all__ = [
    "WeekService",
    "count_matching_items",
    "counted_title",
    "parse_counted_title",
    "task_target",
]
