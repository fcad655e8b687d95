"""Persistence boundary for tasks, schedules, routines and weeks.

Services only talk to :class:`PlannerRepository`. The SQLModel
implementation below scopes every row by ``user_id`` and turns SQLAlchemy
failures into :class:`~core.errors.PersistenceError` so callers never see
driver exceptions.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import date
from typing import Any, Callable, Iterator, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from core.errors import DuplicateOccurrenceError, NotFoundError, PersistenceError
from datetime_utils import utc_now
from models.routine import Routine
from models.schedule import Schedule
from models.task import Task
from models.week import Week


class PlannerRepository(ABC):
    # ----- tasks -----
    @abstractmethod
    def list_tasks(
        self, user_id: str, *, status: Optional[str] = None, week_id: Optional[str] = None
    ) -> List[Task]: ...

    @abstractmethod
    def get_task(self, user_id: str, task_id: str) -> Optional[Task]: ...

    @abstractmethod
    def insert_task(self, user_id: str, **fields: Any) -> Task: ...

    @abstractmethod
    def update_task(self, user_id: str, task_id: str, **fields: Any) -> Task: ...

    @abstractmethod
    def delete_task(self, user_id: str, task_id: str) -> None: ...

    # ----- schedules -----
    @abstractmethod
    def list_schedules(
        self,
        user_id: str,
        *,
        day: Optional[date] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        routine_id: Optional[str] = None,
        task_id: Optional[str] = None,
    ) -> List[Schedule]: ...

    @abstractmethod
    def get_schedule(self, user_id: str, schedule_id: str) -> Optional[Schedule]: ...

    @abstractmethod
    def insert_schedule(self, user_id: str, **fields: Any) -> Schedule: ...

    @abstractmethod
    def update_schedule(self, user_id: str, schedule_id: str, **fields: Any) -> Schedule: ...

    @abstractmethod
    def delete_schedule(self, user_id: str, schedule_id: str) -> None: ...

    # ----- routines -----
    @abstractmethod
    def list_routines(self, user_id: str) -> List[Routine]: ...

    @abstractmethod
    def get_routine(self, user_id: str, routine_id: str) -> Optional[Routine]: ...

    @abstractmethod
    def insert_routine(self, user_id: str, **fields: Any) -> Routine: ...

    @abstractmethod
    def update_routine(self, user_id: str, routine_id: str, **fields: Any) -> Routine: ...

    @abstractmethod
    def delete_routine(self, user_id: str, routine_id: str) -> None: ...

    # ----- weeks -----
    @abstractmethod
    def get_week(self, user_id: str, week_id: str) -> Optional[Week]: ...

    @abstractmethod
    def get_or_create_week(
        self, user_id: str, week_id: str, *, start_date: date, end_date: date
    ) -> Week: ...

    @abstractmethod
    def update_week(self, user_id: str, week_id: str, **fields: Any) -> Week: ...

    def update_week_goals(
        self,
        user_id: str,
        week_id: str,
        *,
        goals: Optional[List[str]] = None,
        weekly_goals: Optional[List[dict]] = None,
    ) -> Week:
        fields: dict = {}
        if goals is not None:
            fields["goals"] = list(goals)
        if weekly_goals is not None:
            fields["weekly_goals"] = list(weekly_goals)
        return self.update_week(user_id, week_id, **fields)


class SqlPlannerRepository(PlannerRepository):
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    @contextmanager
    def _session(self, action: str) -> Iterator[Session]:
        try:
            with self._session_factory() as session:
                yield session
        except IntegrityError as exc:
            if "routine_id" in str(exc.orig) or "ux_schedule_routine_date" in str(exc.orig):
                raise DuplicateOccurrenceError(
                    f"Failed to {action}: routine already scheduled for this date"
                ) from exc
            raise PersistenceError(f"Failed to {action}: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to {action}: {exc}") from exc

    def _insert(self, model, action: str, user_id: str, fields: dict):
        with self._session(action) as s:
            obj = model(user_id=user_id, **fields)
            s.add(obj)
            s.commit()
            s.refresh(obj)
            return obj

    def _update(self, model, entity: str, user_id: str, obj_id: str, fields: dict, *, touch: bool = False):
        with self._session(f"update {entity}") as s:
            obj = s.get(model, obj_id)
            if obj is None or obj.user_id != user_id:
                raise NotFoundError(entity, obj_id)
            for key, value in fields.items():
                if not hasattr(obj, key):
                    raise AttributeError(f"{entity} has no field {key!r}")
                setattr(obj, key, value)
            if touch:
                obj.updated_at = utc_now()
            s.add(obj)
            s.commit()
            s.refresh(obj)
            return obj

    def _delete(self, model, entity: str, user_id: str, obj_id: str) -> None:
        with self._session(f"delete {entity}") as s:
            obj = s.get(model, obj_id)
            if obj is not None and obj.user_id == user_id:
                s.delete(obj)
                s.commit()

    def _get(self, model, entity: str, user_id: str, obj_id: str):
        with self._session(f"load {entity}") as s:
            obj = s.get(model, obj_id)
            if obj is None or obj.user_id != user_id:
                return None
            return obj

    # ----- tasks -----
    def list_tasks(self, user_id, *, status=None, week_id=None):
        with self._session("list tasks") as s:
            stmt = select(Task).where(Task.user_id == user_id)
            if status is not None:
                stmt = stmt.where(Task.status == status)
            if week_id is not None:
                stmt = stmt.where(Task.week_id == week_id)
            stmt = stmt.order_by(Task.created_at.desc())
            return list(s.exec(stmt))

    def get_task(self, user_id, task_id):
        return self._get(Task, "task", user_id, task_id)

    def insert_task(self, user_id, **fields):
        return self._insert(Task, "insert task", user_id, fields)

    def update_task(self, user_id, task_id, **fields):
        return self._update(Task, "task", user_id, task_id, fields, touch=True)

    def delete_task(self, user_id, task_id):
        self._delete(Task, "task", user_id, task_id)

    # ----- schedules -----
    def list_schedules(self, user_id, *, day=None, start=None, end=None, routine_id=None, task_id=None):
        with self._session("list schedules") as s:
            stmt = select(Schedule).where(Schedule.user_id == user_id)
            if day is not None:
                stmt = stmt.where(Schedule.date == day)
            if start is not None:
                stmt = stmt.where(Schedule.date >= start)
            if end is not None:
                stmt = stmt.where(Schedule.date <= end)
            if routine_id is not None:
                stmt = stmt.where(Schedule.routine_id == routine_id)
            if task_id is not None:
                stmt = stmt.where(Schedule.task_id == task_id)
            stmt = stmt.order_by(Schedule.date.asc(), Schedule.start_time.asc(), Schedule.created_at.asc())
            return list(s.exec(stmt))

    def get_schedule(self, user_id, schedule_id):
        return self._get(Schedule, "schedule", user_id, schedule_id)

    def insert_schedule(self, user_id, **fields):
        return self._insert(Schedule, "insert schedule", user_id, fields)

    def update_schedule(self, user_id, schedule_id, **fields):
        return self._update(Schedule, "schedule", user_id, schedule_id, fields)

    def delete_schedule(self, user_id, schedule_id):
        self._delete(Schedule, "schedule", user_id, schedule_id)

    # ----- routines -----
    def list_routines(self, user_id):
        with self._session("list routines") as s:
            stmt = select(Routine).where(Routine.user_id == user_id).order_by(Routine.start_time.asc())
            return list(s.exec(stmt))

    def get_routine(self, user_id, routine_id):
        return self._get(Routine, "routine", user_id, routine_id)

    def insert_routine(self, user_id, **fields):
        return self._insert(Routine, "insert routine", user_id, fields)

    def update_routine(self, user_id, routine_id, **fields):
        return self._update(Routine, "routine", user_id, routine_id, fields)

    def delete_routine(self, user_id, routine_id):
        self._delete(Routine, "routine", user_id, routine_id)

    # ----- weeks -----
    def get_week(self, user_id, week_id):
        with self._session("load week") as s:
            return s.get(Week, (user_id, week_id))

    def get_or_create_week(self, user_id, week_id, *, start_date, end_date):
        with self._session("create week") as s:
            week = s.get(Week, (user_id, week_id))
            if week is not None:
                return week
            week = Week(user_id=user_id, id=week_id, start_date=start_date, end_date=end_date)
            s.add(week)
            s.commit()
            s.refresh(week)
            return week

    def update_week(self, user_id, week_id, **fields):
        with self._session("update week") as s:
            week = s.get(Week, (user_id, week_id))
            if week is None:
                raise NotFoundError("week", week_id)
            for key, value in fields.items():
                if not hasattr(week, key):
                    raise AttributeError(f"week has no field {key!r}")
                setattr(week, key, value)
            s.add(week)
            s.commit()
            s.refresh(week)
            return week


__all__ = ["PlannerRepository", "SqlPlannerRepository"]
