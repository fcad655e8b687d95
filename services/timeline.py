"""Merge schedules, routine ghosts and external events into one day view.

A day view is an ordered list of occurrences. Each occurrence is one of
three frozen value types:

* :class:`ScheduleBlock` wraps a persisted :class:`~models.schedule.Schedule`.
* :class:`RoutineGhost` is a routine in force on the date that has not
  been materialized yet. A materialized schedule always hides its ghost.
* :class:`ExternalBlock` is a read-only calendar event clipped to the date.

Layout helpers turn the list into a fixed slot grid or into proportional
``top``/``height`` percentages.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from core.logs import get_logger
from core.settings import COMPACT_TIMELINE, DEFAULTS, TIMELINE, TimelineSettings
from datetime_utils import parse_day, parse_rfc3339, to_local, week_dates
from helpers.datetime_utils import (
    BlockPosition,
    block_position,
    minutes_to_time,
    normalize_time,
    operating_minutes,
    slot_label,
    slot_span,
    time_to_minutes,
)
from models.external_event import ExternalEvent
from models.routine import Routine
from models.schedule import Schedule, is_schedule_completed, is_tombstone
from services.context import PlannerContext
from services.routines import RoutineService
from storage.repository import PlannerRepository

logger = get_logger("timeline")

ALL_DAY_START = "00:00"
ALL_DAY_END = "23:59"


@dataclass(frozen=True)
class ScheduleBlock:
    schedule: Schedule
    kind = "schedule"

    @property
    def id(self) -> str:
        return self.schedule.id

    @property
    def title(self) -> str:
        return self.schedule.title or DEFAULTS.schedule_title

    @property
    def start_time(self) -> str:
        return self.schedule.start_time

    @property
    def end_time(self) -> str:
        return self.schedule.end_time

    @property
    def color(self) -> str:
        return self.schedule.color or DEFAULTS.color

    @property
    def completed(self) -> bool:
        return is_schedule_completed(self.schedule)

    is_all_day = False


@dataclass(frozen=True)
class RoutineGhost:
    routine: Routine
    date: date
    kind = "routine"

    @property
    def id(self) -> str:
        return f"routine-{self.routine.id}"

    @property
    def title(self) -> str:
        return self.routine.title

    @property
    def start_time(self) -> str:
        return self.routine.start_time

    @property
    def end_time(self) -> str:
        return self.routine.end_time

    @property
    def color(self) -> str:
        return self.routine.color or DEFAULTS.color

    completed = False
    is_all_day = False


@dataclass(frozen=True)
class ExternalBlock:
    event: ExternalEvent
    date: date
    start_time: str
    end_time: str
    kind = "external"

    @property
    def id(self) -> str:
        return f"google-{self.event.id}"

    @property
    def title(self) -> str:
        return self.event.title or DEFAULTS.external_title

    @property
    def color(self) -> str:
        return self.event.color

    @property
    def is_all_day(self) -> bool:
        return self.event.is_all_day

    completed = False


Occurrence = Union[ScheduleBlock, RoutineGhost, ExternalBlock]

_SOURCE_RANK = {ScheduleBlock: 0, RoutineGhost: 1, ExternalBlock: 2}


def _source_rank(occ: Occurrence) -> int:
    for cls, rank in _SOURCE_RANK.items():
        if isinstance(occ, cls):
            return rank
    raise TypeError(f"Unsupported occurrence: {occ!r}")


def sort_occurrences(
    occurrences: Iterable[Occurrence], day_start_hour: int = TIMELINE.day_start_hour
) -> List[Occurrence]:
    """All-day entries first, then by operating-day start, schedules before routines before events."""

    def key(occ: Occurrence):
        rank = _source_rank(occ)
        if occ.is_all_day:
            return (0, 0, rank)
        return (1, operating_minutes(occ.start_time, day_start_hour), rank)

    return sorted(occurrences, key=key)


# ---------- external events ----------
def _min_span(start_time: str) -> Tuple[str, str]:
    slot = COMPACT_TIMELINE.grid_slot_minutes
    last = time_to_minutes(ALL_DAY_END)
    begin = min(time_to_minutes(start_time), last - slot)
    return minutes_to_time(begin), minutes_to_time(begin + slot)


def _clip_timed(event: ExternalEvent, day: date) -> Optional[ExternalBlock]:
    start_at = parse_rfc3339(event.start)
    end_at = parse_rfc3339(event.end) or start_at
    if start_at is None or end_at is None:
        logger.debug("Skipping event %s with unparseable times", event.id)
        return None
    start_local = to_local(start_at)
    end_local = to_local(end_at)
    day_begin = datetime.combine(day, datetime.min.time())
    day_end = day_begin + timedelta(days=1)
    if start_local >= day_end:
        return None
    if end_local <= day_begin and start_local < day_begin:
        return None
    start_time = start_local.strftime("%H:%M") if start_local >= day_begin else ALL_DAY_START
    end_time = end_local.strftime("%H:%M") if end_local < day_end else ALL_DAY_END
    if end_time <= start_time:
        # zero-length events (reminders) take one grid slot
        start_time, end_time = _min_span(start_time)
    return ExternalBlock(event=event, date=day, start_time=start_time, end_time=end_time)


def _clip_all_day(event: ExternalEvent, day: date) -> Optional[ExternalBlock]:
    first = parse_day(event.start)
    if first is None:
        logger.debug("Skipping all-day event %s with unparseable date", event.id)
        return None
    # the feed's all-day end date is exclusive
    last_exclusive = parse_day(event.end) or first + timedelta(days=1)
    if last_exclusive <= first:
        last_exclusive = first + timedelta(days=1)
    if not (first <= day < last_exclusive):
        return None
    return ExternalBlock(event=event, date=day, start_time=ALL_DAY_START, end_time=ALL_DAY_END)


def external_occurrences_for_day(events: Iterable[ExternalEvent], day: date) -> List[ExternalBlock]:
    """Events overlapping ``day``, with times clipped to that calendar day."""
    blocks: List[ExternalBlock] = []
    for event in events:
        block = _clip_all_day(event, day) if event.is_all_day else _clip_timed(event, day)
        if block is not None:
            blocks.append(block)
    return blocks


# ---------- layout ----------
@dataclass(frozen=True)
class Slot:
    index: int
    label: str
    occurrence: Optional[Occurrence] = None
    is_start: bool = False


def build_slot_grid(
    occurrences: Sequence[Occurrence], settings: TimelineSettings = COMPACT_TIMELINE
) -> List[Slot]:
    """Fixed-width slot grid; each slot holds at most one occurrence.

    Schedules claim slots first, routine ghosts and then external events
    only fill what is still free, so a real schedule always wins a
    contested slot. All-day events are not placed on the grid. A block
    shorter than one slot still claims the slot it starts in.
    """
    width = settings.grid_slot_minutes
    total = settings.visible_minutes // width
    owners: List[Optional[Occurrence]] = [None] * total
    starts: List[bool] = [False] * total

    ordered = sorted(
        (occ for occ in occurrences if not occ.is_all_day),
        key=_source_rank,
    )
    for occ in ordered:
        first, last = slot_span(occ.start_time, occ.end_time, width, settings.day_start_hour)
        last = max(last, first + 1)
        claimed = False
        for idx in range(max(first, 0), min(last, total)):
            if owners[idx] is not None:
                continue
            owners[idx] = occ
            if not claimed:
                starts[idx] = True
                claimed = True

    return [
        Slot(
            index=idx,
            label=slot_label(idx, width, settings.day_start_hour),
            occurrence=owners[idx],
            is_start=starts[idx],
        )
        for idx in range(total)
    ]


def place_proportional(occurrence: Occurrence, settings: TimelineSettings = TIMELINE) -> BlockPosition:
    return block_position(occurrence.start_time, occurrence.end_time, settings)


# ---------- payloads ----------
def _schedule_items_payload(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {
            "id": item.get("id"),
            "title": item.get("title"),
            "isCompleted": bool(item.get("is_completed")),
            "order": item.get("order", idx),
        }
        for idx, item in enumerate(items or [])
    ]


def to_payload(occ: Occurrence) -> Dict[str, Any]:
    """camelCase dict for the presentation layer."""
    payload: Dict[str, Any] = {
        "id": occ.id,
        "kind": occ.kind,
        "title": occ.title,
        "startTime": normalize_time(occ.start_time),
        "endTime": normalize_time(occ.end_time),
        "color": occ.color,
        "completed": occ.completed,
        "isAllDay": occ.is_all_day,
    }
    if isinstance(occ, ScheduleBlock):
        s = occ.schedule
        payload.update(
            date=s.date.isoformat(),
            status=s.status,
            items=_schedule_items_payload(s.items),
            taskId=s.task_id,
            routineId=s.routine_id,
        )
    elif isinstance(occ, RoutineGhost):
        payload.update(
            date=occ.date.isoformat(),
            routineId=occ.routine.id,
            items=[
                {"id": item.get("id"), "title": item.get("title"), "order": item.get("order", idx)}
                for idx, item in enumerate(occ.routine.items or [])
            ],
        )
    elif isinstance(occ, ExternalBlock):
        ev = occ.event
        payload.update(
            date=occ.date.isoformat(),
            calendarId=ev.calendar_id,
            description=ev.description,
            location=ev.location,
            source=ev.source,
            htmlLink=ev.html_link,
        )
    else:
        raise TypeError(f"Unsupported occurrence: {occ!r}")
    return payload


class TimelineService:
    def __init__(
        self,
        repo: PlannerRepository,
        routines: RoutineService,
        settings: TimelineSettings = TIMELINE,
    ):
        self.repo = repo
        self.routines = routines
        self.settings = settings

    def view_for(
        self,
        ctx: PlannerContext,
        day: date,
        external_events: Iterable[ExternalEvent] = (),
    ) -> List[Occurrence]:
        schedules = self.repo.list_schedules(ctx.user_id, day=day) if ctx.is_authenticated else []
        materialized = {s.routine_id for s in schedules if s.routine_id}
        ghosts = [
            RoutineGhost(routine=r, date=day)
            for r in self.routines.active_on(ctx, day)
            if r.id not in materialized
        ]
        merged: List[Occurrence] = [ScheduleBlock(schedule=s) for s in schedules if not is_tombstone(s)]
        merged.extend(ghosts)
        merged.extend(external_occurrences_for_day(external_events, day))
        return sort_occurrences(merged, self.settings.day_start_hour)

    def view_for_week(
        self,
        ctx: PlannerContext,
        day: date,
        external_events: Iterable[ExternalEvent] = (),
    ) -> Dict[date, List[Occurrence]]:
        events = list(external_events)
        return {d: self.view_for(ctx, d, events) for d in week_dates(day)}


__all__ = [
    "ExternalBlock",
    "Occurrence",
    "RoutineGhost",
    "ScheduleBlock",
    "Slot",
    "TimelineService",
    "build_slot_grid",
    "external_occurrences_for_day",
    "place_proportional",
    "sort_occurrences",
    "to_payload",
]
