from datetime import datetime, timedelta

from services.google_calendar import CalendarFeedResult, TOKEN_EXPIRED
from services.planner import Planner
from services.timeline import RoutineGhost, ScheduleBlock
from storage.config import AppConfig

from conftest import MONDAY


class _StubFeed:
    def __init__(self, result):
        self.result = result
        self.calls = []

    def list_events(self, time_min, time_max, calendar_ids=None):
        self.calls.append((time_min, time_max, calendar_ids))
        return self.result


def test_load_day_materializes_and_reconciles(planner, ctx):
    planner.routines.create(
        ctx, title="아침 루틴", days=[1], start_time="06:00", end_time="07:00", items=[{"title": "스트레칭"}]
    )
    manual = planner.routines.create(
        ctx, title="산책", days=[1], start_time="18:00", end_time="19:00", auto_schedule=False
    )
    meeting = planner.schedules.create(ctx, title="회의", day=MONDAY, start_time="09:00", end_time="10:00")

    view = planner.load_day(ctx, MONDAY, now=datetime(2026, 2, 9, 11, 0))

    assert [s.id for s in view.completed] == [meeting.id]
    assert len(view.materialized) == 1
    assert view.calendar_error is None
    kinds = [(occ.kind, occ.title) for occ in view.occurrences]
    assert kinds == [("schedule", "아침 루틴"), ("schedule", "회의"), ("routine", "산책")]
    ghost = view.occurrences[-1]
    assert isinstance(ghost, RoutineGhost) and ghost.routine.id == manual.id

    payload = view.to_payload()
    assert payload["date"] == "2026-02-09"
    assert [block["kind"] for block in payload["occurrences"]] == ["schedule", "schedule", "routine"]

    # reloading does not duplicate anything
    again = planner.load_day(ctx, MONDAY, now=datetime(2026, 2, 9, 11, 0))
    assert again.materialized == [] and again.completed == []
    assert sum(isinstance(occ, ScheduleBlock) for occ in again.occurrences) == 2


def test_feed_error_is_surfaced_not_raised(repo, ctx):
    feed = _StubFeed(CalendarFeedResult(error=TOKEN_EXPIRED))
    planner = Planner(repo, feed=feed, config=AppConfig(enabled_calendars=["work"]))
    planner.schedules.create(ctx, title="회의", day=MONDAY, start_time="09:00", end_time="10:00")

    view = planner.load_day(ctx, MONDAY, now=datetime(2026, 2, 9, 8, 0))

    assert view.calendar_error == TOKEN_EXPIRED
    assert [occ.title for occ in view.occurrences] == ["회의"]
    time_min, time_max, calendars = feed.calls[0]
    assert calendars == ["work"]
    assert time_min < time_max


def test_load_week(planner, ctx):
    planner.routines.create(ctx, title="출근 준비", days=[1, 2, 3, 4, 5], start_time="07:00", end_time="08:00")

    view = planner.load_week(ctx, MONDAY + timedelta(days=2), now=datetime(2026, 2, 9, 6, 0))

    assert view.week.id == "2026-W07"
    assert list(view.days) == [MONDAY + timedelta(days=i) for i in range(7)]
    assert [len(v) for v in view.days.values()] == [1, 1, 1, 1, 1, 0, 0]
    assert all(isinstance(occ, ScheduleBlock) for v in view.days.values() for occ in v)


def test_anonymous_day_is_empty(planner, anonymous):
    view = planner.load_day(anonymous, MONDAY)
    assert view.occurrences == [] and view.materialized == [] and view.completed == []
