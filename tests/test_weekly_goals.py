from datetime import timedelta

import pytest

from core.errors import NotAuthenticatedError, ValidationError
from models.week import WeeklyGoal
from services.weekly_goals import counted_title, parse_counted_title

from conftest import MONDAY

WEEK = "2026-W07"

READING_GOAL = {
    "title": "자기계발",
    "sub_tasks": [
        {"title": "독서", "target_count": 3, "estimated_minutes": 40},
        {"title": "영어 공부", "target_count": 1},
    ],
}


def _schedule_with(planner, ctx, day, *titles, done=False):
    return planner.schedules.create(
        ctx,
        title="저녁 공부",
        day=day,
        start_time="20:00",
        end_time="21:00",
        items=[{"title": t, "is_completed": done} for t in titles],
    )


def test_counted_titles():
    assert counted_title("독서", 3) == "독서 (3회)"
    assert counted_title("독서", 1) == "독서"
    assert parse_counted_title("독서 (3회)") == ("독서", 3)
    assert parse_counted_title("독서(2회)") == ("독서", 2)
    assert parse_counted_title("그냥 할 일") == ("그냥 할 일", 1)


def test_week_is_created_lazily(planner, ctx, anonymous):
    assert planner.weeks.get_week(ctx, WEEK) is None
    week = planner.weeks.get_or_create_week(ctx, MONDAY + timedelta(days=4))
    assert week.id == WEEK
    assert (week.start_date, week.end_date) == (MONDAY, MONDAY + timedelta(days=6))
    assert planner.weeks.get_or_create_week(ctx).id == WEEK
    assert planner.weeks.get_or_create_week(anonymous) is None


def test_invalid_week_id(planner, ctx):
    with pytest.raises(ValidationError):
        planner.weeks.update_goals(ctx, "week seven", ["운동"])


def test_goal_texts_and_notes(planner, ctx, anonymous):
    week = planner.weeks.update_goals(ctx, WEEK, ["운동", "  ", "독서"])
    assert week.goals == ["운동", "독서"]
    assert planner.weeks.update_notes(ctx, WEEK, "  바쁜 주  ").notes == "바쁜 주"
    with pytest.raises(NotAuthenticatedError):
        planner.weeks.update_notes(anonymous, WEEK, "x")


def test_weekly_goal_validation(planner, ctx):
    with pytest.raises(ValidationError):
        planner.weeks.update_weekly_goals(ctx, WEEK, [{"title": ""}])
    with pytest.raises(ValidationError):
        planner.weeks.update_weekly_goals(ctx, WEEK, [{"title": "목표", "sub_tasks": [{"title": " "}]}])


def test_expand_goals_creates_backlog_once(planner, ctx):
    planner.weeks.update_weekly_goals(ctx, WEEK, [READING_GOAL])

    tasks = planner.weeks.expand_goals_to_backlog(ctx, WEEK)

    assert [t.title for t in tasks] == ["독서 (3회)", "영어 공부"]
    reading = tasks[0]
    assert (reading.target_count, reading.estimated_minutes, reading.week_id) == (3, 40, WEEK)
    assert reading.status == "backlog"

    again = planner.weeks.expand_goals_to_backlog(ctx, WEEK)
    assert [t.id for t in again] == [t.id for t in tasks]
    assert len(planner.tasks.list_for_week(ctx, WEEK)) == 2


def test_expand_accepts_explicit_goals(planner, ctx):
    goal = WeeklyGoal.from_dict({"title": "건강", "subTasks": [{"title": "달리기", "targetCount": 2}]})
    tasks = planner.weeks.expand_goals_to_backlog(ctx, WEEK, [goal])
    assert [t.title for t in tasks] == ["달리기 (2회)"]


def test_remaining_count_for_repeated_task(planner, ctx):
    reading = planner.tasks.add(ctx, "독서 (3회)", week_id=WEEK)
    _schedule_with(planner, ctx, MONDAY, "독서")
    second = _schedule_with(planner, ctx, MONDAY + timedelta(days=2), "독서", "산책")

    assert planner.weeks.remaining_count(ctx, reading) == 1
    # a draft of the form being edited counts as well
    assert planner.weeks.remaining_count(ctx, reading, draft_items=[{"title": "독서"}]) == 0
    # the schedule under edit is excluded so it is not counted twice
    assert planner.weeks.remaining_count(
        ctx, reading, draft_items=[{"title": "독서"}], exclude_schedule_id=second.id
    ) == 1


def test_remaining_count_never_negative(planner, ctx):
    reading = planner.tasks.add(ctx, "독서", week_id=WEEK, target_count=1)
    _schedule_with(planner, ctx, MONDAY, "독서", "독서")
    assert planner.weeks.remaining_count(ctx, reading) == 0
    assert planner.weeks.remaining_tasks(ctx, WEEK) == []


def test_remaining_count_ignores_other_weeks(planner, ctx):
    reading = planner.tasks.add(ctx, "독서 (2회)", week_id=WEEK)
    _schedule_with(planner, ctx, MONDAY - timedelta(days=1), "독서")
    _schedule_with(planner, ctx, MONDAY + timedelta(days=7), "독서")
    assert planner.weeks.remaining_count(ctx, reading) == 2
    assert [(t.id, left) for t, left in planner.weeks.remaining_tasks(ctx, WEEK)] == [(reading.id, 2)]


def test_goal_progress_counts_checked_items(planner, ctx):
    planner.weeks.update_weekly_goals(ctx, WEEK, [READING_GOAL])
    _schedule_with(planner, ctx, MONDAY, "독서", done=True)
    _schedule_with(planner, ctx, MONDAY + timedelta(days=1), "독서")
    _schedule_with(planner, ctx, MONDAY + timedelta(days=3), "영어 공부", done=True)

    goal = planner.weeks.goal_progress(ctx, WEEK)[0]

    counts = {sub.title: sub.completed_count for sub in goal.sub_tasks}
    assert counts == {"독서": 1, "영어 공부": 1}
    assert goal.is_completed is False


def test_refresh_totals(planner, ctx):
    done = planner.schedules.create(ctx, title="운동", day=MONDAY, start_time="07:00", end_time="08:00")
    planner.schedules.set_status(ctx, done.id, "completed")
    partial = planner.schedules.create(ctx, title="공부", day=MONDAY, start_time="20:00", end_time="22:00")
    planner.schedules.set_status(ctx, partial.id, "partial", completed_minutes=45)
    planner.schedules.create(ctx, title="야간", day=MONDAY + timedelta(days=6), start_time="23:30", end_time="00:30")

    week = planner.weeks.refresh_totals(ctx, WEEK)

    assert week.planned_minutes == 60 + 120 + 60
    assert week.completed_minutes == 60 + 45


def test_writing_to_an_unseen_week_creates_it(planner, ctx):
    week = planner.weeks.update_notes(ctx, "2026-W09", "휴가")
    assert (week.id, week.start_date, week.notes) == ("2026-W09", MONDAY + timedelta(days=14), "휴가")
    assert planner.weeks.get_week(ctx, "2026-W09").notes == "휴가"
