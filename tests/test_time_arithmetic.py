from datetime import date, datetime, timedelta

import pytest

from core.errors import ValidationError
from core.settings import COMPACT_TIMELINE, TIMELINE
from datetime_utils import parse_day, parse_rfc3339, week_id, week_range, week_start_from_id, weekday_index
from helpers.datetime_utils import (
    add_minutes,
    block_end_datetime,
    block_position,
    duration,
    format_duration,
    normalize_time,
    operating_minutes,
    operating_span,
    slot_index,
    slot_label,
    slot_span,
)


def test_duration_same_day_and_across_midnight():
    assert duration("09:00", "10:30") == 90
    assert duration("23:30", "00:30") == 60
    # identical times mean a full day, never zero
    assert duration("08:00", "08:00") == 24 * 60


def test_normalize_time_accepts_loose_and_seconds():
    assert normalize_time("9:5") == "09:05"
    assert normalize_time("07:30:00") == "07:30"


@pytest.mark.parametrize("value", ["", "25:00", "12:60", "abc", "1:2:3:4"])
def test_normalize_time_rejects_garbage(value):
    with pytest.raises(ValidationError):
        normalize_time(value)


def test_add_minutes_wraps_the_stored_value():
    assert add_minutes("09:00", 60) == "10:00"
    assert add_minutes("23:30", 60) == "00:30"


def test_operating_minutes_puts_small_hours_at_the_end():
    assert operating_minutes("05:00") == 0
    assert operating_minutes("06:30") == 90
    assert operating_minutes("02:00") == 21 * 60
    assert operating_minutes("04:30", COMPACT_TIMELINE.day_start_hour) == 30
    assert operating_minutes("04:30") > operating_minutes("23:00")


def test_operating_span_uses_duration_rule():
    assert operating_span("23:30", "00:30") == (18 * 60 + 30, 19 * 60 + 30)


def test_slot_mapping():
    assert slot_index("05:30", 10) == 3
    assert slot_span("23:30", "00:30", 30) == (37, 39)
    assert slot_label(0, 10, 4) == "04:00"
    assert slot_label(3, 30) == "06:30"


def test_block_position_is_proportional():
    pos = block_position("16:00", "18:12", TIMELINE)
    assert pos.top == pytest.approx(50.0)
    assert pos.height == pytest.approx(10.0)


def test_block_position_clamps_tiny_blocks():
    pos = block_position("05:00", "05:05", TIMELINE)
    assert pos.top == 0
    assert pos.height == TIMELINE.min_visible_height_percent


def test_block_end_datetime_crosses_into_next_date():
    assert block_end_datetime(date(2026, 2, 9), "23:30", "00:30") == datetime(2026, 2, 10, 0, 30)
    assert block_end_datetime(date(2026, 2, 9), "09:00", "10:00") == datetime(2026, 2, 9, 10, 0)


def test_format_duration():
    assert format_duration(45) == "45분"
    assert format_duration(120) == "2시간"
    assert format_duration(90) == "1시간 30분"


def test_weekday_index_starts_on_sunday():
    assert weekday_index(date(2026, 2, 8)) == 0
    assert weekday_index(date(2026, 2, 9)) == 1
    assert weekday_index(date(2026, 2, 14)) == 6


def test_iso_week_helpers():
    assert week_id(date(2026, 2, 9)) == "2026-W07"
    assert week_id(date(2026, 2, 15)) == "2026-W07"
    assert week_range(date(2026, 2, 12)) == (date(2026, 2, 9), date(2026, 2, 15))
    assert week_start_from_id("2026-W07") == date(2026, 2, 9)
    with pytest.raises(ValueError):
        week_start_from_id("next week")


def test_parse_helpers():
    assert parse_day("2026-02-03") == date(2026, 2, 3)
    assert parse_day("") is None
    assert parse_day("not a date") is None
    parsed = parse_rfc3339("2026-02-09T09:00:00.5+09:00")
    assert parsed.utcoffset() == timedelta(hours=9)
    assert parse_rfc3339("2026-02-09T00:00:00Z").utcoffset() == timedelta(0)


def test_block_position_stays_inside_the_view():
    pos = block_position("02:00", "05:00", TIMELINE)
    assert pos.top < 100
    assert pos.top + pos.height == pytest.approx(100.0)
