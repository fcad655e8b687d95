"""Clock-time arithmetic on ``HH:MM`` strings.

Stored times are plain wall-clock strings. For ordering and layout the
planner works on an *operating day* that starts at ``day_start_hour``
(05:00 by default) instead of midnight, so anything earlier than that
hour belongs to the tail of the previous operating day. The stored
string itself is never rewritten; only the computed offsets move.

Durations follow one rule everywhere: when ``end <= start`` the block is
assumed to cross midnight and a full day is added before subtracting.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple

from core.errors import ValidationError
from core.settings import TIMELINE, TimelineSettings

MINUTES_PER_DAY = 24 * 60


def _parse_int(value: str) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def normalize_time(value: str | time | None) -> str:
    """Return ``HH:MM`` for ``H:M``, ``HH:MM`` or ``HH:MM:SS`` input."""

    if isinstance(value, time):
        return f"{value.hour:02d}:{value.minute:02d}"
    text = (value or "").strip()
    if not text:
        raise ValidationError("Time is required")
    parts = text.split(":")
    if len(parts) < 2 or len(parts) > 3:
        raise ValidationError(f"Invalid time: {value!r}")
    hours = _parse_int(parts[0])
    minutes = _parse_int(parts[1])
    if hours is None or minutes is None or not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValidationError(f"Invalid time: {value!r}")
    return f"{hours:02d}:{minutes:02d}"


def time_to_minutes(value: str) -> int:
    """Minutes since midnight for a stored ``HH:MM`` string."""
    hours, minutes = normalize_time(value).split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time(total: int) -> str:
    """Format a minute count as ``HH:MM``, wrapping modulo 24h."""
    total %= MINUTES_PER_DAY
    return f"{total // 60:02d}:{total % 60:02d}"


def add_minutes(value: str, delta: int) -> str:
    return minutes_to_time(time_to_minutes(value) + delta)


def duration(start: str, end: str) -> int:
    """Length of ``start``..``end`` in minutes; ``end <= start`` crosses midnight."""
    start_min = time_to_minutes(start)
    end_min = time_to_minutes(end)
    if end_min <= start_min:
        end_min += MINUTES_PER_DAY
    return end_min - start_min


def operating_minutes(value: str, day_start_hour: int = TIMELINE.day_start_hour) -> int:
    """Minutes since the operating-day start (hours before it count as next day)."""
    hours, minutes = (int(p) for p in normalize_time(value).split(":"))
    if hours < day_start_hour:
        hours += 24
    return (hours - day_start_hour) * 60 + minutes


def operating_span(
    start: str, end: str, day_start_hour: int = TIMELINE.day_start_hour
) -> Tuple[int, int]:
    """``(start, end)`` offsets on the operating day; end is derived from duration."""
    begin = operating_minutes(start, day_start_hour)
    return begin, begin + duration(start, end)


def slot_index(value: str, slot_minutes: int, day_start_hour: int = TIMELINE.day_start_hour) -> int:
    if slot_minutes <= 0:
        raise ValueError("slot_minutes must be positive")
    return operating_minutes(value, day_start_hour) // slot_minutes


def slot_span(
    start: str,
    end: str,
    slot_minutes: int,
    day_start_hour: int = TIMELINE.day_start_hour,
) -> Tuple[int, int]:
    """Half-open ``[start_slot, end_slot)`` covered by a block."""
    if slot_minutes <= 0:
        raise ValueError("slot_minutes must be positive")
    begin, finish = operating_span(start, end, day_start_hour)
    return begin // slot_minutes, finish // slot_minutes


def slot_label(index: int, slot_minutes: int, day_start_hour: int = TIMELINE.day_start_hour) -> str:
    return minutes_to_time(day_start_hour * 60 + index * slot_minutes)


def position_percent(minutes: int, total_minutes: int) -> float:
    if total_minutes <= 0:
        raise ValueError("total_minutes must be positive")
    return (minutes / total_minutes) * 100


@dataclass(frozen=True)
class BlockPosition:
    top: float
    height: float


def block_position(start: str, end: str, settings: TimelineSettings = TIMELINE) -> BlockPosition:
    """Proportional ``top``/``height`` percentages for list and timeline views.

    Height is at least ``min_visible_height_percent`` so very short blocks
    keep a usable tap target, and never runs past the bottom of the view.
    """
    total = settings.visible_minutes
    begin = operating_minutes(start, settings.day_start_hour)
    top = position_percent(begin, total)
    height = max(position_percent(duration(start, end), total), settings.min_visible_height_percent)
    return BlockPosition(top=top, height=max(min(height, 100 - top), 0.0))


def block_end_datetime(day: date, start: str, end: str) -> datetime:
    """Wall-clock end of a block placed on ``day`` (may land on the next date)."""
    hours, minutes = (int(p) for p in normalize_time(start).split(":"))
    begin = datetime.combine(day, time(hours, minutes))
    return begin + timedelta(minutes=duration(start, end))


def format_duration(minutes: int) -> str:
    """Human readable duration, e.g. ``1시간 30분``."""
    if minutes < 60:
        return f"{minutes}분"
    hours, rest = divmod(minutes, 60)
    if rest == 0:
        return f"{hours}시간"
    return f"{hours}시간 {rest}분"


__all__ = [
    "BlockPosition",
    "MINUTES_PER_DAY",
    "add_minutes",
    "block_end_datetime",
    "block_position",
    "duration",
    "format_duration",
    "minutes_to_time",
    "normalize_time",
    "operating_minutes",
    "operating_span",
    "position_percent",
    "slot_index",
    "slot_label",
    "slot_span",
    "time_to_minutes",
]
