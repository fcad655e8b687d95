from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple, Union


UTC = timezone.utc


def utc_now() -> datetime:
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def _normalize_fraction(s: str) -> str:
    """Pad or trim fractional seconds to 6 digits."""

    digits = s[:6]
    if len(digits) < 6:
        digits = digits + "0" * (6 - len(digits))
    return digits


def parse_rfc3339(s: Optional[str]) -> Optional[datetime]:
    """Parse a RFC3339 string and return a timezone-aware datetime.

    The original offset is kept; naive input is assumed to be UTC.
    """

    if not s:
        return None

    value = s.strip()
    if not value:
        return None

    if value.endswith("Z"):
        value = value[:-1] + "+00:00"

    if "." in value:
        head, tail = value.split(".", 1)
        tz_suffix = ""
        frac = tail
        for sign in ("+", "-"):
            if sign in tail:
                frac, rest = tail.split(sign, 1)
                tz_suffix = f"{sign}{rest}"
                break
        value = f"{head}.{_normalize_fraction(frac)}{tz_suffix}"
    try:
        dt = datetime.fromisoformat(value)
    except ValueError:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def to_rfc3339_utc(dt: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime to RFC3339 in UTC."""

    if dt is None:
        return None
    value = ensure_utc(dt)
    if value is None:
        return None
    return value.replace(microsecond=0).isoformat().replace("+00:00", "Z")


def to_local(dt: datetime) -> datetime:
    """Convert an aware datetime into naive local wall-clock time."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone().replace(tzinfo=None)


def local_day_bounds(start_day: date, end_day: date) -> Tuple[datetime, datetime]:
    """Aware local datetimes covering ``start_day`` 00:00 .. ``end_day`` 24:00."""
    tz = datetime.now().astimezone().tzinfo
    begin = datetime.combine(start_day, time.min, tzinfo=tz)
    finish = datetime.combine(end_day + timedelta(days=1), time.min, tzinfo=tz)
    return begin, finish


def parse_day(value: Union[date, str, None]) -> Optional[date]:
    """Accept a ``date``/``datetime`` or an ISO ``YYYY-MM-DD`` string."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = value.strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def weekday_index(day: date) -> int:
    """Weekday with 0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7


def week_id(day: date) -> str:
    """ISO week identifier such as ``2026-W04``."""
    iso_year, iso_week, _ = day.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def week_range(day: date) -> Tuple[date, date]:
    """Monday and Sunday of the week containing ``day``."""
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=6)


def week_dates(day: date) -> list[date]:
    monday, _ = week_range(day)
    return [monday + timedelta(days=i) for i in range(7)]


def week_start_from_id(value: str) -> date:
    """Monday of an ISO week id (``2026-W04``)."""
    try:
        year_part, week_part = value.split("-W", 1)
        return date.fromisocalendar(int(year_part), int(week_part), 1)
    except (ValueError, AttributeError) as exc:
        raise ValueError(f"Invalid week id: {value!r}") from exc


__all__ = [
    "UTC",
    "ensure_utc",
    "local_day_bounds",
    "parse_day",
    "parse_rfc3339",
    "to_local",
    "to_rfc3339_utc",
    "utc_now",
    "week_dates",
    "week_id",
    "week_range",
    "week_start_from_id",
    "weekday_index",
]
