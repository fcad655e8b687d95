"""Read-only events pulled from an external calendar feed."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ExternalEvent:
    """One event as delivered by the feed.

    ``start``/``end`` are the raw ISO-8601 strings: a date-time for timed
    events, a bare ``YYYY-MM-DD`` (end exclusive) for all-day events.
    """

    id: str
    calendar_id: str
    title: str
    start: str
    end: str
    is_all_day: bool = False
    description: str = ""
    location: str = ""
    color: str = "#4285F4"
    source: str = "google"
    html_link: Optional[str] = None


@dataclass(frozen=True)
class CalendarInfo:
    id: str
    summary: str
    background_color: str
    foreground_color: str
    description: Optional[str] = None
    primary: bool = False


__all__ = ["CalendarInfo", "ExternalEvent"]
