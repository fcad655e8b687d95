"""Colour palette helpers for schedules, routines and external events."""
from __future__ import annotations

import re
from typing import Dict, Optional

from core.settings import DEFAULTS

# Soft pastel palette offered for tasks, schedules and routines.
PALETTE: Dict[str, str] = {
    "#8B7CF6": "퍼플",
    "#60A5FA": "블루",
    "#34D399": "그린",
    "#FBBF24": "옐로우",
    "#F472B6": "핑크",
    "#22D3EE": "시안",
    "#FB923C": "오렌지",
    "#A78BFA": "라벤더",
}

CATEGORY_COLORS: Dict[str, str] = {
    "work": "#60A5FA",
    "personal": "#34D399",
    "study": "#8B7CF6",
    "health": "#FB923C",
    "meeting": "#F472B6",
    "other": "#A78BFA",
}

# Google Calendar event ``colorId`` values.
GOOGLE_EVENT_COLORS: Dict[str, str] = {
    "1": "#7986CB",   # Lavender
    "2": "#33B679",   # Sage
    "3": "#8E24AA",   # Grape
    "4": "#E67C73",   # Flamingo
    "5": "#F6BF26",   # Banana
    "6": "#F4511E",   # Tangerine
    "7": "#039BE5",   # Peacock
    "8": "#616161",   # Graphite
    "9": "#3F51B5",   # Blueberry
    "10": "#0B8043",  # Basil
    "11": "#D50000",  # Tomato
}

GOOGLE_DEFAULT_COLOR = "#4285F4"

CALENDAR_FALLBACK_COLORS = (
    "#4285F4",
    "#0F9D58",
    "#F4B400",
    "#DB4437",
    "#AB47BC",
    "#00ACC1",
    "#FF7043",
)

_RE_HEX = re.compile(r"^#[0-9a-fA-F]{6}$")


def normalize_color(value: Optional[str]) -> str:
    """Return an upper-case ``#RRGGBB`` colour, falling back to the default."""
    if not value:
        return DEFAULTS.color
    candidate = value.strip()
    if not _RE_HEX.match(candidate):
        return DEFAULTS.color
    return candidate.upper()


def category_color(category: Optional[str]) -> str:
    return CATEGORY_COLORS.get((category or "").strip().lower(), DEFAULTS.color)


def google_color(color_id: Optional[str]) -> str:
    return GOOGLE_EVENT_COLORS.get(str(color_id or ""), GOOGLE_DEFAULT_COLOR)


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value >= 0x80000000 else value


def calendar_color(calendar_id: str) -> str:
    """Stable per-calendar colour derived from a string hash of the id."""
    acc = 0
    for ch in calendar_id or "":
        acc = ord(ch) + (_to_int32(_to_int32(acc) << 5) - acc)
    return CALENDAR_FALLBACK_COLORS[abs(acc) % len(CALENDAR_FALLBACK_COLORS)]


def event_color(color_id: Optional[str], calendar_id: str) -> str:
    if color_id:
        return google_color(color_id)
    return calendar_color(calendar_id)


__all__ = [
    "CALENDAR_FALLBACK_COLORS",
    "CATEGORY_COLORS",
    "GOOGLE_DEFAULT_COLOR",
    "GOOGLE_EVENT_COLORS",
    "PALETTE",
    "calendar_color",
    "category_color",
    "event_color",
    "google_color",
    "normalize_color",
]
