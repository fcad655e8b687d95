"""Centralized application configuration."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
import os
import sys


def get_default_data_dir(
    app_name: str,
    *,
    platform: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Path:
    """Return an OS-specific user data directory for ``app_name``."""

    platform_id = (platform or sys.platform).lower()
    environ = dict(env or os.environ)
    home_dir = Path(home or Path.home())
    sanitized = app_name.strip() or "app"
    sanitized = sanitized.replace("/", "-").replace("\\", "-")

    if platform_id.startswith("win"):
        base = Path(environ.get("APPDATA") or home_dir / "AppData" / "Roaming")
    elif platform_id == "darwin":
        base = Path(environ.get("APPDATA") or home_dir / "Library" / "Application Support")
    else:
        base = Path(environ.get("XDG_DATA_HOME") or home_dir / ".local" / "share")

    return (base.expanduser() / sanitized)


APP_NAME = "WeeklyPlanner"


DATA_DIR = get_default_data_dir(APP_NAME)
SECRETS_DIR = DATA_DIR / "secrets"
BACKUP_DIR = DATA_DIR / "backups"
LOG_DIR = DATA_DIR / "logs"

for _dir in (DATA_DIR, SECRETS_DIR, BACKUP_DIR, LOG_DIR):
    _dir.mkdir(parents=True, exist_ok=True)


DB_PATH = DATA_DIR / "planner.db"
CONFIG_PATH = DATA_DIR / "config.json"
TOKEN_PATH = DATA_DIR / "token.json"
CLIENT_SECRET_PATH = SECRETS_DIR / "client_secret.json"
LOG_PATH = LOG_DIR / "planner.log"


@dataclass(frozen=True)
class TimelineSettings:
    # operating day: day_start_hour .. day_end_hour (values past 24 mean "next day")
    day_start_hour: int = 5
    day_end_hour: int = 27
    grid_slot_minutes: int = 10
    list_slot_minutes: int = 30
    min_visible_height_percent: float = 1.5

    @property
    def visible_minutes(self) -> int:
        return (self.day_end_hour - self.day_start_hour) * 60


TIMELINE = TimelineSettings()
COMPACT_TIMELINE = TimelineSettings(day_start_hour=4)


@dataclass(frozen=True)
class DefaultsSettings:
    color: str = "#8B7CF6"
    schedule_title: str = "일정"
    external_title: str = "(제목 없음)"
    quick_place_time: str = "09:00"
    min_estimated_minutes: int = 5
    max_block_minutes: int = 24 * 60 - 1
    max_title_length: int = 120


DEFAULTS = DefaultsSettings()


@dataclass(frozen=True)
class AutoCompleteSettings:
    enabled: bool = True
    interval_sec: int = 60


AUTO_COMPLETE = AutoCompleteSettings()


@dataclass(frozen=True)
class GoogleCalendarSettings:
    enabled: bool = True
    scopes: tuple[str, ...] = (
        "https://www.googleapis.com/auth/calendar.readonly",
    )
    max_results: int = 50
    default_calendars: tuple[str, ...] = ("primary",)


GOOGLE_CALENDAR = GoogleCalendarSettings()


@dataclass(frozen=True)
class BackupSettings:
    enabled: bool = True
    directory: Path = BACKUP_DIR
    keep_days: int = 7


BACKUP = BackupSettings()


__all__ = [
    "APP_NAME",
    "DATA_DIR",
    "SECRETS_DIR",
    "BACKUP_DIR",
    "LOG_DIR",
    "DB_PATH",
    "CONFIG_PATH",
    "TOKEN_PATH",
    "CLIENT_SECRET_PATH",
    "LOG_PATH",
    "TIMELINE",
    "COMPACT_TIMELINE",
    "DEFAULTS",
    "AUTO_COMPLETE",
    "GOOGLE_CALENDAR",
    "BACKUP",
    "TimelineSettings",
    "get_default_data_dir",
]
