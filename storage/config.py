"""Per-user preferences persisted to ``config.json``."""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.settings import CONFIG_PATH, TIMELINE


@dataclass
class AppConfig:
    user_id: Optional[str] = None
    # empty list means every calendar is shown
    enabled_calendars: List[str] = field(default_factory=list)
    day_start_hour: int = TIMELINE.day_start_hour

    def is_calendar_enabled(self, calendar_id: str) -> bool:
        if not self.enabled_calendars:
            return True
        return calendar_id in self.enabled_calendars


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _load_raw(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def load_config(path: Optional[Path] = None) -> AppConfig:
    target = path or CONFIG_PATH
    data = _load_raw(target)
    calendars = data.get("enabled_calendars") or []
    try:
        day_start = int(data.get("day_start_hour", TIMELINE.day_start_hour))
    except (TypeError, ValueError):
        day_start = TIMELINE.day_start_hour
    return AppConfig(
        user_id=data.get("user_id") or None,
        enabled_calendars=[str(c) for c in calendars if c],
        day_start_hour=day_start if 0 <= day_start <= 12 else TIMELINE.day_start_hour,
    )


def save_config(config: AppConfig, path: Optional[Path] = None) -> None:
    target = path or CONFIG_PATH
    _ensure_parent(target)
    payload = json.dumps(asdict(config), ensure_ascii=False, indent=2, sort_keys=True)
    tmp = target.with_suffix(".tmp")
    try:
        tmp.write_text(payload, encoding="utf-8")
        tmp.replace(target)
    finally:
        if tmp.exists():
            try:
                tmp.unlink()
            except OSError:
                pass


def update_config(path: Optional[Path] = None, **changes: Any) -> AppConfig:
    target = path or CONFIG_PATH
    cfg = load_config(target)
    for key, value in changes.items():
        if hasattr(cfg, key):
            setattr(cfg, key, value)
    save_config(cfg, target)
    return cfg


def toggle_calendar(calendar_id: str, path: Optional[Path] = None) -> AppConfig:
    cfg = load_config(path)
    if calendar_id in cfg.enabled_calendars:
        enabled = [c for c in cfg.enabled_calendars if c != calendar_id]
    else:
        enabled = [*cfg.enabled_calendars, calendar_id]
    return update_config(path, enabled_calendars=enabled)


__all__ = ["AppConfig", "load_config", "save_config", "toggle_calendar", "update_config"]
