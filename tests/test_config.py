import json

from core.settings import TIMELINE
from storage.config import AppConfig, load_config, save_config, toggle_calendar, update_config


def test_missing_file_gives_defaults(tmp_path):
    cfg = load_config(tmp_path / "config.json")
    assert cfg == AppConfig()
    assert cfg.is_calendar_enabled("anything")


def test_save_and_load_round_trip(tmp_path):
    path = tmp_path / "nested" / "config.json"
    save_config(AppConfig(user_id="user-1", enabled_calendars=["primary"], day_start_hour=4), path)

    assert not path.with_suffix(".tmp").exists()
    cfg = load_config(path)
    assert (cfg.user_id, cfg.enabled_calendars, cfg.day_start_hour) == ("user-1", ["primary"], 4)


def test_corrupt_or_odd_files_fall_back(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    assert load_config(path) == AppConfig()

    path.write_text(json.dumps(["a", "list"]), encoding="utf-8")
    assert load_config(path) == AppConfig()

    path.write_text(json.dumps({"day_start_hour": 20, "enabled_calendars": ["", "work"]}), encoding="utf-8")
    cfg = load_config(path)
    assert cfg.day_start_hour == TIMELINE.day_start_hour
    assert cfg.enabled_calendars == ["work"]


def test_update_ignores_unknown_keys(tmp_path):
    path = tmp_path / "config.json"
    cfg = update_config(path, user_id="user-2", theme="dark")
    assert cfg.user_id == "user-2"
    assert "theme" not in json.loads(path.read_text(encoding="utf-8"))


def test_toggle_calendar(tmp_path):
    path = tmp_path / "config.json"
    assert toggle_calendar("work", path).enabled_calendars == ["work"]
    assert toggle_calendar("primary", path).enabled_calendars == ["work", "primary"]
    cfg = toggle_calendar("work", path)
    assert cfg.enabled_calendars == ["primary"]
    assert not cfg.is_calendar_enabled("work")
