import datetime as dt
from pathlib import Path

import pytest

from timeline_projector.config import TimelineSettings, load_settings
from timeline_projector.models import LunchBreak, WorkWindow


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "TIMELINE_WORK_START_END_ENABLED",
        "TIMELINE_WORK_START",
        "TIMELINE_WORK_END",
        "TIMELINE_LUNCH_BREAK_ENABLED",
        "TIMELINE_LUNCH_BREAK_START",
        "TIMELINE_LUNCH_BREAK_END",
        "TIMELINE_ENABLED_CALENDARS",
        "TIMELINE_CACHE_PATH",
        "TIMELINE_HORIZON_DAYS",
        "TIMELINE_DEBOUNCE_MS",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestLoadSettings:
    def test_defaults(self, clean_env):
        settings = load_settings()
        assert settings.work_window() is None
        assert settings.lunch_break() is None
        assert settings.enabled_calendars == []
        assert settings.debounce_ms == 50

    def test_windows_from_env(self, clean_env):
        clean_env.setenv("TIMELINE_WORK_START_END_ENABLED", "true")
        clean_env.setenv("TIMELINE_WORK_START", "08:30")
        clean_env.setenv("TIMELINE_WORK_END", "16:30")
        clean_env.setenv("TIMELINE_LUNCH_BREAK_ENABLED", "1")
        settings = load_settings()
        assert settings.work_window() == WorkWindow(start=dt.time(8, 30), end=dt.time(16, 30))
        assert settings.lunch_break() == LunchBreak(start=dt.time(13), end=dt.time(14))

    def test_disabled_window_ignores_times(self, clean_env):
        clean_env.setenv("TIMELINE_WORK_START_END_ENABLED", "no")
        clean_env.setenv("TIMELINE_WORK_START", "08:30")
        assert load_settings().work_window() is None

    def test_misc_values(self, clean_env, tmp_path):
        clean_env.setenv("TIMELINE_ENABLED_CALENDARS", "work, home,,")
        clean_env.setenv("TIMELINE_CACHE_PATH", str(tmp_path / "c.json"))
        clean_env.setenv("TIMELINE_HORIZON_DAYS", "14")
        settings = load_settings()
        assert settings.enabled_calendars == ["work", "home"]
        assert settings.cache_path == Path(tmp_path / "c.json")
        assert settings.horizon_days == 14

    def test_invalid_value_rejected(self, clean_env):
        clean_env.setenv("TIMELINE_HORIZON_DAYS", "0")
        with pytest.raises(ValueError):
            load_settings()


def test_settings_model_parses_times():
    settings = TimelineSettings(is_work_start_end_enabled=True, work_start="07:00", work_end="15:00")
    assert settings.work_window().start == dt.time(7)
