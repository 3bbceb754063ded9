import datetime as dt
import os
from pathlib import Path

from pydantic import BaseModel, Field

from timeline_projector.models import LunchBreak, WorkWindow

DEFAULT_CACHE_PATH = Path.home() / ".cache" / "timeline-projector" / "calendar_events.json"


class TimelineSettings(BaseModel):
    is_work_start_end_enabled: bool = False
    work_start: dt.time = dt.time(9, 0)
    work_end: dt.time = dt.time(17, 0)
    is_lunch_break_enabled: bool = False
    lunch_break_start: dt.time = dt.time(13, 0)
    lunch_break_end: dt.time = dt.time(14, 0)
    enabled_calendars: list[str] = Field(default_factory=list)
    cache_path: Path = DEFAULT_CACHE_PATH
    horizon_days: int = Field(default=7, ge=1)
    debounce_ms: int = Field(default=50, ge=0)

    def work_window(self) -> WorkWindow | None:
        if not self.is_work_start_end_enabled:
            return None
        return WorkWindow(start=self.work_start, end=self.work_end)

    def lunch_break(self) -> LunchBreak | None:
        if not self.is_lunch_break_enabled:
            return None
        return LunchBreak(start=self.lunch_break_start, end=self.lunch_break_end)


def _env_flag(name: str) -> bool | None:
    raw = os.getenv(name)
    if raw is None:
        return None
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_settings() -> TimelineSettings:
    """Settings from TIMELINE_* environment variables; unset ones keep their defaults."""
    values: dict[str, object] = {}

    for field, env in (
        ("is_work_start_end_enabled", "TIMELINE_WORK_START_END_ENABLED"),
        ("is_lunch_break_enabled", "TIMELINE_LUNCH_BREAK_ENABLED"),
    ):
        flag = _env_flag(env)
        if flag is not None:
            values[field] = flag

    for field, env in (
        ("work_start", "TIMELINE_WORK_START"),
        ("work_end", "TIMELINE_WORK_END"),
        ("lunch_break_start", "TIMELINE_LUNCH_BREAK_START"),
        ("lunch_break_end", "TIMELINE_LUNCH_BREAK_END"),
        ("cache_path", "TIMELINE_CACHE_PATH"),
        ("horizon_days", "TIMELINE_HORIZON_DAYS"),
        ("debounce_ms", "TIMELINE_DEBOUNCE_MS"),
    ):
        raw = os.getenv(env)
        if raw:
            values[field] = raw.strip()

    calendars = os.getenv("TIMELINE_ENABLED_CALENDARS", "")
    values["enabled_calendars"] = [c.strip() for c in calendars.split(",") if c.strip()]

    return TimelineSettings.model_validate(values)
