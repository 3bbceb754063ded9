import datetime as dt
from zoneinfo import ZoneInfo

from timeline_projector.models import CalendarEvent, LunchBreak, RecurringTaskOccurrence, Task, WorkWindow

DAY = dt.date(2026, 10, 19)

# Leaves summer time on 2026-10-25 at 03:00 local
BERLIN = ZoneInfo("Europe/Berlin")


def at(hour: int, minute: int = 0, days: int = 0) -> dt.datetime:
    return dt.datetime.combine(DAY + dt.timedelta(days=days), dt.time(hour, minute), tzinfo=dt.UTC)


def task(task_id: str, hours: float = 1, spent_minutes: int = 0, **kwargs) -> Task:
    return Task(
        id=task_id,
        title=f"Task {task_id}",
        time_estimate_seconds=int(hours * 3600),
        time_spent_seconds=spent_minutes * 60,
        **kwargs,
    )


def event(event_id: str, start: dt.datetime, hours: float = 1, provider_id: str = "work", icon: str | None = None):
    return CalendarEvent(
        id=event_id,
        title=f"Event {event_id}",
        start=start,
        duration_seconds=int(hours * 3600),
        provider_id=provider_id,
        icon=icon,
    )


def occurrence(cfg_id: str, start: dt.datetime, hours: float = 1) -> RecurringTaskOccurrence:
    return RecurringTaskOccurrence(
        repeat_cfg_id=cfg_id, title=f"Repeat {cfg_id}", start=start, duration_seconds=int(hours * 3600)
    )


def work(start: str = "09:00", end: str = "17:00") -> WorkWindow:
    return WorkWindow(start=dt.time.fromisoformat(start), end=dt.time.fromisoformat(end))


def lunch(start: str = "12:00", end: str = "13:00") -> LunchBreak:
    return LunchBreak(start=dt.time.fromisoformat(start), end=dt.time.fromisoformat(end))


def spans(entries) -> list[tuple[str, dt.datetime, dt.datetime]]:
    return [(e.kind.value, e.start, e.end) for e in entries]
