import datetime as dt
import logging
from collections.abc import Iterable

from timeline_projector.clock import elapsed, shift
from timeline_projector.models import (
    CalendarEvent,
    CalendarEventEntry,
    EntryKind,
    FixedEntry,
    RecurringTaskOccurrence,
    RepeatOccurrenceEntry,
    ScheduledTaskEntry,
    Task,
)

logger = logging.getLogger(__name__)

# Lower sorts first when two fixed entries start together
KIND_PRIORITY: dict[EntryKind, int] = {
    EntryKind.CALENDAR_EVENT: 0,
    EntryKind.SCHEDULED_REPEAT_OCCURRENCE: 1,
    EntryKind.SCHEDULED_TASK: 2,
}


def _entry_id(entry: FixedEntry) -> str:
    if isinstance(entry, CalendarEventEntry):
        return entry.event.id
    if isinstance(entry, RepeatOccurrenceEntry):
        return entry.occurrence.repeat_cfg_id
    return entry.task.id


def fixed_sort_key(entry: FixedEntry) -> tuple[dt.datetime, int, str]:
    return entry.start.astimezone(dt.UTC), KIND_PRIORITY[entry.kind], _entry_id(entry)


def _has_ended(entry: FixedEntry, now: dt.datetime) -> bool:
    until_end = elapsed(now, entry.end)
    if entry.duration == dt.timedelta(0):
        return until_end < dt.timedelta(0)
    return until_end <= dt.timedelta(0)


def collect_fixed_entries(
    now: dt.datetime,
    due_tasks: Iterable[Task],
    recurring_occurrences: Iterable[RecurringTaskOccurrence],
    calendar_events: Iterable[CalendarEvent],
) -> list[FixedEntry]:
    """
    Normalizes calendar events, recurring occurrences and due-dated tasks into
    one list of fixed entries sorted by start, expressed in the timezone of `now`.

    Fixed entries are not resolved against each other: a conflict stays visible
    as an overlap. Entries that already ended are dropped.
    """
    tz = now.tzinfo
    entries: list[FixedEntry] = []

    for event in calendar_events:
        start = event.start.astimezone(tz)
        end = shift(start, dt.timedelta(seconds=event.duration_seconds))
        entries.append(CalendarEventEntry(start=start, end=end, event=event, icon=event.icon))

    for occurrence in recurring_occurrences:
        start = occurrence.start.astimezone(tz)
        end = shift(start, dt.timedelta(seconds=occurrence.duration_seconds))
        entries.append(RepeatOccurrenceEntry(start=start, end=end, occurrence=occurrence))

    for task in due_tasks:
        if task.completed or task.due is None:
            continue
        start = task.due.astimezone(tz)
        entries.append(ScheduledTaskEntry(start=start, end=shift(start, task.remaining), task=task))

    upcoming = [e for e in entries if not _has_ended(e, now)]
    if len(upcoming) != len(entries):
        logger.debug("Dropped %d fixed entries that ended before %s", len(entries) - len(upcoming), now)

    return sorted(upcoming, key=fixed_sort_key)
