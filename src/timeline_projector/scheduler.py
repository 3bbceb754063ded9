import datetime as dt
import heapq
import logging
from collections.abc import Iterable, Sequence

from timeline_projector.blackout import BlackoutWindowResolver
from timeline_projector.clock import elapsed, local_at
from timeline_projector.fixed_entries import collect_fixed_entries
from timeline_projector.models import (
    CalendarEvent,
    EntryKind,
    FixedEntry,
    FlexibleEntry,
    LunchBreak,
    MarkerEntry,
    RecurringTaskOccurrence,
    Task,
    TimelineEntry,
    TimelineInputs,
    WorkWindow,
)
from timeline_projector.queue_projector import project_unplanned_queue
from timeline_projector.view import build_view_entries

logger = logging.getLogger(__name__)

# Order of things happening at the same instant: close availability, turn the
# day, open availability, then the entries themselves.
_RANK: dict[EntryKind, int] = {
    EntryKind.LUNCH_BREAK_START: 0,
    EntryKind.WORKDAY_END: 1,
    EntryKind.DAY_BOUNDARY: 2,
    EntryKind.WORKDAY_START: 3,
    EntryKind.LUNCH_BREAK_END: 4,
}
_FIXED_RANK = 10
_FLEXIBLE_RANK = 20


def _marker(kind: EntryKind, at: dt.datetime, date: dt.date | None = None) -> MarkerEntry:
    return MarkerEntry(kind=kind, start=at, end=at, date=date)


def _utc_start(entry: TimelineEntry) -> dt.datetime:
    return entry.start.astimezone(dt.UTC)


def boundary_markers(
    now: dt.datetime, span_end: dt.datetime, resolver: BlackoutWindowResolver
) -> list[MarkerEntry]:
    """Markers for every configured boundary `t` with now <= t < span_end, in the timezone of `now`."""
    tz = now.tzinfo
    markers: list[MarkerEntry] = []
    day = now.date()

    while elapsed(local_at(day, dt.time.min, tz), span_end) > dt.timedelta(0):
        candidates = [_marker(EntryKind.DAY_BOUNDARY, local_at(day, dt.time.min, tz), day)]
        if resolver.work_window is not None:
            candidates.append(_marker(EntryKind.WORKDAY_START, local_at(day, resolver.work_window.start, tz)))
            candidates.append(_marker(EntryKind.WORKDAY_END, local_at(day, resolver.work_window.end, tz)))
        if resolver.lunch_break is not None:
            candidates.append(_marker(EntryKind.LUNCH_BREAK_START, local_at(day, resolver.lunch_break.start, tz)))
            candidates.append(_marker(EntryKind.LUNCH_BREAK_END, local_at(day, resolver.lunch_break.end, tz)))

        markers.extend(
            m
            for m in candidates
            if elapsed(now, m.start) >= dt.timedelta(0) and elapsed(m.start, span_end) > dt.timedelta(0)
        )
        day += dt.timedelta(days=1)

    return markers


def merge_entries(
    fixed: Sequence[FixedEntry], flexible: Sequence[FlexibleEntry]
) -> list[FixedEntry | FlexibleEntry]:
    """Stable merge by start; on equal starts fixed entries come first."""
    return list(heapq.merge(fixed, flexible, key=_utc_start))


def _rank(entry: TimelineEntry) -> int:
    if isinstance(entry, MarkerEntry):
        return _RANK[entry.kind]
    if entry.kind in (EntryKind.TASK, EntryKind.SPLIT_TASK):
        return _FLEXIBLE_RANK
    return _FIXED_RANK


def project(
    now: dt.datetime,
    unscheduled_queue: Sequence[Task],
    due_tasks: Iterable[Task] = (),
    recurring_occurrences: Iterable[RecurringTaskOccurrence] = (),
    calendar_events: Iterable[CalendarEvent] = (),
    current_task_id: str | None = None,
    work_window: WorkWindow | None = None,
    lunch_break: LunchBreak | None = None,
) -> list[TimelineEntry]:
    """
    Projects outstanding work onto one chronological sequence.

    Fixed entries (calendar events, recurring occurrences, due-dated tasks)
    keep their times; the unscheduled queue fills the free time around them
    outside blackout windows. Boundary markers are inserted for every work
    window, lunch break and day boundary inside the produced span.

    Pure function of its arguments: no I/O, no state kept between calls.
    """
    if now.tzinfo is None:
        now = now.astimezone()
    resolver = BlackoutWindowResolver(work_window, lunch_break, tz=now.tzinfo)

    fixed = collect_fixed_entries(now, due_tasks, recurring_occurrences, calendar_events)
    flexible = project_unplanned_queue(now, unscheduled_queue, fixed, resolver)
    merged = merge_entries(fixed, flexible)

    if not merged:
        return []

    span_end = max((e.end for e in merged), key=lambda end: end.astimezone(dt.UTC))
    timeline: list[TimelineEntry] = [*boundary_markers(now, span_end, resolver), *merged]
    # sorted() is stable, so the merge order survives among equal keys
    timeline.sort(key=lambda e: (_utc_start(e), _rank(e)))

    logger.debug(
        "Projected %d fixed and %d flexible entries up to %s", len(fixed), len(flexible), span_end.isoformat()
    )
    return build_view_entries(timeline, current_task_id)


def project_inputs(now: dt.datetime, inputs: TimelineInputs) -> list[TimelineEntry]:
    return project(
        now,
        inputs.unscheduled_queue,
        due_tasks=inputs.due_tasks,
        recurring_occurrences=inputs.recurring_occurrences,
        calendar_events=inputs.calendar_events or [],
        current_task_id=inputs.current_task_id,
        work_window=inputs.work_window,
        lunch_break=inputs.lunch_break,
    )
