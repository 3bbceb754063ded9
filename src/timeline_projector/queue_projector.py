import datetime as dt
import logging
from collections.abc import Sequence

from timeline_projector.blackout import BlackoutWindowResolver
from timeline_projector.models import FixedEntry, FlexibleEntry, SplitTaskEntry, Task, TaskEntry

logger = logging.getLogger(__name__)


def _utc(instant: dt.datetime) -> dt.datetime:
    return instant.astimezone(dt.UTC)


def merge_busy_intervals(fixed_entries: Sequence[FixedEntry]) -> list[tuple[dt.datetime, dt.datetime]]:
    """Union of the fixed entries' spans, in UTC. Zero-duration entries block nothing."""
    merged: list[tuple[dt.datetime, dt.datetime]] = []
    spans = ((_utc(e.start), _utc(e.end)) for e in fixed_entries)
    for start, end in sorted((start, end) for start, end in spans if end > start):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


class _FreeTime:
    """Moving cursor over time that is neither blackout nor taken by a fixed entry.

    The cursor and the busy intervals are kept in UTC. Blackout windows are
    looked up in `tz`, the timezone the day is lived in.
    """

    def __init__(
        self,
        cursor: dt.datetime,
        busy: list[tuple[dt.datetime, dt.datetime]],
        resolver: BlackoutWindowResolver,
        tz: dt.tzinfo | None,
    ):
        self.cursor = _utc(cursor)
        self._busy = busy
        self._resolver = resolver
        self._tz = tz
        self._idx = 0

    def advance(self) -> None:
        while True:
            self.cursor = _utc(self._resolver.next_available(self.cursor.astimezone(self._tz)))
            while self._idx < len(self._busy) and self._busy[self._idx][1] <= self.cursor:
                self._idx += 1
            if self._idx < len(self._busy) and self._busy[self._idx][0] <= self.cursor:
                self.cursor = self._busy[self._idx][1]
                continue
            return

    def limit(self) -> dt.datetime | None:
        """First instant after the cursor where placement must stop, None if unbounded."""
        limit = self._resolver.available_until(self.cursor.astimezone(self._tz))
        if limit is not None:
            limit = _utc(limit)
        if self._idx < len(self._busy):
            busy_start = self._busy[self._idx][0]
            if limit is None or busy_start < limit:
                limit = busy_start
        return limit


def _is_placeable(task: Task, queued_ids: set[str]) -> bool:
    if task.completed or task.remaining <= dt.timedelta(0):
        return False
    # A parent whose sub-tasks are queued is represented by them
    return not any(sub_id in queued_ids for sub_id in task.sub_task_ids)


def project_unplanned_queue(
    now: dt.datetime,
    unscheduled_queue: Sequence[Task],
    fixed_entries: Sequence[FixedEntry],
    resolver: BlackoutWindowResolver,
) -> list[FlexibleEntry]:
    """
    Places the unscheduled queue, first to last, from `now` onward.

    Each task gets contiguous time equal to its remaining duration. Where a
    blackout window or a fixed entry interrupts it, the task is split and
    resumes at the next free instant; every piece of a split task is emitted
    as a SplitTask entry.
    """
    if not resolver.has_availability:
        logger.warning("No available time in the day; %d queued tasks left unplaced", len(unscheduled_queue))
        return []

    tz = now.tzinfo
    queued_ids = {t.id for t in unscheduled_queue}
    free = _FreeTime(now, merge_busy_intervals(fixed_entries), resolver, tz)
    placed: list[FlexibleEntry] = []

    for task in unscheduled_queue:
        if not _is_placeable(task, queued_ids):
            continue

        pieces: list[tuple[dt.datetime, dt.datetime]] = []
        remaining = task.remaining
        while remaining > dt.timedelta(0):
            free.advance()
            start = free.cursor
            end = start + remaining
            limit = free.limit()
            if limit is not None and end > limit:
                end = limit
            pieces.append((start.astimezone(tz), end.astimezone(tz)))
            remaining -= end - start
            free.cursor = end

        if len(pieces) == 1:
            start, end = pieces[0]
            placed.append(TaskEntry(start=start, end=end, task=task))
        else:
            placed.extend(
                SplitTaskEntry(start=start, end=end, task=task, part=i) for i, (start, end) in enumerate(pieces)
            )

    logger.debug("Placed %d flexible entries for %d queued tasks", len(placed), len(unscheduled_queue))
    return placed
