import datetime as dt
import logging

from timeline_projector.clock import local_at
from timeline_projector.models import DayWindow, LunchBreak, WorkWindow

logger = logging.getLogger(__name__)

FULL_DAY = dt.timedelta(days=1)


class NoAvailabilityError(ValueError):
    """Raised when asking for an available instant while every day is blacked out."""


def _offset(t: dt.time) -> dt.timedelta:
    return dt.timedelta(hours=t.hour, minutes=t.minute, seconds=t.second, microseconds=t.microsecond)


def _usable(window: DayWindow | None, label: str) -> DayWindow | None:
    if window is not None and window.is_degenerate:
        logger.warning("Ignoring %s %s-%s: end is not after start", label, window.start, window.end)
        return None
    return window


def _utc(instant: dt.datetime) -> dt.datetime:
    return instant.astimezone(dt.UTC)


class BlackoutWindowResolver:
    """
    Answers whether an instant lies in a daily blackout interval and where the
    next available instant is.

    A work window, when set, is the only available part of each day. A lunch
    break is blackout regardless of the work window. Window times are wall-clock
    times in `tz` (the timezone of the instant being asked about when `tz` is
    None); all comparisons happen on absolute time, and results are returned
    in the timezone of the instant passed in.
    """

    def __init__(
        self,
        work_window: WorkWindow | None = None,
        lunch_break: LunchBreak | None = None,
        tz: dt.tzinfo | None = None,
    ):
        self.work_window = _usable(work_window, "work window")
        self.lunch_break = _usable(lunch_break, "lunch break")
        self.tz = tz

        if self.work_window is not None:
            available = [(_offset(self.work_window.start), _offset(self.work_window.end))]
        else:
            available = [(dt.timedelta(0), FULL_DAY)]

        if self.lunch_break is not None:
            lunch_start, lunch_end = _offset(self.lunch_break.start), _offset(self.lunch_break.end)
            carved: list[tuple[dt.timedelta, dt.timedelta]] = []
            for start, end in available:
                if start < min(end, lunch_start):
                    carved.append((start, min(end, lunch_start)))
                if max(start, lunch_end) < end:
                    carved.append((max(start, lunch_end), end))
            available = carved

        # Same wall-clock offsets every day, sorted and disjoint
        self._available = available
        if not self.has_availability:
            logger.warning(
                "Lunch break %s covers the whole work window %s; every day is blackout",
                self.lunch_break,
                self.work_window,
            )

    @property
    def has_availability(self) -> bool:
        return bool(self._available)

    @property
    def has_blackout(self) -> bool:
        return self._available != [(dt.timedelta(0), FULL_DAY)]

    def _at(self, day: dt.date, offset: dt.timedelta, tz: dt.tzinfo | None) -> dt.datetime:
        if offset >= FULL_DAY:
            day, offset = day + dt.timedelta(days=1), offset - FULL_DAY
        return _utc(local_at(day, (dt.datetime.min + offset).time(), tz))

    def _day_intervals(self, instant: dt.datetime, days: int = 0) -> list[tuple[dt.datetime, dt.datetime]]:
        """Available intervals, in UTC, of the local day of `instant` (shifted by `days`)."""
        tz = self.tz if self.tz is not None else instant.tzinfo
        day = instant.astimezone(tz).date() + dt.timedelta(days=days)
        return [(self._at(day, start, tz), self._at(day, end, tz)) for start, end in self._available]

    def is_blackout(self, instant: dt.datetime) -> bool:
        moment = _utc(instant)
        return not any(start <= moment < end for start, end in self._day_intervals(instant))

    def next_available(self, instant: dt.datetime) -> dt.datetime:
        """Earliest non-blackout instant at or after `instant`."""
        if not self.has_availability:
            raise NoAvailabilityError("no part of the day is available")

        moment = _utc(instant)
        for days in (0, 1):
            for start, end in self._day_intervals(instant, days):
                if moment < end:
                    return instant if moment >= start else start.astimezone(instant.tzinfo)

        # Unreachable: tomorrow always has an interval ending after `instant`
        raise NoAvailabilityError(f"no available instant after {instant}")

    def available_until(self, instant: dt.datetime) -> dt.datetime | None:
        """
        End of the available stretch that contains `instant`, i.e. the start of
        the next blackout interval. Stretches that run into the next day's
        availability without a break are followed across midnight.
        Returns None when nothing is ever blacked out.
        """
        if not self.has_blackout:
            return None

        available = self.next_available(instant)
        moment = _utc(available)
        intervals = self._day_intervals(available) + self._day_intervals(available, 1)
        for i, (start, end) in enumerate(intervals):
            if start <= moment < end:
                for next_start, next_end in intervals[i + 1 :]:
                    if next_start != end:
                        break
                    end = next_end
                return end.astimezone(instant.tzinfo)

        raise NoAvailabilityError(f"{instant} is not inside an available interval")
