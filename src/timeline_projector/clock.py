import datetime as dt


def start_of_day(instant: dt.datetime, days: int = 0) -> dt.datetime:
    """Midnight of the instant's calendar day (shifted by `days`), in the instant's timezone."""
    return local_at(instant.date() + dt.timedelta(days=days), dt.time.min, instant.tzinfo)


def local_at(day: dt.date, t: dt.time, tz: dt.tzinfo | None) -> dt.datetime:
    """Wall-clock time `t` on `day` in `tz`, with the UTC offset that actually applies then."""
    instant = dt.datetime.combine(day, t, tzinfo=tz)
    if tz is None:
        return instant
    return instant.astimezone(dt.UTC).astimezone(tz)


def shift(instant: dt.datetime, delta: dt.timedelta) -> dt.datetime:
    """`instant + delta` in elapsed time, not wall-clock time (they differ across DST changes)."""
    if instant.tzinfo is None:
        return instant + delta
    return (instant.astimezone(dt.UTC) + delta).astimezone(instant.tzinfo)


def elapsed(start: dt.datetime, end: dt.datetime) -> dt.timedelta:
    if start.tzinfo is None or end.tzinfo is None:
        return end - start
    return end.astimezone(dt.UTC) - start.astimezone(dt.UTC)


class ClockAnchor:
    """Supplies "now" and the start of "tomorrow".

    Pass `fixed` to pin the clock; otherwise the live local time is read on every call.
    """

    def __init__(self, fixed: dt.datetime | None = None):
        self._fixed = fixed

    def now(self) -> dt.datetime:
        if self._fixed is not None:
            return self._fixed
        return dt.datetime.now().astimezone()

    def tomorrow(self) -> dt.datetime:
        return start_of_day(self.now(), days=1)
