import datetime as dt
import logging

import icalendar
from dateutil import rrule

from timeline_projector.models import CalendarEvent, CalendarSchema

logger = logging.getLogger(__name__)


def _as_aware(value: dt.date | dt.datetime) -> dt.datetime:
    # All-day events start at local midnight
    if not isinstance(value, dt.datetime):
        value = dt.datetime.combine(value, dt.time.min)
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.datetime.now().astimezone().tzinfo)
    return value


def _instances(
    component: icalendar.Event, base_start: dt.datetime, duration: dt.timedelta, window_start: dt.datetime, window_end: dt.datetime
) -> list[dt.datetime]:
    rrule_component = component.get("RRULE")
    if not rrule_component:
        return [base_start]

    uid = str(component.get("uid", ""))
    try:
        rule = rrule.rrulestr(rrule_component.to_ical().decode(), dtstart=base_start)
        # Widen the search so events that started before the window but overlap it are found
        return list(rule.between(window_start - duration, window_end, inc=True))
    except (ValueError, TypeError) as rrule_err:
        logger.warning("Failed to expand RRULE for %s: %s", uid, rrule_err)
        # Fallback: Just add the base event if parsing fails
        return [base_start]


def parse_ical_events(
    ical_data: str,
    calendar: CalendarSchema,
    window_start: dt.datetime,
    window_end: dt.datetime,
) -> list[CalendarEvent]:
    """Parses one iCalendar object into the events overlapping [window_start, window_end)."""
    events: list[CalendarEvent] = []
    cal_obj = icalendar.Calendar.from_ical(ical_data)

    for component in cal_obj.walk("VEVENT"):
        summary = str(component.get("summary", "Untitled"))
        uid = str(component.get("uid", ""))
        dtstart = component.get("dtstart")
        if dtstart is None:
            logger.debug("Skipping VEVENT %s without DTSTART", uid)
            continue

        base_start = _as_aware(dtstart.dt)
        if component.get("dtend") is not None:
            duration = _as_aware(component.get("dtend").dt) - base_start
        elif component.get("duration") is not None:
            duration = component.get("duration").dt
        else:
            duration = dt.timedelta(0)

        for start in _instances(component, base_start, duration, window_start, window_end):
            if start < window_end and start + duration > window_start:
                events.append(
                    CalendarEvent(
                        id=uid,
                        title=summary,
                        start=start,
                        duration_seconds=int(duration.total_seconds()),
                        provider_id=calendar.id,
                        icon=calendar.icon,
                    )
                )

    return events
