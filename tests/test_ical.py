import datetime as dt

import pytest

from helpers import at
from timeline_projector.ical import parse_ical_events
from timeline_projector.models import CalendarSchema


def vcalendar(*events: str) -> str:
    body = "".join(f"BEGIN:VEVENT\r\n{e}END:VEVENT\r\n" for e in events)
    return f"BEGIN:VCALENDAR\r\nVERSION:2.0\r\nPRODID:-//timeline//test//EN\r\n{body}END:VCALENDAR\r\n"


@pytest.fixture
def calendar():
    return CalendarSchema(id="work-cal", name="Work", color="#336699", enabled=True, icon="ews")


class TestParseIcalEvents:
    def test_single_event(self, calendar):
        data = vcalendar("UID:standup\r\nSUMMARY:Standup\r\nDTSTART:20261019T140000Z\r\nDTEND:20261019T150000Z\r\n")
        events = parse_ical_events(data, calendar, at(0), at(0, days=1))
        assert len(events) == 1
        assert events[0].id == "standup"
        assert events[0].title == "Standup"
        assert events[0].start == at(14)
        assert events[0].duration_seconds == 3600
        assert events[0].provider_id == "work-cal"
        assert events[0].icon == "ews"

    def test_event_outside_window_dropped(self, calendar):
        data = vcalendar("UID:old\r\nSUMMARY:Old\r\nDTSTART:20261001T140000Z\r\nDTEND:20261001T150000Z\r\n")
        assert parse_ical_events(data, calendar, at(0), at(0, days=1)) == []

    def test_duration_property(self, calendar):
        data = vcalendar("UID:d\r\nSUMMARY:Focus\r\nDTSTART:20261019T090000Z\r\nDURATION:PT90M\r\n")
        events = parse_ical_events(data, calendar, at(0), at(0, days=1))
        assert events[0].duration_seconds == 90 * 60

    def test_weekly_recurrence_expanded(self, calendar):
        data = vcalendar(
            "UID:weekly\r\nSUMMARY:Planning\r\nDTSTART:20261005T100000Z\r\nDTEND:20261005T110000Z\r\n"
            "RRULE:FREQ=WEEKLY;BYDAY=MO\r\n"
        )
        events = parse_ical_events(data, calendar, at(0), at(0, days=14))
        assert [e.start for e in events] == [at(10), at(10, days=7)]

    def test_untitled_event(self, calendar):
        data = vcalendar("UID:x\r\nDTSTART:20261019T140000Z\r\nDTEND:20261019T143000Z\r\n")
        assert parse_ical_events(data, calendar, at(0), at(0, days=1))[0].title == "Untitled"

    def test_floating_time_is_local(self, calendar):
        data = vcalendar("UID:f\r\nSUMMARY:Floating\r\nDTSTART:20261019T140000\r\nDTEND:20261019T150000\r\n")
        start = dt.datetime(2026, 10, 18, tzinfo=dt.UTC)
        events = parse_ical_events(data, calendar, start, start + dt.timedelta(days=3))
        assert events[0].start.tzinfo is not None
        assert events[0].start.replace(tzinfo=None) == dt.datetime(2026, 10, 19, 14)
