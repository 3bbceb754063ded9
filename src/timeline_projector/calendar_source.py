import asyncio
import datetime as dt
import logging
from collections.abc import Iterable
from typing import Protocol

from timeline_projector.cache import CalendarEventCache
from timeline_projector.clock import start_of_day
from timeline_projector.models import CalendarEvent, CalendarProviderEvents, CalendarSchema

logger = logging.getLogger(__name__)


class CalendarFetcher(Protocol):
    async def get_calendars(self) -> list[CalendarSchema]: ...

    async def fetch_events(
        self, calendar: CalendarSchema, start: dt.datetime, end: dt.datetime
    ) -> list[CalendarEvent]: ...


def flatten_events(snapshot: Iterable[CalendarProviderEvents]) -> list[CalendarEvent]:
    """All events of all providers, the same meeting synced twice counted once."""
    seen: set[CalendarEvent] = set()
    events: list[CalendarEvent] = []
    for provider in snapshot:
        for event in provider.items:
            if event not in seen:
                seen.add(event)
                events.append(event)
    return events


class CalendarSource:
    """
    Supplies the timeline with calendar events, one provider at a time.

    A provider that fails to answer falls back to its cached events; it never
    hides the events of the other providers.
    """

    def __init__(
        self,
        fetcher: CalendarFetcher,
        cache: CalendarEventCache,
        enabled_calendars: Iterable[str] = (),
        horizon_days: int = 7,
    ):
        self.fetcher = fetcher
        self.cache = cache
        self.enabled_calendars = set(enabled_calendars)
        self.horizon = dt.timedelta(days=horizon_days)

    async def _fetch_provider(self, calendar: CalendarSchema, now: dt.datetime) -> CalendarProviderEvents:
        # From midnight so that meetings already running are included
        start = start_of_day(now)
        try:
            items = await self.fetcher.fetch_events(calendar, start, now + self.horizon)
        except Exception as exc:
            logger.warning("Error fetching from calendar %s, using cached events: %s", calendar.id, exc)
            cached = self.cache.load_provider(calendar.id, now)
            return cached or CalendarProviderEvents(provider_id=calendar.id, icon=calendar.icon)
        return CalendarProviderEvents(provider_id=calendar.id, icon=calendar.icon, items=items)

    async def events_for_timeline(
        self, now: dt.datetime, materialized_event_ids: Iterable[str] = ()
    ) -> list[CalendarProviderEvents]:
        try:
            calendars = await self.fetcher.get_calendars()
        except Exception as exc:
            logger.warning("Could not list calendars, using cached events: %s", exc)
            snapshot = self.cache.load(now)
        else:
            if self.enabled_calendars:
                calendars = [c for c in calendars if c.id in self.enabled_calendars]
            snapshot = list(await asyncio.gather(*(self._fetch_provider(c, now) for c in calendars)))
            self.cache.save(snapshot)

        # Events the user already turned into tasks show up as those tasks
        materialized = set(materialized_event_ids)
        return [
            provider.model_copy(update={"items": [e for e in provider.items if e.id not in materialized]})
            for provider in snapshot
        ]
