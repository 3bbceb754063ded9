import logging
from contextlib import asynccontextmanager
from functools import lru_cache

import uvicorn
from fastapi import Depends, FastAPI, status

from timeline_projector.cache import CalendarEventCache
from timeline_projector.calendar_source import CalendarSource, flatten_events
from timeline_projector.clock import ClockAnchor
from timeline_projector.config import TimelineSettings, load_settings
from timeline_projector.eds import EDSCalendarFetcher
from timeline_projector.models import TimelineEntry, TimelineInputs
from timeline_projector.refresh import TimelineRefresher
from timeline_projector.scheduler import project_inputs

logger = logging.getLogger(__name__)


@lru_cache
def get_settings() -> TimelineSettings:
    return load_settings()


@lru_cache
def get_calendar_source() -> CalendarSource:
    settings = get_settings()
    return CalendarSource(
        EDSCalendarFetcher(),
        CalendarEventCache(settings.cache_path),
        enabled_calendars=settings.enabled_calendars,
        horizon_days=settings.horizon_days,
    )


@lru_cache
def get_clock() -> ClockAnchor:
    return ClockAnchor()


def with_configured_windows(inputs: TimelineInputs, settings: TimelineSettings) -> TimelineInputs:
    """Fill in the configured work window and lunch break where the request left them out."""
    update = {}
    if "work_window" not in inputs.model_fields_set:
        update["work_window"] = settings.work_window()
    if "lunch_break" not in inputs.model_fields_set:
        update["lunch_break"] = settings.lunch_break()
    return inputs.model_copy(update=update)


async def resolve_timeline(
    inputs: TimelineInputs, clock: ClockAnchor, source: CalendarSource
) -> list[TimelineEntry]:
    now = clock.now()
    if inputs.calendar_events is None:
        materialized = {
            t.calendar_event_id for t in (*inputs.unscheduled_queue, *inputs.due_tasks) if t.calendar_event_id
        }
        snapshot = await source.events_for_timeline(now, materialized)
        inputs = inputs.model_copy(update={"calendar_events": flatten_events(snapshot)})
    return project_inputs(now, inputs)


@lru_cache
def get_refresher() -> TimelineRefresher:
    settings = get_settings()

    async def recompute(inputs: TimelineInputs) -> list[TimelineEntry]:
        return await resolve_timeline(inputs, get_clock(), get_calendar_source())

    return TimelineRefresher(recompute, debounce_ms=settings.debounce_ms)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await get_refresher().close()


app = FastAPI(title="Timeline Projector", lifespan=lifespan)


@app.post("/timeline/project", response_model=list[TimelineEntry])
async def post_projection(
    inputs: TimelineInputs,
    settings: TimelineSettings = Depends(get_settings),
    clock: ClockAnchor = Depends(get_clock),
    source: CalendarSource = Depends(get_calendar_source),
):
    return await resolve_timeline(with_configured_windows(inputs, settings), clock, source)


@app.put("/timeline/inputs", status_code=status.HTTP_202_ACCEPTED)
async def put_inputs(
    inputs: TimelineInputs,
    settings: TimelineSettings = Depends(get_settings),
    refresher: TimelineRefresher = Depends(get_refresher),
):
    refresher.update(with_configured_windows(inputs, settings))
    return {"status": "scheduled"}


@app.get("/timeline", response_model=list[TimelineEntry])
async def get_timeline(refresher: TimelineRefresher = Depends(get_refresher)):
    return await refresher.latest()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    uvicorn.run("timeline_projector.main:app", host="127.0.0.1", port=8090, reload=True)
