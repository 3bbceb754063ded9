import datetime as dt
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from timeline_projector.clock import elapsed, shift


class Snapshot(BaseModel):
    """Read-only input snapshot. Every input is frozen for the duration of a projection."""

    model_config = ConfigDict(frozen=True)


class Task(Snapshot):
    id: str
    title: str
    time_estimate_seconds: int = 0
    time_spent_seconds: int = 0
    parent_id: str | None = None
    sub_task_ids: list[str] = Field(default_factory=list)
    completed: bool = False
    due: dt.datetime | None = None
    # Set when the task was created from a calendar event
    calendar_event_id: str | None = None

    @property
    def remaining(self) -> dt.timedelta:
        return dt.timedelta(seconds=max(0, self.time_estimate_seconds - self.time_spent_seconds))


class RecurringTaskOccurrence(Snapshot):
    repeat_cfg_id: str
    title: str
    start: dt.datetime
    duration_seconds: int = 0

    @property
    def end(self) -> dt.datetime:
        return shift(self.start, dt.timedelta(seconds=self.duration_seconds))


class CalendarEvent(Snapshot):
    """Calendar event as delivered by a provider.

    Note: events are considered equal based only on their title, start time and duration.
    The same meeting showing up in two synced calendars is one obligation, not two.
    """

    id: str
    title: str
    start: dt.datetime
    duration_seconds: int = 0
    provider_id: str
    icon: str | None = None

    @property
    def end(self) -> dt.datetime:
        return shift(self.start, dt.timedelta(seconds=self.duration_seconds))

    @field_validator("start")
    @classmethod
    def attach_local_timezone(cls, v: dt.datetime) -> dt.datetime:
        """
        Floating times (common with broken Exchange/Outlook syncs) carry no
        timezone; they are meant as local wall-clock time, so we attach the
        system local timezone.
        """
        if v.tzinfo is None:
            return v.replace(tzinfo=dt.datetime.now().astimezone().tzinfo)
        return v

    def __eq__(self, other: object) -> bool:
        if isinstance(other, CalendarEvent):
            return (
                self.title == other.title
                and self.start == other.start
                and self.duration_seconds == other.duration_seconds
            )
        return NotImplemented

    def __hash__(self):
        time_fmt = "%d%m%Y%H:%M:%S"
        return hash(f"{self.title}_{self.start.strftime(time_fmt)}_{self.duration_seconds}")


class CalendarProviderEvents(Snapshot):
    """All events one calendar provider delivered for the timeline horizon."""

    provider_id: str
    icon: str | None = None
    items: list[CalendarEvent] = Field(default_factory=list)


class CalendarSchema(BaseModel):
    id: str
    name: str
    color: str
    enabled: bool
    icon: str | None = None


class DayWindow(Snapshot):
    """A pair of time-of-day bounds recurring every calendar day."""

    start: dt.time
    end: dt.time

    @property
    def is_degenerate(self) -> bool:
        return self.end <= self.start


class WorkWindow(DayWindow):
    pass


class LunchBreak(DayWindow):
    pass


class EntryKind(str, Enum):
    TASK = "Task"
    SPLIT_TASK = "SplitTask"
    SCHEDULED_TASK = "ScheduledTask"
    SCHEDULED_REPEAT_OCCURRENCE = "ScheduledRepeatOccurrence"
    CALENDAR_EVENT = "CalendarEvent"
    WORKDAY_START = "WorkdayStart"
    WORKDAY_END = "WorkdayEnd"
    LUNCH_BREAK_START = "LunchBreakStart"
    LUNCH_BREAK_END = "LunchBreakEnd"
    DAY_BOUNDARY = "DayBoundary"


class _EntryBase(Snapshot):
    start: dt.datetime
    end: dt.datetime

    @model_validator(mode="after")
    def check_end_not_before_start(self):
        if elapsed(self.start, self.end) < dt.timedelta(0):
            raise ValueError(f"entry ends before it starts ({self.start} > {self.end})")
        return self

    @property
    def duration(self) -> dt.timedelta:
        return elapsed(self.start, self.end)


class TaskEntry(_EntryBase):
    kind: Literal[EntryKind.TASK] = EntryKind.TASK
    task: Task
    is_current: bool = False


class SplitTaskEntry(_EntryBase):
    kind: Literal[EntryKind.SPLIT_TASK] = EntryKind.SPLIT_TASK
    task: Task
    is_current: bool = False
    is_partial: bool = True
    # 0-based position of this piece among the task's pieces
    part: int = 0


class ScheduledTaskEntry(_EntryBase):
    kind: Literal[EntryKind.SCHEDULED_TASK] = EntryKind.SCHEDULED_TASK
    task: Task


class RepeatOccurrenceEntry(_EntryBase):
    kind: Literal[EntryKind.SCHEDULED_REPEAT_OCCURRENCE] = EntryKind.SCHEDULED_REPEAT_OCCURRENCE
    occurrence: RecurringTaskOccurrence


class CalendarEventEntry(_EntryBase):
    kind: Literal[EntryKind.CALENDAR_EVENT] = EntryKind.CALENDAR_EVENT
    event: CalendarEvent
    icon: str | None = None


MarkerKind = Literal[
    EntryKind.WORKDAY_START,
    EntryKind.WORKDAY_END,
    EntryKind.LUNCH_BREAK_START,
    EntryKind.LUNCH_BREAK_END,
    EntryKind.DAY_BOUNDARY,
]


class MarkerEntry(_EntryBase):
    """Zero-duration boundary marker."""

    kind: MarkerKind
    # Only set for day boundaries: the date that begins at `start`
    date: dt.date | None = None

    @model_validator(mode="after")
    def check_zero_duration(self):
        if elapsed(self.start, self.end) != dt.timedelta(0):
            raise ValueError("boundary markers must have zero duration")
        return self


FixedEntry = ScheduledTaskEntry | RepeatOccurrenceEntry | CalendarEventEntry
FlexibleEntry = TaskEntry | SplitTaskEntry

TimelineEntry = Annotated[
    TaskEntry
    | SplitTaskEntry
    | ScheduledTaskEntry
    | RepeatOccurrenceEntry
    | CalendarEventEntry
    | MarkerEntry,
    Field(discriminator="kind"),
]


class TimelineInputs(BaseModel):
    """Everything one projection consumes, besides the clock."""

    unscheduled_queue: list[Task] = Field(default_factory=list)
    due_tasks: list[Task] = Field(default_factory=list)
    recurring_occurrences: list[RecurringTaskOccurrence] = Field(default_factory=list)
    # None means "ask the calendar source"
    calendar_events: list[CalendarEvent] | None = None
    current_task_id: str | None = None
    work_window: WorkWindow | None = None
    lunch_break: LunchBreak | None = None
