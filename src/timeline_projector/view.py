from collections.abc import Sequence

from timeline_projector.models import (
    CalendarEventEntry,
    MarkerEntry,
    RepeatOccurrenceEntry,
    ScheduledTaskEntry,
    SplitTaskEntry,
    TaskEntry,
    TimelineEntry,
)


def build_view_entries(entries: Sequence[TimelineEntry], current_task_id: str | None) -> list[TimelineEntry]:
    """
    Emits the final sequence, marking the earliest piece of the current task.
    Only flexible entries can be current; later pieces of a split task are not marked.
    """
    view: list[TimelineEntry] = []
    marked = False

    for entry in entries:
        if isinstance(entry, TaskEntry | SplitTaskEntry):
            is_current = not marked and current_task_id is not None and entry.task.id == current_task_id
            if is_current:
                marked = True
            view.append(entry.model_copy(update={"is_current": is_current}))
        elif isinstance(entry, ScheduledTaskEntry | RepeatOccurrenceEntry | CalendarEventEntry | MarkerEntry):
            view.append(entry)
        else:
            raise TypeError(f"Unknown timeline entry: {type(entry).__name__}")

    return view
