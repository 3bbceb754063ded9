import datetime as dt
import logging
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from timeline_projector.models import CalendarProviderEvents

logger = logging.getLogger(__name__)

_snapshot_adapter = TypeAdapter(list[CalendarProviderEvents])


class CalendarEventCache:
    """
    Last-fetched calendar events per provider, kept on disk so the timeline has
    something to show on a cold start or while a provider is unreachable.
    """

    def __init__(self, path: Path):
        self.path = path

    def save(self, snapshot: list[CalendarProviderEvents]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_bytes(_snapshot_adapter.dump_json(snapshot, indent=2))
        except OSError as exc:
            logger.warning("Could not write calendar cache %s: %s", self.path, exc)

    def load(self, now: dt.datetime) -> list[CalendarProviderEvents]:
        """Cached snapshot without the events that already ended before `now`."""
        if not self.path.exists():
            return []
        try:
            snapshot = _snapshot_adapter.validate_json(self.path.read_bytes())
        except (OSError, ValidationError) as exc:
            logger.warning("Ignoring unreadable calendar cache %s: %s", self.path, exc)
            return []

        return [
            provider.model_copy(update={"items": [e for e in provider.items if e.end >= now]})
            for provider in snapshot
        ]

    def load_provider(self, provider_id: str, now: dt.datetime) -> CalendarProviderEvents | None:
        for provider in self.load(now):
            if provider.provider_id == provider_id:
                return provider
        return None
