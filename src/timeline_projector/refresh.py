import asyncio
import logging
from collections.abc import Awaitable, Callable

from timeline_projector.models import TimelineEntry, TimelineInputs

logger = logging.getLogger(__name__)

Recompute = Callable[[TimelineInputs], Awaitable[list[TimelineEntry]]]


class TimelineRefresher:
    """
    Recomputes the timeline whenever its inputs change.

    Bursts of changes are coalesced: every `notify()` restarts the debounce
    delay and only the last one recomputes. Each result replaces the previous
    one wholesale.
    """

    def __init__(self, recompute: Recompute, debounce_ms: int = 50):
        self._recompute = recompute
        self._delay = debounce_ms / 1000.0
        self._inputs = TimelineInputs()
        self._latest: list[TimelineEntry] = []
        self._pending: asyncio.Task[None] | None = None
        self.recompute_count = 0

    @property
    def inputs(self) -> TimelineInputs:
        return self._inputs

    def update(self, inputs: TimelineInputs) -> None:
        self._inputs = inputs
        self.notify()

    def notify(self) -> None:
        """Schedule a recompute; must be called from the running event loop."""
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        await asyncio.sleep(self._delay)
        inputs = self._inputs
        try:
            self._latest = await self._recompute(inputs)
        except Exception:
            logger.exception("Timeline recompute failed; keeping the previous projection")
            return
        self.recompute_count += 1
        logger.debug("Timeline recomputed: %d entries", len(self._latest))

    async def latest(self) -> list[TimelineEntry]:
        """The last projection, waiting for a pending recompute first."""
        while self._pending is not None and not self._pending.done():
            await asyncio.wait({self._pending})
        return self._latest

    async def close(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
            await asyncio.wait({self._pending})
