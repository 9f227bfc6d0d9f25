"""Coalescing background writer from the segment store to a state sink."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from audioscribe.models.segment import Segment
from audioscribe.services.state_sink import SessionSnapshot, StateSink

logger = logging.getLogger(__name__)


class SnapshotWriter:
    """Save the latest segment snapshot after every store mutation.

    Mutations arriving while a save is in flight are coalesced into one
    follow-up save. A failing sink is logged and never affects the pipeline.
    """

    def __init__(
        self,
        sink: StateSink,
        *,
        source: str | None = None,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self.sink = sink
        self.source = source
        self._wall_clock = wall_clock
        self._latest: tuple[Segment, ...] | None = None
        self._task: asyncio.Task[None] | None = None
        self.saves = 0
        self.failures = 0

    def __call__(self, segments: tuple[Segment, ...]) -> None:
        self._latest = segments
        if self._task is not None and not self._task.done():
            return
        try:
            self._task = asyncio.get_running_loop().create_task(self._drain())
        except RuntimeError:
            # No running loop (e.g. store reset during setup); the next mutation flushes.
            return

    async def _drain(self) -> None:
        while self._latest is not None:
            segments, self._latest = self._latest, None
            snapshot = SessionSnapshot(timestamp=self._wall_clock(), segments=segments, source=self.source)
            try:
                await self.sink.save(snapshot)
                self.saves += 1
            except Exception as exc:
                self.failures += 1
                logger.warning("state snapshot save failed (error=%s)", exc)

    async def flush(self) -> None:
        if self._task is None or self._task.done():
            if self._latest is None:
                return
            self._task = asyncio.create_task(self._drain())
        await asyncio.gather(self._task, return_exceptions=True)
