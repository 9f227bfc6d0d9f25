from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass


@dataclass(frozen=True)
class SlotState:
    active: int
    max: int
    peak: int


class SlotPool:
    """Fixed-size pool of scheduler slots.

    Tracks the number of holders and the high-water mark so callers can verify
    the concurrency cap was never exceeded.
    """

    def __init__(self, maximum: int) -> None:
        self._max = max(1, int(maximum))
        self._semaphore = asyncio.Semaphore(self._max)
        self._active = 0
        self._peak = 0

    @property
    def max(self) -> int:
        return self._max

    @property
    def active(self) -> int:
        return self._active

    @property
    def peak(self) -> int:
        return self._peak

    def snapshot(self) -> SlotState:
        return SlotState(active=self._active, max=self._max, peak=self._peak)

    async def acquire(self) -> SlotState:
        await self._semaphore.acquire()
        self._active += 1
        self._peak = max(self._peak, self._active)
        return self.snapshot()

    def release(self) -> None:
        self._active = max(0, self._active - 1)
        self._semaphore.release()

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[SlotState]:
        state = await self.acquire()
        try:
            yield state
        finally:
            self.release()
