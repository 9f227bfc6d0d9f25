"""Stall supervisor: cancels and relaunches segments that stopped making progress."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from audioscribe.error_codes import ErrorCode
from audioscribe.exceptions import CancelReason
from audioscribe.models.segment import SegmentPhase
from audioscribe.pipeline.scheduler import SegmentScheduler
from audioscribe.pipeline.store import SegmentStore

logger = logging.getLogger(__name__)


class Watchdog:
    def __init__(
        self,
        store: SegmentStore,
        scheduler: SegmentScheduler,
        *,
        interval_s: float = 5.0,
        timeout_s: float = 60.0,
        max_retries: int = 3,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.store = store
        self.scheduler = scheduler
        self.interval_s = max(0.01, float(interval_s))
        self.timeout_s = float(timeout_s)
        self.max_retries = int(max_retries)
        self._clock = clock or store.now
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="watchdog")

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_s)
            try:
                self.sweep()
            except Exception:
                logger.exception("watchdog sweep failed")

    def sweep(self) -> list[int]:
        """Scan once; return the indices that were restarted or given up on."""
        if self.scheduler.closed:
            return []
        now = self._clock()
        handled: list[int] = []
        for segment in self.store.snapshot():
            # POLISHING is detached and never holds a slot.
            if not segment.phase.holds_slot:
                continue
            idle_for = now - segment.last_activity
            if idle_for <= self.timeout_s:
                continue

            index = segment.index
            self.scheduler.cancel(index, CancelReason.WATCHDOG)
            next_retry = segment.retry_count + 1
            logger.warning(
                "segment stalled (index=%s, phase=%s, idle_s=%.1f, retry_count=%s)",
                index,
                segment.phase.value,
                idle_for,
                segment.retry_count,
            )

            if next_retry > self.max_retries:
                self.store.update(
                    index,
                    phase=SegmentPhase.SKIPPED,
                    error_code=ErrorCode.STALL_RETRIES_EXHAUSTED.value,
                    error_message="Stall retries exhausted",
                    reason="Watchdog: stall retries exhausted",
                    log="Watchdog: process stalled. Retries exhausted, skipping.",
                )
            else:
                self.store.update(
                    index,
                    phase=SegmentPhase.IDLE,
                    retry_count=next_retry,
                    reason="Watchdog Timeout",
                    log="Watchdog: process stalled. Auto-restarting...",
                )
                self.scheduler.launch(index, SegmentPhase.IDLE)
            handled.append(index)
        return handled
