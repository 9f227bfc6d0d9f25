"""Bounded-concurrency launcher for segment state machines."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from audioscribe.exceptions import CancelReason
from audioscribe.models.segment import SegmentPhase
from audioscribe.pipeline.cancellation import CancellationToken
from audioscribe.pipeline.concurrency import SlotPool
from audioscribe.pipeline.state_machine import SegmentStateMachine

logger = logging.getLogger(__name__)


class SegmentScheduler:
    """Start segments in index order without exceeding the slot pool.

    Each launch owns a fresh `CancellationToken`; launching a segment that is
    already in flight supersedes (cancels) the previous token.
    """

    def __init__(self, machine: SegmentStateMachine, slots: SlotPool) -> None:
        self.machine = machine
        self.slots = slots
        self._tokens: dict[int, CancellationToken] = {}
        self._inflight: set[asyncio.Task[None]] = set()
        self._closed = False
        self._generation = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    def token_for(self, index: int) -> CancellationToken | None:
        return self._tokens.get(int(index))

    def reopen(self) -> None:
        self._generation += 1
        self._closed = False
        self._tokens.clear()

    def close(self) -> None:
        self._closed = True

    async def run(self, indices: Iterable[int]) -> None:
        """Launch every segment in order; resolve when all slot-holding work is done."""
        generation = self._generation
        for index in sorted(int(i) for i in indices):
            if self._stale(generation):
                break
            await self.slots.acquire()
            if self._stale(generation):
                self.slots.release()
                break
            self._spawn(index, SegmentPhase.IDLE, bounded=True, slot_held=True)
        await self.wait_idle()

    def _stale(self, generation: int) -> bool:
        """True once this launch loop was closed or a later run reopened the scheduler."""
        return self._closed or generation != self._generation

    def launch(
        self,
        index: int,
        start_phase: SegmentPhase = SegmentPhase.IDLE,
        *,
        bounded: bool = True,
    ) -> asyncio.Task[None]:
        """Relaunch one segment; `bounded=False` bypasses the slot pool (manual retry)."""
        return self._spawn(int(index), start_phase, bounded=bounded, slot_held=False)

    async def wait_idle(self) -> None:
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    def cancel(self, index: int, reason: CancelReason = CancelReason.ABORTED) -> bool:
        token = self._tokens.get(int(index))
        if token is None:
            return False
        return token.cancel(reason)

    def cancel_all(self, reason: CancelReason = CancelReason.ABORTED) -> list[int]:
        cancelled = [index for index, token in self._tokens.items() if token.cancel(reason)]
        if cancelled:
            logger.info("segments cancelled (count=%s, reason=%s)", len(cancelled), reason.value)
        return cancelled

    def _spawn(
        self,
        index: int,
        start_phase: SegmentPhase,
        *,
        bounded: bool,
        slot_held: bool,
    ) -> asyncio.Task[None]:
        previous = self._tokens.get(index)
        if previous is not None:
            previous.cancel(CancelReason.SUPERSEDED)
        token = CancellationToken(index)
        self._tokens[index] = token

        task = asyncio.create_task(
            self._execute(index, token, start_phase, bounded=bounded, slot_held=slot_held),
            name=f"segment-{index}",
        )
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _execute(
        self,
        index: int,
        token: CancellationToken,
        start_phase: SegmentPhase,
        *,
        bounded: bool,
        slot_held: bool,
    ) -> None:
        if slot_held:
            try:
                await self.machine.run(index, token, start_phase=start_phase)
            finally:
                self.slots.release()
            return

        if not bounded:
            await self.machine.run(index, token, start_phase=start_phase)
            return

        async with self.slots.hold():
            if token.cancelled:
                logger.info("launch dropped before start (index=%s)", index)
                return
            await self.machine.run(index, token, start_phase=start_phase)
