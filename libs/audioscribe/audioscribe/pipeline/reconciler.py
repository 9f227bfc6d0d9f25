"""Post-pass cleanup: sequentially re-run segments flagged for hallucination retry."""

from __future__ import annotations

import logging

from audioscribe.models.segment import Segment, SegmentPhase
from audioscribe.pipeline.scheduler import SegmentScheduler
from audioscribe.pipeline.state_machine import SegmentStateMachine
from audioscribe.pipeline.store import SegmentStore

logger = logging.getLogger(__name__)


class PostPassReconciler:
    def __init__(
        self,
        store: SegmentStore,
        scheduler: SegmentScheduler,
        machine: SegmentStateMachine,
        *,
        max_retries: int = 3,
        grace_s: float | None = 30.0,
    ) -> None:
        self.store = store
        self.scheduler = scheduler
        self.machine = machine
        self.max_retries = int(max_retries)
        self.grace_s = grace_s

    def _eligible(self, segment: Segment) -> bool:
        return (
            segment.needs_retry
            and segment.phase == SegmentPhase.HALLUCINATION_DETECTED
            and segment.retry_count < self.max_retries
        )

    def candidates(self) -> list[int]:
        return [s.index for s in self.store.snapshot() if self._eligible(s)]

    async def _settle(self) -> None:
        await self.scheduler.wait_idle()
        settled = await self.machine.wait_continuations(self.grace_s)
        if not settled:
            logger.warning(
                "polishing still pending after grace period (pending=%s, grace_s=%s)",
                self.machine.pending_continuations,
                self.grace_s,
            )

    async def run(self) -> list[int]:
        """Return the indices that were re-queued."""
        await self._settle()
        indices = self.candidates()
        if not indices:
            return []
        logger.info("reconciling hallucinated segments (count=%s, indices=%s)", len(indices), indices)

        retried: list[int] = []
        for index in indices:
            if self.scheduler.closed:
                break
            segment = self.store.get(index)
            if not self._eligible(segment):
                continue
            self.store.update(
                index,
                phase=SegmentPhase.PENDING_RETRY,
                retry_count=segment.retry_count + 1,
                needs_retry=False,
                reason="Auto-retry triggered by hallucination detection",
                log="Auto-retry triggered by hallucination detection",
            )
            self.scheduler.launch(index, SegmentPhase.PENDING_RETRY)
            await self._settle()
            retried.append(index)
        return retried
