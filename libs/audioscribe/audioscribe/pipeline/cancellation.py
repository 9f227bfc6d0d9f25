"""Per-segment cooperative cancellation tokens."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from audioscribe.exceptions import CancelReason, SegmentCancelledError

T = TypeVar("T")


class CancellationToken:
    """Cancellation handle owned by exactly one segment launch.

    Cancelling a token never affects other tokens. Adapter calls are wrapped in
    `guard()`, which abandons the call as soon as the token fires and raises
    `SegmentCancelledError` instead of returning its result.
    """

    def __init__(self, segment_index: int | None = None) -> None:
        self.segment_index = segment_index
        self._event = asyncio.Event()
        self._reason: CancelReason | None = None

    @property
    def cancelled(self) -> bool:
        return self._reason is not None

    @property
    def reason(self) -> CancelReason | None:
        return self._reason

    def cancel(self, reason: CancelReason = CancelReason.ABORTED) -> bool:
        if self._reason is not None:
            return False
        self._reason = reason
        self._event.set()
        return True

    def raise_if_cancelled(self) -> None:
        if self._reason is not None:
            raise SegmentCancelledError(self.segment_index, self._reason)

    async def guard(self, awaitable: Awaitable[T]) -> T:
        self.raise_if_cancelled()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            raise

        if task in done:
            waiter.cancel()
            # A result that races with cancellation is discarded.
            self.raise_if_cancelled()
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        self.raise_if_cancelled()
        raise AssertionError("unreachable: waiter finished without cancellation")  # pragma: no cover
