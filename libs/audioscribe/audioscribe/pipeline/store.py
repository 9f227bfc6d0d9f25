"""Shared segment collection with reducer-style, copy-on-write updates.

Updates are plain synchronous functions: on a single event loop no other task
can observe a half-applied change. Every update installs a new tuple of frozen
`Segment` instances, so a snapshot handed to a reader never changes under it.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import replace
from typing import Any

from audioscribe.models.segment import Segment, StateTransition

logger = logging.getLogger(__name__)

SegmentListener = Callable[[tuple[Segment, ...]], None]

_MIN_TS_STEP = 1e-6


class SegmentStore:
    def __init__(
        self,
        segments: Iterable[Segment] = (),
        *,
        max_retries: int | None = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._clock = clock
        self._wall_clock = wall_clock
        self._max_retries = max_retries
        self._listeners: list[SegmentListener] = []
        self._segments: tuple[Segment, ...] = ()
        self._positions: dict[int, int] = {}
        self.reset(segments)

    @property
    def total(self) -> int:
        return len(self._segments)

    def now(self) -> float:
        return self._clock()

    def reset(self, segments: Iterable[Segment]) -> None:
        ordered = tuple(sorted(segments, key=lambda s: s.index))
        indices = [s.index for s in ordered]
        if len(set(indices)) != len(indices):
            raise ValueError("segment indices must be unique")
        if indices != list(range(1, len(indices) + 1)):
            raise ValueError(f"segment indices must be contiguous from 1 (got {indices})")
        self._segments = ordered
        self._positions = {s.index: i for i, s in enumerate(ordered)}
        self._notify()

    def snapshot(self) -> tuple[Segment, ...]:
        return self._segments

    def get(self, index: int) -> Segment:
        pos = self._positions.get(int(index))
        if pos is None:
            raise KeyError(f"unknown segment index: {index}")
        return self._segments[pos]

    def update(
        self,
        index: int,
        *,
        reason: str | None = None,
        log: str | None = None,
        **changes: Any,
    ) -> Segment:
        """Apply `changes` to one segment and refresh its activity timestamp.

        A transition entry is appended only when `phase` actually changes.
        """
        current = self.get(index)
        retry_count = int(changes.get("retry_count", current.retry_count))
        if retry_count < current.retry_count and changes.get("phase") is None:
            raise ValueError(f"segment {index}: retry_count must not decrease without a phase reset")
        if self._max_retries is not None and retry_count > self._max_retries:
            raise ValueError(
                f"segment {index}: retry_count {retry_count} exceeds max_retries {self._max_retries}"
            )

        transitions = current.transitions
        new_phase = changes.get("phase")
        if new_phase is not None and new_phase != current.phase:
            ts = self._wall_clock()
            if transitions and ts <= transitions[-1].timestamp:
                ts = transitions[-1].timestamp + _MIN_TS_STEP
            transitions = transitions + (
                StateTransition(
                    from_phase=current.phase,
                    to_phase=new_phase,
                    timestamp=ts,
                    reason=reason,
                    retry_count=retry_count,
                    entropy=float(changes.get("entropy", current.entropy)),
                ),
            )
        logs = current.logs + (log,) if log else current.logs

        updated = replace(
            current,
            **changes,
            transitions=transitions,
            logs=logs,
            last_activity=self._clock(),
        )
        self._install(updated)
        return updated

    def append_log(self, index: int, message: str) -> Segment:
        return self.update(index, log=message)

    def subscribe(self, listener: SegmentListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _install(self, segment: Segment) -> None:
        pos = self._positions[segment.index]
        items = list(self._segments)
        items[pos] = segment
        self._segments = tuple(items)
        self._notify()

    def _notify(self) -> None:
        snapshot = self._segments
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.warning("segment listener failed", exc_info=True)
