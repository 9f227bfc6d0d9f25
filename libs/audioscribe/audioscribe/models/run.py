"""Run-level status and read-only snapshot for progress reporting."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from audioscribe.models.segment import Segment, SegmentPhase


class RunStatus(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class EngineSnapshot:
    status: RunStatus
    segments: tuple[Segment, ...]

    @property
    def total(self) -> int:
        return len(self.segments)

    @property
    def finished(self) -> int:
        return sum(1 for s in self.segments if s.phase.is_terminal)

    @property
    def progress(self) -> int:
        if not self.segments:
            return 0
        return round(self.finished * 100 / self.total)

    def count(self, phase: SegmentPhase) -> int:
        return sum(1 for s in self.segments if s.phase == phase)
