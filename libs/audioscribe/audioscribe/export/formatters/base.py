"""Transcript formatter base."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from audioscribe.models.segment import Segment, SegmentPhase, is_sentinel_text


def exportable(segments: Sequence[Segment]) -> list[Segment]:
    """Segments with real (non-sentinel) raw text that were not skipped, in index order."""
    return [
        s
        for s in sorted(segments, key=lambda s: s.index)
        if s.raw_text.strip() and not is_sentinel_text(s.raw_text) and s.phase != SegmentPhase.SKIPPED
    ]


class TranscriptFormatter(ABC):
    extension = ".md"

    @abstractmethod
    def format(self, segments: Sequence[Segment], *, title: str) -> str:
        raise NotImplementedError

    @staticmethod
    def ms_to_label(ms: int | None) -> str:
        if not ms:
            return "unknown"
        return f"{ms / 1000:.1f}s"
