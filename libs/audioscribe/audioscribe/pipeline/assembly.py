"""Join per-segment results into the final documents, in segment order."""

from __future__ import annotations

from collections.abc import Iterable

from audioscribe.models.segment import Segment, SegmentPhase, is_sentinel_text

SEPARATOR = "\n\n"


def _ordered(segments: Iterable[Segment]) -> list[Segment]:
    return sorted(segments, key=lambda s: s.index)


def assemble_polished(segments: Iterable[Segment], *, separator: str = SEPARATOR) -> str:
    parts = [
        s.polished_text.strip()
        for s in _ordered(segments)
        if s.phase == SegmentPhase.COMMITTED and s.polished_text.strip()
    ]
    return separator.join(parts)


def assemble_raw(segments: Iterable[Segment], *, separator: str = SEPARATOR) -> str:
    parts = [
        s.raw_text.strip()
        for s in _ordered(segments)
        if s.phase != SegmentPhase.SKIPPED and s.raw_text.strip() and not is_sentinel_text(s.raw_text)
    ]
    return separator.join(parts)
