"""Dual-track markdown: cleaned text with the raw transcript kept alongside."""

from __future__ import annotations

from collections.abc import Sequence

from audioscribe.export.formatters.base import TranscriptFormatter, exportable
from audioscribe.models.segment import Segment, SegmentPhase

_PREAMBLE = (
    "> Conservative cleanup: the raw transcript of every paragraph is preserved.\n"
    '> Expand "Raw transcript" under a paragraph to compare.'
)


class DualTrackMarkdownFormatter(TranscriptFormatter):
    def _metadata(self, seg: Segment) -> str:
        parts = [
            f"#{seg.index}",
            seg.engine_used or "unknown engine",
            "fallback" if seg.fallback_used else "",
            f"transcription: {self.ms_to_label(seg.timings.transcription_ms)}"
            if seg.timings.transcription_ms
            else "",
            f"polishing: {self.ms_to_label(seg.timings.polishing_ms)}" if seg.timings.polishing_ms else "",
            seg.phase.value,
        ]
        return " | ".join(p for p in parts if p)

    def _block(self, position: int, seg: Segment) -> str:
        polished = seg.polished_text.strip()
        cleaned = polished if seg.phase == SegmentPhase.COMMITTED and polished else seg.raw_text.strip()
        return "\n".join(
            [
                f"## Paragraph {position}",
                "",
                f"> {self._metadata(seg)}",
                "",
                "**Cleaned**:",
                cleaned,
                "",
                "<details>",
                "<summary>Raw transcript</summary>",
                "",
                seg.raw_text.strip(),
                "",
                "</details>",
                "",
                "---",
                "",
            ]
        )

    def format(self, segments: Sequence[Segment], *, title: str) -> str:
        blocks = [self._block(i, seg) for i, seg in enumerate(exportable(segments), start=1)]
        return f"# {title} - dual track\n\n{_PREAMBLE}\n\n---\n\n" + "\n".join(blocks)
