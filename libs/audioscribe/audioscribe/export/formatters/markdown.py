"""Plain document formatters (polished and raw)."""

from __future__ import annotations

from collections.abc import Sequence

from audioscribe.export.formatters.base import TranscriptFormatter
from audioscribe.models.segment import Segment
from audioscribe.pipeline.assembly import assemble_polished, assemble_raw


class PolishedMarkdownFormatter(TranscriptFormatter):
    def format(self, segments: Sequence[Segment], *, title: str) -> str:
        body = assemble_polished(segments)
        return f"# {title}\n\n{body}\n" if body else f"# {title}\n"


class RawTextFormatter(TranscriptFormatter):
    def format(self, segments: Sequence[Segment], *, title: str) -> str:
        body = assemble_raw(segments)
        return f"# {title}\n\n{body}\n" if body else f"# {title}\n"
