"""JSON transcript formatter."""

from __future__ import annotations

import json
from collections.abc import Sequence

from audioscribe.export.formatters.base import TranscriptFormatter
from audioscribe.models.segment import Segment
from audioscribe.models.serializers import serialize_verdict
from audioscribe.pipeline.assembly import assemble_polished, assemble_raw


class JSONFormatter(TranscriptFormatter):
    extension = ".json"

    def format(self, segments: Sequence[Segment], *, title: str) -> str:
        ordered = sorted(segments, key=lambda s: s.index)
        data = {
            "version": "1.0",
            "title": title,
            "polished_text": assemble_polished(ordered),
            "raw_text": assemble_raw(ordered),
            "segments": [
                {
                    "index": s.index,
                    "phase": s.phase.value,
                    "raw_text": s.raw_text,
                    "polished_text": s.polished_text,
                    "retry_count": s.retry_count,
                    "entropy": round(float(s.entropy), 4),
                    "engine_used": s.engine_used,
                    "fallback_used": s.fallback_used,
                    "verdict": serialize_verdict(s.verdict),
                    "error_code": s.error_code,
                    "timings_ms": {
                        "preprocessing": s.timings.preprocessing_ms,
                        "transcription": s.timings.transcription_ms,
                        "polishing": s.timings.polishing_ms,
                        "total": s.timings.total_ms,
                    },
                }
                for s in ordered
            ],
        }
        return json.dumps(data, ensure_ascii=False, indent=2) + "\n"
