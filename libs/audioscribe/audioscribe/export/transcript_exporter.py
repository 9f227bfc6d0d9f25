"""Write every transcript view of a finished run to disk."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from audioscribe.export.formatters import (
    DualTrackMarkdownFormatter,
    JSONFormatter,
    PolishedMarkdownFormatter,
    RawTextFormatter,
    TranscriptFormatter,
)
from audioscribe.models.segment import Segment

logger = logging.getLogger(__name__)

_OUTPUTS: tuple[tuple[str, TranscriptFormatter], ...] = (
    ("_Polished", PolishedMarkdownFormatter()),
    ("_Raw", RawTextFormatter()),
    ("_DualTrack", DualTrackMarkdownFormatter()),
    ("", JSONFormatter()),
)


def export_transcripts(
    segments: Sequence[Segment],
    output_dir: str | Path,
    stem: str,
    *,
    title: str | None = None,
) -> dict[str, Path]:
    """Return a mapping of formatter name to written path."""
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    safe_stem = (stem or "transcript").strip().replace("/", "_") or "transcript"
    heading = title or safe_stem

    written: dict[str, Path] = {}
    for suffix, formatter in _OUTPUTS:
        path = out_dir / f"{safe_stem}{suffix}{formatter.extension}"
        path.write_text(formatter.format(segments, title=heading), encoding="utf-8")
        written[type(formatter).__name__] = path
    logger.info("transcripts exported (dir=%s, files=%s)", out_dir, len(written))
    return written
