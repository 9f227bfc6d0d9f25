from __future__ import annotations

import json

from audioscribe.export import export_transcripts
from audioscribe.export.formatters import DualTrackMarkdownFormatter, JSONFormatter, PolishedMarkdownFormatter
from audioscribe.models.segment import SILENCE_SENTINEL, Segment, SegmentPhase, SegmentTimings


def _segments() -> list[Segment]:
    return [
        Segment(
            index=2,
            phase=SegmentPhase.HALLUCINATION_DETECTED,
            raw_text="感谢观看 请订阅",
            polished_text="感谢观看，请订阅。",
            engine_used="primary",
        ),
        Segment(
            index=1,
            phase=SegmentPhase.COMMITTED,
            raw_text="嗯 今天 我们 讨论 预算",
            polished_text="今天我们讨论预算。",
            engine_used="secondary",
            fallback_used=True,
            timings=SegmentTimings(transcription_ms=1500, polishing_ms=800),
        ),
        Segment(index=3, phase=SegmentPhase.SKIPPED, raw_text=SILENCE_SENTINEL),
    ]


def test_polished_markdown_has_title_and_committed_text() -> None:
    out = PolishedMarkdownFormatter().format(_segments(), title="周会")
    assert out == "# 周会\n\n今天我们讨论预算。\n"
    assert PolishedMarkdownFormatter().format([], title="空") == "# 空\n"


def test_dual_track_keeps_raw_transcript_beside_cleaned_text() -> None:
    out = DualTrackMarkdownFormatter().format(_segments(), title="周会")

    assert out.startswith("# 周会 - dual track\n")
    assert out.count("## Paragraph") == 2
    assert "> #1 | secondary | fallback | transcription: 1.5s | polishing: 0.8s | committed" in out
    assert "**Cleaned**:\n今天我们讨论预算。" in out
    # Uncommitted segments show their raw text as the cleaned track.
    assert "**Cleaned**:\n感谢观看 请订阅" in out
    assert "<summary>Raw transcript</summary>\n\n嗯 今天 我们 讨论 预算" in out
    assert SILENCE_SENTINEL not in out
    assert out.index("## Paragraph 1") < out.index("## Paragraph 2")


def test_json_formatter_lists_every_segment() -> None:
    data = json.loads(JSONFormatter().format(_segments(), title="周会"))

    assert data["title"] == "周会"
    assert data["polished_text"] == "今天我们讨论预算。"
    assert data["raw_text"] == "嗯 今天 我们 讨论 预算\n\n感谢观看 请订阅"
    assert [s["index"] for s in data["segments"]] == [1, 2, 3]
    assert data["segments"][2]["phase"] == "skipped"


def test_export_transcripts_writes_all_views(tmp_path) -> None:
    written = export_transcripts(_segments(), tmp_path / "out", "weekly/sync", title="周会")

    names = sorted(p.name for p in written.values())
    assert names == [
        "weekly_sync.json",
        "weekly_sync_DualTrack.md",
        "weekly_sync_Polished.md",
        "weekly_sync_Raw.md",
    ]
    assert all(p.exists() for p in written.values())
    assert written["RawTextFormatter"].read_text(encoding="utf-8").startswith("# 周会\n\n嗯 今天")
