from __future__ import annotations

from audioscribe.models.segment import SILENCE_SENTINEL, Segment, SegmentPhase
from audioscribe.pipeline.assembly import assemble_polished, assemble_raw


def _segments() -> list[Segment]:
    return [
        Segment(index=4, phase=SegmentPhase.COMMITTED, raw_text="fourth raw", polished_text="Fourth."),
        Segment(index=1, phase=SegmentPhase.COMMITTED, raw_text="first raw", polished_text="First."),
        Segment(index=3, phase=SegmentPhase.SKIPPED, raw_text=SILENCE_SENTINEL),
        Segment(
            index=2,
            phase=SegmentPhase.HALLUCINATION_DETECTED,
            raw_text="second raw",
            polished_text="Second (suspect).",
        ),
        Segment(index=5, phase=SegmentPhase.ERROR, raw_text=""),
        Segment(index=6, phase=SegmentPhase.COMMITTED, raw_text="sixth raw", polished_text="   "),
    ]


def test_polished_document_contains_only_committed_segments_in_index_order() -> None:
    assert assemble_polished(_segments()) == "First.\n\nFourth."


def test_raw_document_keeps_non_skipped_text_in_index_order() -> None:
    assert assemble_raw(_segments()) == "first raw\n\nsecond raw\n\nfourth raw\n\nsixth raw"


def test_assembly_is_independent_of_completion_order() -> None:
    segments = _segments()
    assert assemble_polished(reversed(segments)) == assemble_polished(segments)
    assert assemble_raw(reversed(segments)) == assemble_raw(segments)


def test_empty_run_assembles_to_empty_text() -> None:
    assert assemble_polished([]) == ""
    assert assemble_raw([Segment(index=1)]) == ""
    assert assemble_polished(_segments(), separator="\n") == "First.\nFourth."
