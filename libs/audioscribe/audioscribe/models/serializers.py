"""Serialization helpers for segment snapshots stored as JSON."""

from __future__ import annotations

from typing import Any

from audioscribe.models.segment import (
    HallucinationVerdict,
    Segment,
    SegmentPhase,
    SegmentTimings,
    StateTransition,
    SuggestedAction,
)


def serialize_verdict(verdict: HallucinationVerdict | None) -> dict[str, Any] | None:
    if verdict is None:
        return None
    return {
        "is_hallucination": bool(verdict.is_hallucination),
        "confidence": float(verdict.confidence),
        "reason": str(verdict.reason),
        "suggested_action": verdict.suggested_action.value,
        "evidence": list(verdict.evidence),
    }


def deserialize_verdict(item: dict[str, Any] | None) -> HallucinationVerdict | None:
    if not item:
        return None
    action = str(item.get("suggested_action") or SuggestedAction.KEEP.value).upper()
    try:
        suggested = SuggestedAction(action)
    except ValueError:
        suggested = SuggestedAction.KEEP
    return HallucinationVerdict(
        is_hallucination=bool(item.get("is_hallucination")),
        confidence=float(item.get("confidence") or 0.0),
        reason=str(item.get("reason") or ""),
        suggested_action=suggested,
        evidence=tuple(str(x) for x in list(item.get("evidence") or [])),
    )


def serialize_transitions(items: tuple[StateTransition, ...]) -> list[dict[str, Any]]:
    return [
        {
            "from": t.from_phase.value,
            "to": t.to_phase.value,
            "timestamp": float(t.timestamp),
            "reason": t.reason,
            "retry_count": int(t.retry_count),
            "entropy": float(t.entropy),
        }
        for t in items
    ]


def deserialize_transitions(items: list[dict[str, Any]]) -> tuple[StateTransition, ...]:
    out: list[StateTransition] = []
    for item in items:
        out.append(
            StateTransition(
                from_phase=SegmentPhase(str(item["from"])),
                to_phase=SegmentPhase(str(item["to"])),
                timestamp=float(item["timestamp"]),
                reason=item.get("reason"),
                retry_count=int(item.get("retry_count") or 0),
                entropy=float(item.get("entropy") or 0.0),
            )
        )
    return tuple(out)


def serialize_segment(seg: Segment) -> dict[str, Any]:
    """Text state only: audio and live run state are not persisted."""
    return {
        "index": int(seg.index),
        "phase": seg.phase.value,
        "raw_text": seg.raw_text,
        "polished_text": seg.polished_text,
        "entropy": float(seg.entropy),
        "retry_count": int(seg.retry_count),
        "needs_retry": bool(seg.needs_retry),
        "verdict": serialize_verdict(seg.verdict),
        "transitions": serialize_transitions(seg.transitions),
        "timings": {
            "preprocessing_ms": seg.timings.preprocessing_ms,
            "transcription_ms": seg.timings.transcription_ms,
            "polishing_ms": seg.timings.polishing_ms,
            "total_ms": seg.timings.total_ms,
        },
        "engine_used": seg.engine_used,
        "fallback_used": bool(seg.fallback_used),
        "error_code": seg.error_code,
        "error_message": seg.error_message,
    }


def deserialize_segment(item: dict[str, Any]) -> Segment:
    timings = dict(item.get("timings") or {})
    return Segment(
        index=int(item["index"]),
        phase=SegmentPhase(str(item.get("phase") or SegmentPhase.IDLE.value)),
        raw_text=str(item.get("raw_text") or ""),
        polished_text=str(item.get("polished_text") or ""),
        entropy=float(item.get("entropy") or 0.0),
        retry_count=int(item.get("retry_count") or 0),
        needs_retry=bool(item.get("needs_retry")),
        verdict=deserialize_verdict(item.get("verdict")),
        transitions=deserialize_transitions(list(item.get("transitions") or [])),
        timings=SegmentTimings(
            preprocessing_ms=timings.get("preprocessing_ms"),
            transcription_ms=timings.get("transcription_ms"),
            polishing_ms=timings.get("polishing_ms"),
            total_ms=timings.get("total_ms"),
        ),
        engine_used=item.get("engine_used"),
        fallback_used=bool(item.get("fallback_used")),
        error_code=item.get("error_code"),
        error_message=item.get("error_message"),
    )


def serialize_segments(segs: tuple[Segment, ...] | list[Segment]) -> list[dict[str, Any]]:
    return [serialize_segment(s) for s in segs]


def deserialize_segments(items: list[dict[str, Any]]) -> list[Segment]:
    return sorted((deserialize_segment(i) for i in items), key=lambda s: s.index)
