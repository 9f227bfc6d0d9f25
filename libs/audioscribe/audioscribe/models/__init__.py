"""Core data models for AudioScribe."""

from audioscribe.models.run import EngineSnapshot, RunStatus
from audioscribe.models.segment import (
    SILENCE_SENTINEL,
    SLOT_HOLDING_PHASES,
    TERMINAL_PHASES,
    HallucinationVerdict,
    Segment,
    SegmentPhase,
    SegmentTimings,
    StateTransition,
    SuggestedAction,
    is_sentinel_text,
)

__all__ = [
    "EngineSnapshot",
    "HallucinationVerdict",
    "RunStatus",
    "SILENCE_SENTINEL",
    "SLOT_HOLDING_PHASES",
    "Segment",
    "SegmentPhase",
    "SegmentTimings",
    "StateTransition",
    "SuggestedAction",
    "TERMINAL_PHASES",
    "is_sentinel_text",
]
