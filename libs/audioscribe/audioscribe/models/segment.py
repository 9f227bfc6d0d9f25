"""Segment model: one chunk of audio plus all derived transcription state."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

SILENCE_SENTINEL = "[SILENCE]"


class SegmentPhase(str, Enum):
    IDLE = "idle"
    PREPROCESSING = "preprocessing"
    PERCEPTION = "perception"
    ACTION = "action"
    VERIFICATION = "verification"
    CONSULTATION = "consultation"
    REFINEMENT = "refinement"
    POLISHING = "polishing"
    HALLUCINATION_DETECTED = "hallucination_detected"
    PENDING_RETRY = "pending_retry"
    COMMITTED = "committed"
    SKIPPED = "skipped"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_PHASES

    @property
    def holds_slot(self) -> bool:
        return self in SLOT_HOLDING_PHASES


TERMINAL_PHASES: frozenset[SegmentPhase] = frozenset(
    {
        SegmentPhase.COMMITTED,
        SegmentPhase.SKIPPED,
        SegmentPhase.ERROR,
        SegmentPhase.HALLUCINATION_DETECTED,
    }
)

# POLISHING runs detached and is deliberately absent here.
SLOT_HOLDING_PHASES: frozenset[SegmentPhase] = frozenset(
    {
        SegmentPhase.PREPROCESSING,
        SegmentPhase.PERCEPTION,
        SegmentPhase.ACTION,
        SegmentPhase.VERIFICATION,
        SegmentPhase.CONSULTATION,
        SegmentPhase.REFINEMENT,
    }
)


class SuggestedAction(str, Enum):
    RETRY = "RETRY"
    KEEP = "KEEP"
    MANUAL_REVIEW = "MANUAL_REVIEW"


@dataclass(frozen=True)
class HallucinationVerdict:
    is_hallucination: bool
    confidence: float
    reason: str
    suggested_action: SuggestedAction = SuggestedAction.KEEP
    evidence: tuple[str, ...] = ()

    @classmethod
    def clean(cls, reason: str = "No hallucination detected") -> "HallucinationVerdict":
        return cls(is_hallucination=False, confidence=0.0, reason=reason)

    def flags(self, threshold: float) -> bool:
        return self.is_hallucination and self.confidence > threshold


@dataclass(frozen=True)
class StateTransition:
    from_phase: SegmentPhase
    to_phase: SegmentPhase
    timestamp: float
    reason: str | None = None
    retry_count: int = 0
    entropy: float = 0.0


@dataclass(frozen=True)
class SegmentTimings:
    preprocessing_ms: int | None = None
    transcription_ms: int | None = None
    polishing_ms: int | None = None
    total_ms: int | None = None


@dataclass(frozen=True)
class Segment:
    """Immutable segment state; the store installs a new instance per update."""

    index: int
    audio_path: str = ""
    phase: SegmentPhase = SegmentPhase.IDLE
    raw_text: str = ""
    polished_text: str = ""
    retry_count: int = 0
    entropy: float = 0.0
    verdict: HallucinationVerdict | None = None
    needs_retry: bool = False
    last_activity: float = 0.0
    transitions: tuple[StateTransition, ...] = ()
    logs: tuple[str, ...] = ()
    timings: SegmentTimings = field(default_factory=SegmentTimings)
    engine_used: str | None = None
    fallback_used: bool = False
    error_code: str | None = None
    error_message: str | None = None

    @property
    def is_sentinel(self) -> bool:
        return is_sentinel_text(self.raw_text)


def is_sentinel_text(text: str) -> bool:
    return SILENCE_SENTINEL in str(text or "")
