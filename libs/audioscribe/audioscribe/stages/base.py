"""Adapter contracts consumed by the segment state machine.

Every adapter is an async capability with unpredictable latency and a non-zero
failure rate. Adapters must observe cancellation at their own suspension
points; the state machine additionally races each call against the segment's
cancellation token.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from audioscribe.models.segment import HallucinationVerdict


@dataclass(frozen=True)
class SilenceResult:
    is_silent: bool
    score: float


@dataclass(frozen=True)
class TranscriptionResult:
    text: str
    engine_used: str
    fallback_used: bool = False
    verdict: HallucinationVerdict | None = None
    processing_ms: int | None = None


class AdviceAction(str, Enum):
    RETRY = "RETRY"
    SKIP = "SKIP"
    KEEP = "KEEP"


@dataclass(frozen=True)
class Advice:
    action: AdviceAction
    reasoning: str
    suggested_temperature: float | None = None


class Preprocessor(Protocol):
    async def preprocess(self, audio_path: str) -> str:
        """Return the path of a normalized (16 kHz mono WAV) copy; raise PreprocessError on failure."""
        ...


class SilenceDetector(Protocol):
    async def detect(self, audio_path: str) -> SilenceResult: ...


class Transcriber(Protocol):
    async def transcribe(
        self,
        audio_path: str,
        *,
        segment_index: int,
        total_segments: int,
        is_retry: bool = False,
        temperature: float | None = None,
    ) -> TranscriptionResult:
        """Return the unified result; raise TranscribeError when every engine failed."""
        ...


class Advisor(Protocol):
    async def consult(self, text: str, reason: str) -> Advice:
        """Arbitrate an ambiguous transcript; must degrade to RETRY on failure."""
        ...


class Polisher(Protocol):
    async def polish(self, text: str) -> str:
        """Return cleaned text; must degrade to the input unchanged on failure."""
        ...


class HallucinationJudge(Protocol):
    async def judge(self, raw_text: str, polished_text: str, segment_index: int) -> HallucinationVerdict:
        """Must degrade to a clean verdict (not a hallucination, confidence 0, KEEP) on failure."""
        ...


@dataclass(frozen=True)
class PipelineStages:
    preprocessor: Preprocessor
    silence_detector: SilenceDetector
    transcriber: Transcriber
    advisor: Advisor
    polisher: Polisher
    judge: HallucinationJudge
