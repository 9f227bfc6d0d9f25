"""Dual-engine transcription: primary engine first, secondary as fallback."""

from __future__ import annotations

import logging
import time

from audioscribe.exceptions import TranscribeError
from audioscribe.models.segment import HallucinationVerdict
from audioscribe.providers.asr.base import ASRProvider
from audioscribe.stages.base import HallucinationJudge, TranscriptionResult

logger = logging.getLogger(__name__)


class SmartTranscriber:
    """Transcribe with the primary engine and fall back to the secondary one.

    The primary result is checked by the hallucination judge on `(text, text)`;
    a failure or a confident hallucination verdict (>= `fallback_threshold`)
    sends the segment to the secondary engine. The returned result always
    carries the verdict of the text it returns.
    """

    def __init__(
        self,
        primary: ASRProvider,
        secondary: ASRProvider | None,
        judge: HallucinationJudge,
        *,
        fallback_threshold: float = 0.7,
    ) -> None:
        self.primary = primary
        self.secondary = secondary
        self.judge = judge
        self.fallback_threshold = float(fallback_threshold)

    async def transcribe(
        self,
        audio_path: str,
        *,
        segment_index: int,
        total_segments: int,
        is_retry: bool = False,
        temperature: float | None = None,
    ) -> TranscriptionResult:
        started = time.perf_counter()
        primary_error: Exception | None = None
        primary_result: TranscriptionResult | None = None

        try:
            result = await self.primary.transcribe(audio_path, temperature=temperature)
            verdict = await self._check(result.text, segment_index)
            primary_result = TranscriptionResult(
                text=result.text,
                engine_used=self.primary.name,
                verdict=verdict,
                processing_ms=self._elapsed_ms(started),
            )
            if not (verdict.is_hallucination and verdict.confidence >= self.fallback_threshold):
                logger.info(
                    "transcribe ok (segment=%s/%s, engine=%s, ms=%s)",
                    segment_index,
                    total_segments,
                    self.primary.name,
                    primary_result.processing_ms,
                )
                return primary_result
            logger.warning(
                "primary engine hallucination (segment=%s, confidence=%.2f, reason=%s)",
                segment_index,
                verdict.confidence,
                verdict.reason,
            )
        except Exception as exc:
            primary_error = exc
            logger.warning("primary engine failed (segment=%s, error=%s)", segment_index, exc)

        if self.secondary is None:
            if primary_result is not None:
                return primary_result
            raise TranscribeError(self.primary.name, f"primary engine failed, no fallback: {primary_error}")

        try:
            result = await self.secondary.transcribe(audio_path, temperature=temperature)
        except Exception as exc:
            logger.error("secondary engine failed (segment=%s, error=%s)", segment_index, exc)
            if primary_result is not None:
                return primary_result
            raise TranscribeError("smart_transcribe", f"all transcription engines failed: {exc}") from exc

        verdict = await self._check(result.text, segment_index)
        out = TranscriptionResult(
            text=result.text,
            engine_used=self.secondary.name,
            fallback_used=True,
            verdict=verdict,
            processing_ms=self._elapsed_ms(started),
        )
        logger.info(
            "transcribe ok (segment=%s/%s, engine=%s, fallback=True, retry=%s, ms=%s)",
            segment_index,
            total_segments,
            self.secondary.name,
            is_retry,
            out.processing_ms,
        )
        return out

    async def _check(self, text: str, segment_index: int) -> HallucinationVerdict:
        try:
            return await self.judge.judge(text, text, segment_index)
        except Exception as exc:
            logger.warning("early hallucination check failed (segment=%s, error=%s)", segment_index, exc)
            return HallucinationVerdict.clean("Detection failed, assuming valid")

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.perf_counter() - started) * 1000)
