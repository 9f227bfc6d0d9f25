"""Per-segment finite-state machine (preprocess -> transcribe -> verify -> polish)."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace

from audioscribe.config import PipelineConfig, VerificationConfig
from audioscribe.error_codes import ErrorCode
from audioscribe.exceptions import (
    ConfigurationError,
    ProviderError,
    SegmentCancelledError,
)
from audioscribe.models.segment import (
    SILENCE_SENTINEL,
    HallucinationVerdict,
    Segment,
    SegmentPhase,
    SuggestedAction,
    is_sentinel_text,
)
from audioscribe.pipeline.cancellation import CancellationToken
from audioscribe.pipeline.store import SegmentStore
from audioscribe.stages.base import Advice, AdviceAction, PipelineStages
from audioscribe.utils.verification import (
    VerificationAction,
    clean_text,
    verify_transcription,
)

logger = logging.getLogger(__name__)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class SegmentStateMachine:
    """Drive one segment through its phases.

    `run()` is the slot-holding portion: it returns as soon as the raw text is
    accepted (or the segment terminates), and polishing plus hallucination
    judgment continue in a detached task tracked by this instance.
    """

    def __init__(
        self,
        store: SegmentStore,
        stages: PipelineStages,
        *,
        pipeline: PipelineConfig,
        verification: VerificationConfig | None = None,
    ) -> None:
        self.store = store
        self.stages = stages
        self.pipeline = pipeline
        self.verification = verification or VerificationConfig()
        self._prepared: dict[int, str] = {}
        self._continuations: set[asyncio.Task[None]] = set()

    @property
    def max_retries(self) -> int:
        return int(self.pipeline.max_retries)

    @property
    def pending_continuations(self) -> int:
        return len(self._continuations)

    def forget_prepared(self) -> None:
        self._prepared.clear()

    def retry_temperature(self, attempt: int) -> float:
        base = float(self.pipeline.base_retry_temperature)
        floor = float(self.pipeline.min_retry_temperature)
        return max(floor, round(base - 0.1 * int(attempt), 4))

    async def run(
        self,
        index: int,
        token: CancellationToken,
        *,
        start_phase: SegmentPhase = SegmentPhase.IDLE,
    ) -> None:
        started = time.perf_counter()
        try:
            await self._run(index, token, start_phase=start_phase, started=started)
        except SegmentCancelledError as exc:
            logger.info("process aborted (index=%s, reason=%s)", index, exc.reason.value)
        except Exception as exc:
            if token.cancelled:
                logger.info(
                    "segment abandoned after error (index=%s, reason=%s, error=%s)",
                    index,
                    token.reason.value if token.reason else None,
                    exc,
                )
                return
            self._fail(index, exc)

    async def wait_continuations(self, timeout: float | None = None) -> bool:
        """Wait for every detached polishing task; return False on timeout."""
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + max(0.0, float(timeout))
        while self._continuations:
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                return False
            await asyncio.wait(set(self._continuations), timeout=remaining)
        return True

    def cancel_continuations(self) -> None:
        for task in list(self._continuations):
            task.cancel()

    # ---- slot-holding portion -------------------------------------------------

    async def _run(
        self,
        index: int,
        token: CancellationToken,
        *,
        start_phase: SegmentPhase,
        started: float,
    ) -> None:
        segment = self.store.get(index)
        audio_path = self._prepared.get(index) if start_phase == SegmentPhase.PENDING_RETRY else None

        if audio_path is None:
            audio_path = await self._prepare(index, token, segment)
            if audio_path is None:
                return

        accepted_text = await self._transcribe_loop(index, token, audio_path)
        if accepted_text is None:
            return

        if is_sentinel_text(accepted_text):
            self._write(
                index,
                token,
                phase=SegmentPhase.SKIPPED,
                raw_text=accepted_text,
                reason="Sentinel text",
                log="Treated as silence. Skipping.",
            )
            return

        self._write(
            index,
            token,
            phase=SegmentPhase.POLISHING,
            raw_text=accepted_text,
            reason="Starting polishing",
        )
        task = asyncio.create_task(self._polish(index, token, accepted_text, started))
        self._continuations.add(task)
        task.add_done_callback(self._continuations.discard)

    async def _prepare(self, index: int, token: CancellationToken, segment: Segment) -> str | None:
        """Normalize audio and run silence detection; None means the segment ended SKIPPED."""
        prep_started = time.perf_counter()
        self._write(
            index,
            token,
            phase=SegmentPhase.PREPROCESSING,
            log="Optimizing audio...",
        )
        audio_path = await token.guard(self.stages.preprocessor.preprocess(segment.audio_path))
        self._prepared[index] = audio_path
        current = self.store.get(index)
        self._write(
            index,
            token,
            timings=replace(current.timings, preprocessing_ms=_elapsed_ms(prep_started)),
        )

        self._write(index, token, phase=SegmentPhase.PERCEPTION)
        silence = await token.guard(self.stages.silence_detector.detect(audio_path))
        if silence.is_silent:
            self._write(
                index,
                token,
                phase=SegmentPhase.SKIPPED,
                reason="Silence detected",
                log=f"Silence (RMS: {silence.score:.4f}). Skipping.",
            )
            return None
        return audio_path

    async def _transcribe_loop(
        self,
        index: int,
        token: CancellationToken,
        audio_path: str,
    ) -> str | None:
        """Run ACTION/VERIFICATION/CONSULTATION; return accepted text or None if terminated."""
        max_retries = self.max_retries
        attempt = min(self.store.get(index).retry_count, max_retries)
        temperature: float | None = None
        accepted = False
        text = ""

        while attempt <= max_retries and not accepted:
            token.raise_if_cancelled()
            if attempt > 0:
                self._write(
                    index,
                    token,
                    phase=SegmentPhase.REFINEMENT,
                    retry_count=attempt,
                    reason=f"Retry attempt {attempt}",
                )

            action_started = time.perf_counter()
            self._write(
                index,
                token,
                phase=SegmentPhase.ACTION,
                reason="Starting transcription",
            )
            result = await token.guard(
                self.stages.transcriber.transcribe(
                    audio_path,
                    segment_index=index,
                    total_segments=self.store.total,
                    is_retry=attempt > 0,
                    temperature=temperature,
                )
            )
            text = clean_text(result.text)
            engine_note = f"Engine: {result.engine_used}{' (fallback)' if result.fallback_used else ''}"
            current = self.store.get(index)
            self._write(
                index,
                token,
                engine_used=result.engine_used,
                fallback_used=bool(result.fallback_used),
                timings=replace(current.timings, transcription_ms=_elapsed_ms(action_started)),
                log=engine_note,
            )

            verification = verify_transcription(
                text,
                min_entropy=self.verification.min_entropy,
                min_entropy_length=self.verification.min_entropy_length,
                max_repeat_run=self.verification.max_repeat_run,
            )
            self._write(
                index,
                token,
                phase=SegmentPhase.VERIFICATION,
                raw_text=text,
                entropy=verification.entropy,
            )

            early = result.verdict
            if early is not None and early.flags(self.pipeline.early_hallucination_threshold):
                self._write(index, token, log=f"Transcription hallucination: {early.reason}")
                if attempt < max_retries:
                    temperature = self.retry_temperature(attempt)
                    self._write(
                        index,
                        token,
                        log=f"Retrying transcription (attempt {attempt + 1}/{max_retries})...",
                    )
                    attempt += 1
                    continue
                self._write(
                    index,
                    token,
                    phase=SegmentPhase.HALLUCINATION_DETECTED,
                    verdict=early,
                    needs_retry=True,
                    reason=f"Hallucination: {early.reason}",
                    log="Max retries reached. Marking as hallucination.",
                )
                return None

            if verification.action == VerificationAction.VALID:
                accepted = True
                self._write(index, token, log=f"Valid (Entropy: {verification.entropy:.2f})")
            elif verification.action == VerificationAction.DISCARD:
                accepted = True
                text = SILENCE_SENTINEL
                self._write(index, token, log="Discarding (Empty/Silence).")
            elif attempt < max_retries:
                self._write(
                    index,
                    token,
                    phase=SegmentPhase.CONSULTATION,
                    log=f"Suspicious: {verification.reason}. Consulting advisor...",
                )
                advice = await self._consult(index, token, text, verification.reason or "Unknown error")
                self._write(index, token, log=f"Advisor: {advice.action.value} -> {advice.reasoning}")
                if advice.action == AdviceAction.KEEP:
                    accepted = True
                elif advice.action == AdviceAction.SKIP:
                    accepted = True
                    text = SILENCE_SENTINEL
                else:
                    temperature = (
                        advice.suggested_temperature
                        if advice.suggested_temperature is not None
                        else float(self.pipeline.consult_fallback_temperature)
                    )
                    attempt += 1
            else:
                self._write(index, token, log="Max retries reached.")
                attempt += 1

        if not accepted:
            self._write(
                index,
                token,
                phase=SegmentPhase.SKIPPED,
                reason="Retries exhausted",
            )
            return None
        return text

    async def _consult(self, index: int, token: CancellationToken, text: str, reason: str) -> Advice:
        try:
            return await token.guard(self.stages.advisor.consult(text, reason))
        except SegmentCancelledError:
            raise
        except Exception as exc:
            logger.warning("advisor failed, defaulting to retry (index=%s, error=%s)", index, exc)
            return Advice(
                action=AdviceAction.RETRY,
                reasoning="Advisor unavailable, retrying",
                suggested_temperature=float(self.pipeline.consult_fallback_temperature),
            )

    # ---- detached continuation ------------------------------------------------

    async def _polish(
        self,
        index: int,
        token: CancellationToken,
        raw_text: str,
        started: float,
    ) -> None:
        polish_started = time.perf_counter()
        try:
            try:
                polished = await token.guard(self.stages.polisher.polish(raw_text))
            except SegmentCancelledError:
                raise
            except Exception as exc:
                logger.warning("polish failed, using raw text (index=%s, error=%s)", index, exc)
                self._write(
                    index,
                    token,
                    phase=SegmentPhase.COMMITTED,
                    polished_text=raw_text,
                    needs_retry=False,
                    reason="Polish failed, using raw text",
                    log="Polish failed, using raw text",
                )
                return

            polishing_ms = _elapsed_ms(polish_started)
            self._write(index, token, log="Detecting hallucinations...")
            verdict = await self._judge(index, token, raw_text, polished)
            current = self.store.get(index)
            timings = replace(current.timings, polishing_ms=polishing_ms, total_ms=_elapsed_ms(started))

            if verdict.flags(self.pipeline.judge_threshold):
                needs_retry = verdict.suggested_action == SuggestedAction.RETRY
                evidence = ", ".join(verdict.evidence) or "none"
                self._write(
                    index,
                    token,
                    phase=SegmentPhase.HALLUCINATION_DETECTED,
                    polished_text=polished,
                    verdict=verdict,
                    needs_retry=needs_retry,
                    timings=timings,
                    reason=f"Hallucination: {verdict.reason}",
                    log=f"Hallucination detected! {verdict.reason} (evidence: {evidence})",
                )
                if needs_retry:
                    self._write(index, token, log="Marked for retry after all segments complete")
                return

            self._write(
                index,
                token,
                phase=SegmentPhase.COMMITTED,
                polished_text=polished,
                verdict=verdict,
                needs_retry=False,
                timings=timings,
                reason="Polishing completed successfully",
                log=f"Polishing completed ({(timings.total_ms or 0) / 1000:.1f}s)",
            )
        except SegmentCancelledError as exc:
            logger.info("polishing abandoned (index=%s, reason=%s)", index, exc.reason.value)
        except asyncio.CancelledError:
            logger.info("polishing cancelled (index=%s)", index)
            raise
        except Exception as exc:
            if token.cancelled:
                return
            self._fail(index, exc)

    async def _judge(
        self,
        index: int,
        token: CancellationToken,
        raw_text: str,
        polished_text: str,
    ) -> HallucinationVerdict:
        try:
            return await token.guard(self.stages.judge.judge(raw_text, polished_text, index))
        except SegmentCancelledError:
            raise
        except Exception as exc:
            logger.warning("hallucination judge failed (index=%s, error=%s)", index, exc)
            return HallucinationVerdict.clean("Detection failed, assuming valid")

    # ---- helpers --------------------------------------------------------------

    def _write(self, index: int, token: CancellationToken, **changes: object) -> Segment:
        token.raise_if_cancelled()
        return self.store.update(index, **changes)  # type: ignore[arg-type]

    def _fail(self, index: int, exc: BaseException) -> None:
        phase = self.store.get(index).phase
        error_code = self._infer_error_code(phase, exc)
        error_message = self._infer_error_message(exc)
        logger.exception(
            "segment failed (index=%s, phase=%s, error_code=%s)",
            index,
            phase.value,
            error_code,
            exc_info=exc,
        )
        self.store.update(
            index,
            phase=SegmentPhase.ERROR,
            error_code=error_code,
            error_message=error_message,
            reason=error_message,
            log=f"Error: {error_message}",
        )

    @staticmethod
    def _infer_error_code(phase: SegmentPhase, exc: BaseException) -> str:
        if isinstance(exc, ProviderError) and exc.error_code is not None:
            return str(getattr(exc.error_code, "value", exc.error_code))
        if isinstance(exc, ConfigurationError):
            return ErrorCode.INVALID_AUDIO.value

        if phase == SegmentPhase.PREPROCESSING:
            return ErrorCode.PREPROCESS_FAILED.value
        if phase == SegmentPhase.PERCEPTION:
            return ErrorCode.SILENCE_DETECTION_FAILED.value
        if phase in {SegmentPhase.ACTION, SegmentPhase.REFINEMENT}:
            return ErrorCode.TRANSCRIBE_FAILED.value
        if phase in {SegmentPhase.CONSULTATION, SegmentPhase.POLISHING}:
            msg = str(exc).lower()
            if "timeout" in msg or "timed out" in msg:
                return ErrorCode.LLM_TIMEOUT.value
            return ErrorCode.LLM_FAILED.value
        return ErrorCode.UNKNOWN.value

    @staticmethod
    def _infer_error_message(exc: BaseException) -> str:
        if isinstance(exc, ProviderError):
            return str(exc.message or exc)
        msg = str(exc).strip()
        return msg or exc.__class__.__name__
