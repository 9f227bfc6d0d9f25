"""Engine factories."""

from __future__ import annotations

import logging

from audioscribe.config import Settings
from audioscribe.pipeline.engine import TranscriptionEngine
from audioscribe.providers import get_asr_provider, get_audio_provider, get_llm_provider
from audioscribe.services.state_sink import StateSink
from audioscribe.stages import (
    FFmpegPreprocessor,
    LLMAdvisor,
    LLMHallucinationJudge,
    LLMPolisher,
    PipelineStages,
    RMSSilenceDetector,
    SmartTranscriber,
)

logger = logging.getLogger(__name__)


def create_stages(settings: Settings) -> PipelineStages:
    """Build the reference adapters from settings.

    The LLM stages fall back to their local behavior when no LLM api_key is set;
    the secondary ASR engine is optional.
    """
    llm_cfg = settings.llm
    llm = get_llm_provider(settings.llm_config()) if llm_cfg.enabled else None
    if llm is None:
        logger.warning("LLM disabled (no LLM_API_KEY); consult/polish/judge use local fallbacks")

    judge = LLMHallucinationJudge(llm, llm_cfg)
    primary = get_asr_provider(settings.asr_config_for("primary"), name="primary")
    secondary = (
        get_asr_provider(settings.asr_config_for("secondary"), name="secondary")
        if settings.asr_secondary.enabled
        else None
    )
    audio = get_audio_provider(settings.audio.model_dump())

    return PipelineStages(
        preprocessor=FFmpegPreprocessor(audio, settings.workdir),
        silence_detector=RMSSilenceDetector(settings.audio.silence_rms_threshold),
        transcriber=SmartTranscriber(
            primary,
            secondary,
            judge,
            fallback_threshold=settings.pipeline.judge_threshold,
        ),
        advisor=LLMAdvisor(
            llm,
            llm_cfg,
            fallback_temperature=settings.pipeline.consult_fallback_temperature,
        ),
        polisher=LLMPolisher(llm, llm_cfg),
        judge=judge,
    )


def create_transcription_engine(
    settings: Settings,
    *,
    state_sink: StateSink | None = None,
    source: str | None = None,
) -> TranscriptionEngine:
    return TranscriptionEngine(
        settings.pipeline,
        create_stages(settings),
        verification=settings.verification,
        state_sink=state_sink,
        source=source,
    )
