from __future__ import annotations

import logging

import pytest

from audioscribe.config import ASRSecondaryConfig, LLMConfig, Settings
from audioscribe.exceptions import ConfigurationError
from audioscribe.pipeline import TranscriptionEngine, create_stages, create_transcription_engine
from audioscribe.stages import (
    FFmpegPreprocessor,
    LLMAdvisor,
    LLMHallucinationJudge,
    LLMPolisher,
    RMSSilenceDetector,
    SmartTranscriber,
)
from audioscribe.utils.logging_setup import setup_logging


def test_create_stages_without_llm_uses_local_fallbacks(settings: Settings) -> None:
    stages = create_stages(settings)

    assert isinstance(stages.preprocessor, FFmpegPreprocessor)
    assert stages.preprocessor.workdir == settings.workdir
    assert isinstance(stages.silence_detector, RMSSilenceDetector)
    assert isinstance(stages.transcriber, SmartTranscriber)
    assert stages.transcriber.secondary is None
    assert stages.transcriber.primary.name == "primary"
    assert isinstance(stages.advisor, LLMAdvisor) and not stages.advisor.enabled
    assert isinstance(stages.polisher, LLMPolisher) and not stages.polisher.enabled
    assert isinstance(stages.judge, LLMHallucinationJudge)
    assert stages.transcriber.judge is stages.judge


def test_create_stages_with_llm_and_secondary_engine(settings: Settings) -> None:
    settings.llm = LLMConfig(api_key="sk-test")
    settings.asr_secondary = ASRSecondaryConfig(base_url="http://whisper.local/v1", model="whisper-large-v3")

    stages = create_stages(settings)

    assert stages.advisor.enabled and stages.polisher.enabled and stages.judge.enabled
    assert stages.transcriber.secondary is not None
    assert stages.transcriber.secondary.name == "secondary"


def test_secondary_engine_requires_model() -> None:
    with pytest.raises(ConfigurationError):
        ASRSecondaryConfig(base_url="http://whisper.local/v1", model="")


def test_create_transcription_engine_applies_pipeline_limits(settings: Settings) -> None:
    settings.pipeline.concurrency = 3
    settings.pipeline.max_retries = 2

    engine = create_transcription_engine(settings, source="talk.m4a")

    assert isinstance(engine, TranscriptionEngine)
    assert engine.slots.max == 3
    assert engine.machine.max_retries == 2
    assert engine.source == "talk.m4a"


def test_setup_logging_configures_package_logger_once(settings: Settings, tmp_path) -> None:
    settings.logging.file = "audioscribe.log"
    settings.logging.console = False

    logger = setup_logging(settings, force=True)
    try:
        assert logger.name == "audioscribe"
        assert logger.propagate is False
        assert len(logger.handlers) == 1
        assert setup_logging(settings) is logger
        assert len(logger.handlers) == 1

        logging.getLogger("audioscribe.pipeline.engine").info("run started (segments=%s)", 3)
        logger.handlers[0].flush()
        log_file = tmp_path / "logs" / "audioscribe.log"
        assert "run started (segments=3)" in log_file.read_text(encoding="utf-8")
    finally:
        for handler in logger.handlers:
            handler.close()
        logger.handlers = []
        logger.propagate = True
        setattr(logger, "_audioscribe_configured", False)
