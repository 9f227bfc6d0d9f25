"""Stage adapters consumed by the segment state machine."""

from audioscribe.stages.base import (
    Advice,
    AdviceAction,
    PipelineStages,
    SilenceResult,
    TranscriptionResult,
)
from audioscribe.stages.consult import LLMAdvisor
from audioscribe.stages.hallucination import LLMHallucinationJudge
from audioscribe.stages.polish import LLMPolisher
from audioscribe.stages.preprocess import FFmpegPreprocessor
from audioscribe.stages.silence import RMSSilenceDetector
from audioscribe.stages.transcribe import SmartTranscriber

__all__ = [
    "Advice",
    "AdviceAction",
    "FFmpegPreprocessor",
    "LLMAdvisor",
    "LLMHallucinationJudge",
    "LLMPolisher",
    "PipelineStages",
    "RMSSilenceDetector",
    "SilenceResult",
    "SmartTranscriber",
    "TranscriptionResult",
]
