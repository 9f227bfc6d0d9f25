"""Utility helpers."""

from audioscribe.utils.llm_json import LLMJSONHelper, parse_llm_json
from audioscribe.utils.verification import (
    VerificationAction,
    VerificationResult,
    clean_text,
    local_hallucination_check,
    verify_transcription,
)

__all__ = [
    "LLMJSONHelper",
    "VerificationAction",
    "VerificationResult",
    "clean_text",
    "local_hallucination_check",
    "parse_llm_json",
    "verify_transcription",
]
