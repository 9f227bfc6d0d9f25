"""Canonical error codes surfaced on failed segments."""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    UNKNOWN = "UNKNOWN"
    INVALID_AUDIO = "INVALID_AUDIO"

    PREPROCESS_FAILED = "PREPROCESS_FAILED"
    SILENCE_DETECTION_FAILED = "SILENCE_DETECTION_FAILED"
    TRANSCRIBE_FAILED = "TRANSCRIBE_FAILED"
    LLM_FAILED = "LLM_FAILED"
    LLM_TIMEOUT = "LLM_TIMEOUT"
    STALL_RETRIES_EXHAUSTED = "STALL_RETRIES_EXHAUSTED"

    PROVIDER_FAILED = "PROVIDER_FAILED"
