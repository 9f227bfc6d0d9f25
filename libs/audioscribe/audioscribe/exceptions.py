"""AudioScribe exception hierarchy."""

from __future__ import annotations

from enum import Enum

from audioscribe.error_codes import ErrorCode


class AudioScribeError(Exception):
    """Base error for AudioScribe."""


class ConfigurationError(AudioScribeError):
    """Raised when configuration or inputs are invalid."""


class ProviderError(AudioScribeError):
    """Raised when an external provider call fails."""

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        error_code: ErrorCode | str | None = None,
    ) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message
        self.error_code = error_code


class PreprocessError(ProviderError):
    """Raised when audio normalization fails."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(provider, message, error_code=ErrorCode.PREPROCESS_FAILED)


class TranscribeError(ProviderError):
    """Raised when no speech-to-text engine produced a result."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(provider, message, error_code=ErrorCode.TRANSCRIBE_FAILED)


class CancelReason(str, Enum):
    ABORTED = "aborted"
    WATCHDOG = "watchdog"
    SUPERSEDED = "superseded"


class SegmentCancelledError(AudioScribeError):
    """Raised inside a segment run when its cancellation token fires.

    This is a non-fatal condition: the run is abandoned without marking the
    segment as failed.
    """

    def __init__(self, segment_index: int | None, reason: CancelReason) -> None:
        super().__init__(f"segment {segment_index} cancelled ({reason.value})")
        self.segment_index = segment_index
        self.reason = reason

