"""Speech-to-text providers."""

from audioscribe.providers.asr.base import ASRProvider, ASRResult

__all__ = ["ASRProvider", "ASRResult"]
