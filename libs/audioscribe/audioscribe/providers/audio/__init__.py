"""Audio providers."""

from audioscribe.providers.audio.base import AudioProvider

__all__ = ["AudioProvider"]
