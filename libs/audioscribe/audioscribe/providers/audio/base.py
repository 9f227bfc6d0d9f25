"""Audio provider abstractions."""

from __future__ import annotations

from abc import ABC, abstractmethod


class AudioProvider(ABC):
    @abstractmethod
    async def normalize(self, input_path: str, output_path: str) -> str:
        """Convert to mono PCM16 WAV at the provider's sample rate; return the output path."""
        raise NotImplementedError

    @abstractmethod
    async def split(self, input_path: str, output_dir: str, *, chunk_seconds: float) -> list[str]:
        """Cut the input into consecutive WAV chunks; return their paths in audio order."""
        raise NotImplementedError

    async def close(self) -> None:  # pragma: no cover
        return None
