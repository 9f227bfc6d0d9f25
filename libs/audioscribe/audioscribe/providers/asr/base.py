"""ASR Provider base class."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class ASRResult:
    """Text of one transcribed audio file."""

    text: str
    language: str | None = None
    duration_s: float | None = None


class ASRProvider(ABC):
    """Abstract base class for speech-to-text engines."""

    name: str = "asr"

    @abstractmethod
    async def transcribe(
        self,
        audio_path: str,
        *,
        language: str | None = None,
        temperature: float | None = None,
        prompt: str | None = None,
    ) -> ASRResult:
        """Transcribe an audio file.

        Args:
            audio_path: Path to the (already segmented) audio file.
            language: Optional language hint.
            temperature: Optional decoding temperature; lower is more literal.
            prompt: Optional context hint passed to engines that accept one.

        Returns:
            The transcribed text.
        """
        ...

    async def close(self) -> None:  # pragma: no cover
        return None
