"""Audio normalization stage adapter."""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

from audioscribe.exceptions import PreprocessError, ProviderError
from audioscribe.providers.audio.base import AudioProvider

logger = logging.getLogger(__name__)


class FFmpegPreprocessor:
    """Normalize each segment to a 16 kHz mono WAV under `workdir`."""

    def __init__(self, audio: AudioProvider, workdir: str | Path) -> None:
        self.audio = audio
        self.workdir = Path(workdir)

    def _output_path(self, audio_path: str) -> Path:
        src = Path(audio_path)
        digest = hashlib.sha1(str(src.resolve()).encode("utf-8")).hexdigest()[:10]
        return self.workdir / "normalized" / f"{src.stem}_{digest}.wav"

    async def preprocess(self, audio_path: str) -> str:
        if not Path(audio_path).is_file():
            raise PreprocessError("preprocess", f"audio file not found: {audio_path}")
        output = self._output_path(audio_path)
        try:
            return await self.audio.normalize(audio_path, str(output))
        except ProviderError:
            raise
        except Exception as exc:
            raise PreprocessError("preprocess", str(exc)) from exc
