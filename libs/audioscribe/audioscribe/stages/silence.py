"""RMS-based silence detection."""

from __future__ import annotations

import asyncio
import logging
import wave

from audioscribe.error_codes import ErrorCode
from audioscribe.exceptions import ProviderError
from audioscribe.stages.base import SilenceResult
from audioscribe.utils.audio import wav_rms

logger = logging.getLogger(__name__)


class RMSSilenceDetector:
    def __init__(self, threshold: float = 0.01) -> None:
        self.threshold = float(threshold)

    async def detect(self, audio_path: str) -> SilenceResult:
        try:
            rms = await asyncio.to_thread(wav_rms, audio_path)
        except (OSError, EOFError, ValueError, wave.Error) as exc:
            raise ProviderError(
                "silence",
                f"cannot read {audio_path}: {exc}",
                error_code=ErrorCode.SILENCE_DETECTION_FAILED,
            ) from exc
        is_silent = rms < self.threshold
        logger.debug("silence check (path=%s, rms=%.5f, silent=%s)", audio_path, rms, is_silent)
        return SilenceResult(is_silent=is_silent, score=rms)
