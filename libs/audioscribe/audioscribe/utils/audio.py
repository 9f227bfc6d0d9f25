"""PCM16 WAV helpers used by the silence detector."""

from __future__ import annotations

import math
import sys
import wave
from array import array
from dataclasses import dataclass
from pathlib import Path

_PCM16_FULL_SCALE = 32768.0
_READ_FRAMES = 16000 * 10


@dataclass(frozen=True)
class WavInfo:
    sample_rate: int
    channels: int
    frames: int

    @property
    def duration_s(self) -> float:
        return self.frames / self.sample_rate if self.sample_rate else 0.0


def wav_info(path: str | Path) -> WavInfo:
    with wave.open(str(path), "rb") as wf:
        return WavInfo(sample_rate=wf.getframerate(), channels=wf.getnchannels(), frames=wf.getnframes())


def wav_rms(path: str | Path) -> float:
    """Root-mean-square level of a PCM16 WAV, normalized to [0, 1].

    Raises:
        ValueError: If the file is not 16-bit PCM.
    """
    total = 0.0
    count = 0
    with wave.open(str(path), "rb") as wf:
        if wf.getsampwidth() != 2:
            raise ValueError(f"expected 16-bit PCM, got sample width {wf.getsampwidth()}")
        while True:
            raw = wf.readframes(_READ_FRAMES)
            if not raw:
                break
            samples = array("h")
            samples.frombytes(raw[: len(raw) - (len(raw) % 2)])
            if sys.byteorder == "big":
                samples.byteswap()
            total += sum(s * s for s in samples)
            count += len(samples)
    if count == 0:
        return 0.0
    return math.sqrt(total / count) / _PCM16_FULL_SCALE
