"""FFmpeg-based audio normalization and segmentation."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from audioscribe.exceptions import PreprocessError
from audioscribe.providers.audio.base import AudioProvider
from audioscribe.utils.ffmpeg import resolve_ffmpeg_bin
from audioscribe.utils.subprocess import run_subprocess

logger = logging.getLogger(__name__)


class FFmpegAudioProvider(AudioProvider):
    def __init__(
        self,
        ffmpeg_bin: str = "ffmpeg",
        *,
        sample_rate: int = 16000,
        timeout_s: float | None = 600.0,
    ) -> None:
        self.ffmpeg_bin = resolve_ffmpeg_bin(ffmpeg_bin)
        self.sample_rate = int(sample_rate)
        self.timeout_s = timeout_s

    async def _run(self, args: list[str]) -> None:
        try:
            result = await run_subprocess(args, timeout_s=self.timeout_s)
        except FileNotFoundError as exc:
            raise PreprocessError(
                "ffmpeg",
                f"ffmpeg binary not found: {self.ffmpeg_bin}. "
                "Install ffmpeg and ensure it is in PATH (or set AUDIO_FFMPEG_BIN).",
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise PreprocessError("ffmpeg", f"ffmpeg timed out after {self.timeout_s}s") from exc
        if not result.ok:
            raise PreprocessError(
                "ffmpeg",
                f"ffmpeg failed (code={result.returncode}).\n"
                f"cmd: {' '.join(args)}\n"
                f"stderr: {result.stderr_tail()}",
            )

    def _pcm_args(self) -> list[str]:
        return ["-vn", "-ar", str(self.sample_rate), "-ac", "1", "-c:a", "pcm_s16le"]

    async def normalize(self, input_path: str, output_path: str) -> str:
        """Resample to mono PCM16 WAV with a speech band-pass filter."""
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        await self._run(
            [
                self.ffmpeg_bin,
                "-y",
                "-i",
                str(input_path),
                "-af",
                "highpass=f=80,lowpass=f=7600",
                *self._pcm_args(),
                "-f",
                "wav",
                str(output_path),
            ]
        )
        return str(output_path)

    async def split(self, input_path: str, output_dir: str, *, chunk_seconds: float) -> list[str]:
        if chunk_seconds <= 0:
            raise ValueError("chunk_seconds must be positive")
        out_dir = Path(output_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        for stale in out_dir.glob("segment_*.wav"):
            stale.unlink()

        await self._run(
            [
                self.ffmpeg_bin,
                "-y",
                "-i",
                str(input_path),
                *self._pcm_args(),
                "-f",
                "segment",
                "-segment_time",
                f"{float(chunk_seconds):g}",
                "-reset_timestamps",
                "1",
                str(out_dir / "segment_%04d.wav"),
            ]
        )
        paths = sorted(str(p) for p in out_dir.glob("segment_*.wav"))
        if not paths:
            raise PreprocessError("ffmpeg", f"no segments produced from {input_path}")
        logger.info("audio split (input=%s, segments=%s, chunk_s=%s)", input_path, len(paths), chunk_seconds)
        return paths
