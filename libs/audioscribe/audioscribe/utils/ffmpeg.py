"""FFmpeg binary resolution.

A system `ffmpeg` (or an explicit path) wins; otherwise the binary bundled
with `imageio-ffmpeg` is used.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

import imageio_ffmpeg

logger = logging.getLogger(__name__)


def resolve_ffmpeg_bin(ffmpeg_bin: str = "ffmpeg") -> str:
    ffmpeg_bin = (ffmpeg_bin or "ffmpeg").strip()

    if Path(ffmpeg_bin).exists():
        return ffmpeg_bin

    found = shutil.which(ffmpeg_bin)
    if found:
        return found

    try:
        return str(imageio_ffmpeg.get_ffmpeg_exe())
    except RuntimeError as exc:
        logger.warning("bundled ffmpeg unavailable (%s); using %r", exc, ffmpeg_bin)
        return ffmpeg_bin
