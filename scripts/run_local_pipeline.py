from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

from audioscribe.config import Settings
from audioscribe.pipeline import create_transcription_engine
from audioscribe.providers import get_audio_provider
from audioscribe.services.state_sink import get_state_sink
from audioscribe.export import export_transcripts
from audioscribe.utils.logging_setup import setup_logging

logger = logging.getLogger("audioscribe.scripts.run_local_pipeline")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Transcribe a local audio/video file segment by segment.")
    parser.add_argument("--audio", required=True, help="Path to local audio/video file")
    parser.add_argument("--out", default=None, help="Output directory (defaults to <data_dir>/output)")
    parser.add_argument("--title", default=None, help="Document title (defaults to the file stem)")
    parser.add_argument("--concurrency", type=int, default=None, help="Segments processed in parallel")
    parser.add_argument("--max-retries", type=int, default=None, help="Retry budget per segment")
    parser.add_argument("--chunk-seconds", type=float, default=None, help="Segment length in seconds")
    parser.add_argument(
        "--restore",
        action="store_true",
        help="Resume from the saved session snapshot instead of starting over",
    )
    return parser.parse_args()


async def _run() -> int:
    args = _parse_args()
    audio_path = Path(args.audio)
    if not audio_path.exists():
        raise SystemExit(f"Audio not found: {audio_path}")

    settings = Settings()
    if args.concurrency is not None:
        settings.pipeline.concurrency = max(1, int(args.concurrency))
    if args.max_retries is not None:
        settings.pipeline.max_retries = max(0, int(args.max_retries))
    if args.chunk_seconds is not None:
        settings.audio.chunk_seconds = float(args.chunk_seconds)
    setup_logging(settings)

    audio = get_audio_provider(settings.audio.model_dump())
    chunk_dir = settings.workdir / "chunks" / audio_path.stem
    chunks = await audio.split(str(audio_path), str(chunk_dir), chunk_seconds=settings.audio.chunk_seconds)

    source = str(audio_path.resolve())
    engine = create_transcription_engine(settings, state_sink=get_state_sink(settings), source=source)
    try:
        restored = await engine.restore() if args.restore else None
        if restored is not None and restored.total == len(chunks):
            logger.info("resuming session (finished=%s/%s)", restored.finished, restored.total)
            snapshot = await engine.resume(chunks)
        else:
            snapshot = await engine.start(chunks)
        await engine.settle(settings.pipeline.reconcile_grace_s)
        snapshot = engine.snapshot()
    finally:
        await engine.close()

    out_dir = Path(args.out) if args.out else Path(settings.data_dir) / "output"
    written = export_transcripts(snapshot.segments, out_dir, audio_path.stem, title=args.title)

    print(f"status={snapshot.status.value} segments={snapshot.total} progress={snapshot.progress}%")
    for name, path in written.items():
        print(f"{name}: {path}")
    return 0


def main() -> None:
    raise SystemExit(asyncio.run(_run()))


if __name__ == "__main__":
    main()
