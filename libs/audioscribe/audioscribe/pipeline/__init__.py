"""Segment orchestration engine.

Imports are lazy so that `audioscribe.stages` and `audioscribe.export` can use
pipeline submodules without pulling in the provider factories.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from audioscribe.pipeline.engine import TranscriptionEngine
    from audioscribe.pipeline.factory import create_stages, create_transcription_engine

__all__ = ["TranscriptionEngine", "create_stages", "create_transcription_engine"]


def __getattr__(name: str) -> Any:
    if name == "TranscriptionEngine":
        from audioscribe.pipeline.engine import TranscriptionEngine

        return TranscriptionEngine
    if name == "create_stages":
        from audioscribe.pipeline.factory import create_stages

        return create_stages
    if name == "create_transcription_engine":
        from audioscribe.pipeline.factory import create_transcription_engine

        return create_transcription_engine
    raise AttributeError(name)
