from __future__ import annotations

import asyncio
import json
import time

import pytest

from audioscribe.config import Settings, StateSinkConfig
from audioscribe.exceptions import ConfigurationError
from audioscribe.models.segment import (
    HallucinationVerdict,
    Segment,
    SegmentPhase,
    SegmentTimings,
    SuggestedAction,
)
from audioscribe.models.serializers import deserialize_segments, serialize_segments
from audioscribe.pipeline.store import SegmentStore
from audioscribe.services.snapshot_writer import SnapshotWriter
from audioscribe.services.state_sink import (
    LocalFileStateSink,
    NullStateSink,
    SessionSnapshot,
    StateSink,
    get_state_sink,
)


def _segment() -> Segment:
    store = SegmentStore([Segment(index=1, audio_path="/tmp/seg_1.wav")], wall_clock=lambda: 100.0)
    store.update(1, phase=SegmentPhase.PREPROCESSING)
    return store.update(
        1,
        phase=SegmentPhase.HALLUCINATION_DETECTED,
        raw_text="请不吝点赞订阅转发",
        polished_text="请不吝点赞订阅转发。",
        retry_count=1,
        entropy=3.1,
        needs_retry=True,
        verdict=HallucinationVerdict(
            is_hallucination=True,
            confidence=0.9,
            reason="outro template",
            suggested_action=SuggestedAction.RETRY,
            evidence=("点赞订阅",),
        ),
        timings=SegmentTimings(preprocessing_ms=12, transcription_ms=340),
        engine_used="primary",
        reason="Hallucination: outro template",
    )


def test_serialized_segment_keeps_text_state_only() -> None:
    seg = _segment()
    data = serialize_segments([seg])

    assert "audio_path" not in data[0]
    assert "logs" not in data[0]
    restored = deserialize_segments(json.loads(json.dumps(data)))[0]
    assert restored.audio_path == ""
    assert restored.phase == seg.phase
    assert restored.verdict == seg.verdict
    assert restored.transitions == seg.transitions
    assert restored.timings == seg.timings
    assert restored.needs_retry is True


@pytest.mark.asyncio
async def test_local_sink_round_trips_and_clears(tmp_path) -> None:
    sink = LocalFileStateSink(tmp_path / "nested" / "state.json")
    assert await sink.load() is None

    await sink.save(SessionSnapshot(timestamp=time.time(), segments=(_segment(),), source="talk.m4a"))
    loaded = await sink.load()

    assert loaded is not None
    assert loaded.source == "talk.m4a"
    assert loaded.segments[0].raw_text == "请不吝点赞订阅转发"
    assert not (tmp_path / "nested" / "state.json.tmp").exists()

    await sink.clear()
    assert await sink.load() is None


@pytest.mark.asyncio
async def test_local_sink_ignores_expired_or_corrupt_snapshots(tmp_path) -> None:
    path = tmp_path / "state.json"
    sink = LocalFileStateSink(path, max_age_s=60)

    await sink.save(SessionSnapshot(timestamp=time.time() - 120, segments=(_segment(),)))
    assert await sink.load() is None

    path.write_text("{not json", encoding="utf-8")
    assert await sink.load() is None

    path.write_text(json.dumps({"timestamp": time.time(), "segments": [{"phase": "idle"}]}), encoding="utf-8")
    assert await sink.load() is None


def test_get_state_sink_selects_backend(settings: Settings) -> None:
    settings.state = StateSinkConfig(backend="none")
    assert isinstance(get_state_sink(settings), NullStateSink)

    settings.state = StateSinkConfig(backend="local", path="sessions/state.json")
    sink = get_state_sink(settings)
    assert isinstance(sink, LocalFileStateSink)
    assert sink.path == settings.state_path

    settings.state = StateSinkConfig(backend="s3")
    with pytest.raises(ConfigurationError):
        get_state_sink(settings)


class _RecordingSink(StateSink):
    def __init__(self, *, fail: bool = False) -> None:
        self.saved: list[SessionSnapshot] = []
        self.fail = fail

    async def save(self, snapshot: SessionSnapshot) -> None:
        await asyncio.sleep(0)
        if self.fail:
            raise OSError("disk full")
        self.saved.append(snapshot)

    async def load(self) -> SessionSnapshot | None:
        return self.saved[-1] if self.saved else None

    async def clear(self) -> None:
        self.saved.clear()


@pytest.mark.asyncio
async def test_snapshot_writer_coalesces_bursts() -> None:
    sink = _RecordingSink()
    store = SegmentStore([Segment(index=1)])
    writer = SnapshotWriter(sink, source="talk.m4a", wall_clock=lambda: 42.0)
    store.subscribe(writer)

    for i in range(10):
        store.append_log(1, f"log {i}")
    await writer.flush()

    assert 1 <= writer.saves < 10
    assert sink.saved[-1].segments[0].logs[-1] == "log 9"
    assert sink.saved[-1].timestamp == 42.0
    assert sink.saved[-1].source == "talk.m4a"


@pytest.mark.asyncio
async def test_snapshot_writer_survives_sink_failures() -> None:
    sink = _RecordingSink(fail=True)
    store = SegmentStore([Segment(index=1)])
    writer = SnapshotWriter(sink)
    store.subscribe(writer)

    store.update(1, phase=SegmentPhase.PREPROCESSING)
    await writer.flush()

    assert writer.failures == 1
    assert store.get(1).phase == SegmentPhase.PREPROCESSING
