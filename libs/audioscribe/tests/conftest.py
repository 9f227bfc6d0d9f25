from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field

import pytest

from audioscribe.config import PipelineConfig, Settings
from audioscribe.models.segment import HallucinationVerdict, SegmentPhase
from audioscribe.pipeline.store import SegmentStore
from audioscribe.stages.base import Advice, PipelineStages, SilenceResult, TranscriptionResult

GOOD_TEXT = "今天我们主要讨论一下第三季度的项目进度，以及下个月的招聘和预算安排。"
LOOP_TEXT = "哈哈哈哈哈哈哈哈哈哈哈哈"
HANG = object()


@pytest.fixture()
def settings(tmp_path, monkeypatch) -> Settings:
    monkeypatch.delenv("LLM_API_KEY", raising=False)
    return Settings(
        data_dir=str(tmp_path / "data"),
        log_dir=str(tmp_path / "logs"),
    )


@pytest.fixture()
def pipeline_config() -> PipelineConfig:
    return PipelineConfig(
        max_retries=3,
        concurrency=2,
        watchdog_interval_s=5.0,
        watchdog_timeout_s=60.0,
        reconcile_grace_s=5.0,
    )


class ManualClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = float(start)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += float(seconds)


async def _hang() -> None:
    await asyncio.Event().wait()


class FakePreprocessor:
    def __init__(self, *, fail: Iterable[str] = ()) -> None:
        self.fail = set(fail)
        self.calls: list[str] = []

    async def preprocess(self, audio_path: str) -> str:
        self.calls.append(audio_path)
        await asyncio.sleep(0)
        if audio_path in self.fail:
            raise RuntimeError(f"cannot decode {audio_path}")
        return f"{audio_path}.norm.wav"


class FakeSilenceDetector:
    def __init__(self, *, silent: Iterable[str] = ()) -> None:
        self.silent = {f"{p}.norm.wav" for p in silent}

    async def detect(self, audio_path: str) -> SilenceResult:
        if audio_path in self.silent:
            return SilenceResult(is_silent=True, score=0.001)
        return SilenceResult(is_silent=False, score=0.2)


@dataclass
class TranscribeCall:
    audio_path: str
    segment_index: int
    is_retry: bool
    temperature: float | None


@dataclass
class ScriptedTranscriber:
    """Replies are consumed per segment index; the last reply repeats.

    A reply may be a string, a `TranscriptionResult`, an exception, or the
    `HANG` marker (never returns).
    """

    script: dict[int, list[object]] = field(default_factory=dict)
    default: object = GOOD_TEXT
    delay_s: float = 0.0
    calls: list[TranscribeCall] = field(default_factory=list)
    active: int = 0
    peak: int = 0

    async def transcribe(
        self,
        audio_path: str,
        *,
        segment_index: int,
        total_segments: int,
        is_retry: bool = False,
        temperature: float | None = None,
    ) -> TranscriptionResult:
        self.calls.append(TranscribeCall(audio_path, segment_index, is_retry, temperature))
        replies = self.script.get(segment_index) or [self.default]
        reply = replies.pop(0) if len(replies) > 1 else replies[0]

        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            if reply is HANG:
                await _hang()
            if self.delay_s:
                await asyncio.sleep(self.delay_s)
            else:
                await asyncio.sleep(0)
        finally:
            self.active -= 1

        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, TranscriptionResult):
            return reply
        return TranscriptionResult(text=str(reply), engine_used="fake-primary")

    def temperatures(self, index: int) -> list[float | None]:
        return [c.temperature for c in self.calls if c.segment_index == index]


class FakeAdvisor:
    def __init__(self, advice: Advice | BaseException | None = None) -> None:
        self.advice = advice
        self.calls: list[tuple[str, str]] = []

    async def consult(self, text: str, reason: str) -> Advice:
        self.calls.append((text, reason))
        if isinstance(self.advice, BaseException):
            raise self.advice
        if self.advice is None:
            raise RuntimeError("no advice configured")
        return self.advice


class FakePolisher:
    def __init__(self, *, fail: bool = False, hang: bool = False) -> None:
        self.fail = fail
        self.hang = hang
        self.calls: list[str] = []

    async def polish(self, text: str) -> str:
        self.calls.append(text)
        if self.hang:
            await _hang()
        await asyncio.sleep(0)
        if self.fail:
            raise RuntimeError("polish backend down")
        return f"{text}（已整理）"


class FakeJudge:
    """Verdicts are consumed per segment index; the default is a clean verdict."""

    def __init__(self, script: dict[int, list[HallucinationVerdict | BaseException]] | None = None) -> None:
        self.script = script or {}
        self.calls: list[int] = []

    async def judge(self, raw_text: str, polished_text: str, segment_index: int) -> HallucinationVerdict:
        self.calls.append(segment_index)
        replies = self.script.get(segment_index)
        if not replies:
            return HallucinationVerdict.clean()
        reply = replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


@dataclass
class FakeStages:
    preprocessor: FakePreprocessor = field(default_factory=FakePreprocessor)
    silence_detector: FakeSilenceDetector = field(default_factory=FakeSilenceDetector)
    transcriber: ScriptedTranscriber = field(default_factory=ScriptedTranscriber)
    advisor: FakeAdvisor = field(default_factory=FakeAdvisor)
    polisher: FakePolisher = field(default_factory=FakePolisher)
    judge: FakeJudge = field(default_factory=FakeJudge)

    def build(self) -> PipelineStages:
        return PipelineStages(
            preprocessor=self.preprocessor,
            silence_detector=self.silence_detector,
            transcriber=self.transcriber,
            advisor=self.advisor,
            polisher=self.polisher,
            judge=self.judge,
        )


@pytest.fixture()
def fakes() -> FakeStages:
    return FakeStages()


async def wait_for_phase(
    store: SegmentStore,
    index: int,
    phase: SegmentPhase,
    *,
    timeout: float = 2.0,
) -> None:
    async def _poll() -> None:
        while store.get(index).phase != phase:
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_poll(), timeout=timeout)


def phases(store: SegmentStore, index: int) -> list[SegmentPhase]:
    segment = store.get(index)
    if not segment.transitions:
        return [segment.phase]
    return [segment.transitions[0].from_phase] + [t.to_phase for t in segment.transitions]
