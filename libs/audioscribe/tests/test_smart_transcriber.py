from __future__ import annotations

import pytest

from audioscribe.exceptions import ProviderError, TranscribeError
from audioscribe.models.segment import HallucinationVerdict, SuggestedAction
from audioscribe.providers.asr.base import ASRProvider, ASRResult
from audioscribe.stages.transcribe import SmartTranscriber

from conftest import FakeJudge


class _ASR(ASRProvider):
    def __init__(self, name: str, reply: str | Exception) -> None:
        self.name = name
        self.reply = reply
        self.temperatures: list[float | None] = []

    async def transcribe(
        self,
        audio_path: str,
        *,
        language: str | None = None,
        temperature: float | None = None,
        prompt: str | None = None,
    ) -> ASRResult:
        self.temperatures.append(temperature)
        if isinstance(self.reply, Exception):
            raise self.reply
        return ASRResult(text=self.reply)


def _verdict(confidence: float) -> HallucinationVerdict:
    return HallucinationVerdict(
        is_hallucination=True,
        confidence=confidence,
        reason="repeated characters",
        suggested_action=SuggestedAction.RETRY,
    )


async def _transcribe(transcriber: SmartTranscriber, **kwargs):  # noqa: ANN202
    return await transcriber.transcribe("seg.wav", segment_index=1, total_segments=3, **kwargs)


@pytest.mark.asyncio
async def test_primary_result_is_used_when_clean() -> None:
    primary = _ASR("funasr", "大家好")
    secondary = _ASR("whisper", "hello")
    transcriber = SmartTranscriber(primary, secondary, FakeJudge())

    result = await _transcribe(transcriber, temperature=0.2)

    assert result.text == "大家好"
    assert result.engine_used == "funasr"
    assert result.fallback_used is False
    assert result.verdict is not None and not result.verdict.is_hallucination
    assert primary.temperatures == [0.2]
    assert secondary.temperatures == []


@pytest.mark.asyncio
async def test_confident_hallucination_falls_back_to_secondary() -> None:
    primary = _ASR("funasr", "啊啊啊啊啊啊啊")
    secondary = _ASR("whisper", "我们开始开会吧")
    transcriber = SmartTranscriber(primary, secondary, FakeJudge({1: [_verdict(0.7), HallucinationVerdict.clean()]}))

    result = await _transcribe(transcriber)

    assert result.text == "我们开始开会吧"
    assert result.engine_used == "whisper"
    assert result.fallback_used is True
    assert result.verdict is not None and not result.verdict.is_hallucination


@pytest.mark.asyncio
async def test_low_confidence_hallucination_keeps_primary() -> None:
    primary = _ASR("funasr", "好好好")
    secondary = _ASR("whisper", "unused")
    transcriber = SmartTranscriber(primary, secondary, FakeJudge({1: [_verdict(0.69)]}))

    result = await _transcribe(transcriber)

    assert result.engine_used == "funasr"
    assert secondary.temperatures == []


@pytest.mark.asyncio
async def test_flagged_primary_is_returned_without_secondary() -> None:
    primary = _ASR("funasr", "啊啊啊啊啊啊啊")
    transcriber = SmartTranscriber(primary, None, FakeJudge({1: [_verdict(0.95)]}))

    result = await _transcribe(transcriber)

    assert result.engine_used == "funasr"
    assert result.verdict is not None and result.verdict.confidence == 0.95


@pytest.mark.asyncio
async def test_primary_failure_uses_secondary() -> None:
    primary = _ASR("funasr", ProviderError("funasr", "HTTP 503"))
    secondary = _ASR("whisper", "备用引擎的结果")
    transcriber = SmartTranscriber(primary, secondary, FakeJudge())

    result = await _transcribe(transcriber, is_retry=True)

    assert result.text == "备用引擎的结果"
    assert result.fallback_used is True


@pytest.mark.asyncio
async def test_all_engines_failing_raises_transcribe_error() -> None:
    primary = _ASR("funasr", ProviderError("funasr", "HTTP 503"))
    secondary = _ASR("whisper", ProviderError("whisper", "timeout"))

    with pytest.raises(TranscribeError):
        await _transcribe(SmartTranscriber(primary, secondary, FakeJudge()))
    with pytest.raises(TranscribeError):
        await _transcribe(SmartTranscriber(primary, None, FakeJudge()))


@pytest.mark.asyncio
async def test_secondary_failure_returns_flagged_primary() -> None:
    primary = _ASR("funasr", "啊啊啊啊啊啊啊")
    secondary = _ASR("whisper", ProviderError("whisper", "timeout"))
    transcriber = SmartTranscriber(primary, secondary, FakeJudge({1: [_verdict(0.9)]}))

    result = await _transcribe(transcriber)

    assert result.engine_used == "funasr"
    assert result.fallback_used is False


@pytest.mark.asyncio
async def test_judge_failure_is_treated_as_clean() -> None:
    primary = _ASR("funasr", "正常的一句话")
    transcriber = SmartTranscriber(primary, None, FakeJudge({1: [RuntimeError("judge down")]}))

    result = await _transcribe(transcriber)

    assert result.verdict is not None
    assert result.verdict.reason == "Detection failed, assuming valid"
