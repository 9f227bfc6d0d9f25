from __future__ import annotations

import json

import httpx
import pytest
from tenacity import wait_none

from audioscribe.config import Settings
from audioscribe.exceptions import ConfigurationError, ProviderError
from audioscribe.providers import get_asr_provider, get_audio_provider, get_llm_provider
from audioscribe.providers.asr.openai_asr import OpenAIASRProvider
from audioscribe.providers.audio.ffmpeg import FFmpegAudioProvider
from audioscribe.providers.llm._retry import RetryableProviderError
from audioscribe.providers.llm.base import Message
from audioscribe.providers.llm.openai_compat import OpenAICompatProvider


def _sse(*chunks: str) -> bytes:
    lines = []
    for chunk in chunks:
        event = {"choices": [{"delta": {"content": chunk}}]}
        lines.append(f"data: {json.dumps(event, ensure_ascii=False)}\n\n")
    lines.append(
        "data: "
        + json.dumps({"choices": [], "usage": {"prompt_tokens": 12, "completion_tokens": 3, "total_tokens": 15}})
        + "\n\n"
    )
    lines.append("data: [DONE]\n\n")
    return "".join(lines).encode("utf-8")


@pytest.mark.asyncio
async def test_llm_provider_streams_chat_completions() -> None:
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=_sse("你", "好"), headers={"content-type": "text/event-stream"})

    llm = OpenAICompatProvider(api_key="sk-test", model="deepseek-chat", base_url="https://llm.test/v1/")
    llm._client = httpx.AsyncClient(transport=httpx.MockTransport(_handler))

    result = await llm.complete_with_usage([Message(role="user", content="hi")], temperature=0.1)
    await llm.close()

    assert result.text == "你好"
    assert result.usage is not None and result.usage.total_tokens == 15
    assert str(seen[0].url) == "https://llm.test/v1/chat/completions"
    assert seen[0].headers["Authorization"] == "Bearer sk-test"
    body = json.loads(seen[0].content)
    assert body["stream"] is True
    assert body["temperature"] == 0.1


@pytest.mark.asyncio
async def test_llm_provider_client_errors_are_not_retried() -> None:
    calls = 0

    def _handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(400, json={"error": {"message": "bad model"}})

    llm = OpenAICompatProvider(api_key="sk-test", base_url="https://llm.test/v1")
    llm._client = httpx.AsyncClient(transport=httpx.MockTransport(_handler))

    with pytest.raises(ProviderError) as excinfo:
        await llm.complete([Message(role="user", content="hi")])
    assert not isinstance(excinfo.value, RetryableProviderError)
    assert "HTTP 400" in str(excinfo.value)
    assert calls == 1


@pytest.mark.asyncio
async def test_asr_provider_uploads_audio(tmp_path) -> None:
    audio = tmp_path / "segment_0001.wav"
    audio.write_bytes(b"RIFF0000WAVE")
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"text": " 大家好 ", "language": "zh", "duration": 3.5})

    asr = OpenAIASRProvider("http://asr.test/v1", "paraformer-v2", name="primary")
    asr._client = httpx.AsyncClient(transport=httpx.MockTransport(_handler))

    result = await asr.transcribe(str(audio), temperature=0.3)
    await asr.close()

    assert result.text == "大家好"
    assert result.language == "zh"
    assert result.duration_s == 3.5
    assert str(seen[0].url) == "http://asr.test/v1/audio/transcriptions"
    assert "Authorization" not in seen[0].headers
    body = seen[0].content
    assert b"paraformer-v2" in body
    assert b"segment_0001.wav" in body


@pytest.mark.asyncio
async def test_asr_provider_retries_server_errors(tmp_path) -> None:
    audio = tmp_path / "a.wav"
    audio.write_bytes(b"RIFF")
    statuses = [503, 200]

    def _handler(request: httpx.Request) -> httpx.Response:
        status = statuses.pop(0)
        if status != 200:
            return httpx.Response(status, text="overloaded")
        return httpx.Response(200, json={"text": "ok"})

    asr = OpenAIASRProvider("http://asr.test/v1", "m")
    asr._client = httpx.AsyncClient(transport=httpx.MockTransport(_handler))

    transcribe = OpenAIASRProvider.transcribe.retry_with(wait=wait_none())
    result = await transcribe(asr, str(audio))

    assert result.text == "ok"
    assert statuses == []


@pytest.mark.asyncio
async def test_asr_provider_rejects_missing_file(tmp_path) -> None:
    asr = OpenAIASRProvider("http://asr.test/v1", "m")
    with pytest.raises(ProviderError) as excinfo:
        await asr.transcribe(str(tmp_path / "missing.wav"))
    assert excinfo.value.error_code == "INVALID_AUDIO"


def test_registry_builds_configured_providers(settings: Settings) -> None:
    asr = get_asr_provider(settings.asr_config_for("primary"), name="primary")
    assert isinstance(asr, OpenAIASRProvider)
    assert asr.name == "primary"

    llm = get_llm_provider({"provider": "deepseek", "api_key": "k", "base_url": "https://api.deepseek.com/v1"})
    assert isinstance(llm, OpenAICompatProvider)
    assert llm.base_url == "https://api.deepseek.com/v1"

    audio = get_audio_provider(settings.audio.model_dump())
    assert isinstance(audio, FFmpegAudioProvider)
    assert audio.sample_rate == 16000


def test_registry_rejects_unknown_or_incomplete_config(settings: Settings) -> None:
    with pytest.raises(ConfigurationError):
        get_asr_provider({"provider": "nope"})
    with pytest.raises(ConfigurationError):
        get_asr_provider({"provider": "openai_asr", "base_url": "", "model": "m"})
    with pytest.raises(ConfigurationError):
        get_llm_provider({"provider": "nope"})
    with pytest.raises(ConfigurationError):
        get_audio_provider({"provider": "sox"})
    with pytest.raises(ConfigurationError):
        settings.asr_config_for("tertiary")
