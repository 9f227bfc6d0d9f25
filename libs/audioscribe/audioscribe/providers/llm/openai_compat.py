"""Streaming chat completions against OpenAI-style endpoints (DeepSeek by default)."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt

from audioscribe.error_codes import ErrorCode
from audioscribe.exceptions import ProviderError
from audioscribe.providers.llm._retry import (
    RetryableProviderError,
    format_http_error,
    log_retry,
    wait_retry,
)
from audioscribe.providers.llm.base import LLMCompletionResult, LLMProvider, LLMUsage, Message

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.deepseek.com/v1"
STREAM_DONE = "[DONE]"


@dataclass
class _StreamAccumulator:
    """Collects `data:` frames of a server-sent event stream into one reply."""

    provider: str
    chunks: list[str] = field(default_factory=list)
    usage: LLMUsage | None = None
    finished: bool = False
    _pending: list[str] = field(default_factory=list)

    def feed(self, line: str) -> None:
        if self.finished or line.startswith(":"):
            return
        if not line:
            self._dispatch()
        elif line.startswith("data:"):
            self._pending.append(line[5:].lstrip())

    def close(self) -> None:
        self._dispatch()

    @property
    def text(self) -> str:
        return "".join(self.chunks)

    def _dispatch(self) -> None:
        if not self._pending or self.finished:
            self._pending.clear()
            return
        data = "\n".join(self._pending)
        self._pending.clear()
        if data.strip() == STREAM_DONE:
            self.finished = True
            return
        try:
            event = json.loads(data)
        except json.JSONDecodeError:
            logger.debug("llm stream skipped frame (data=%r)", data[:200])
            return
        if not isinstance(event, dict):
            return
        error = event.get("error")
        if isinstance(error, dict):
            raise ProviderError(
                self.provider,
                str(error.get("message") or error),
                error_code=ErrorCode.LLM_FAILED,
            )
        self.usage = LLMUsage.from_payload(event.get("usage")) or self.usage
        for choice in event.get("choices") or []:
            delta = choice.get("delta") if isinstance(choice, dict) else None
            content = delta.get("content") if isinstance(delta, dict) else None
            if isinstance(content, str) and content:
                self.chunks.append(content)


class OpenAICompatProvider(LLMProvider):
    def __init__(
        self,
        api_key: str,
        model: str = "deepseek-chat",
        base_url: str | None = None,
        provider: str = "openai_compat",
        timeout: float = 120.0,
    ) -> None:
        self.provider = provider
        self.base_url = (str(base_url or "").strip() or DEFAULT_BASE_URL).rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout = float(timeout)
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def _payload(self, messages: list[Message], temperature: float, max_tokens: int | None) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": temperature,
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        return payload

    def _status_error(self, status: int, reason: str, body: bytes) -> ProviderError:
        message = format_http_error(status, reason, body)
        if status == 429 or status >= 500:
            return RetryableProviderError(
                self.provider,
                message,
                rate_limited=status == 429,
                error_code=ErrorCode.LLM_FAILED,
            )
        return ProviderError(self.provider, message, error_code=ErrorCode.LLM_FAILED)

    @retry(
        retry=retry_if_exception_type(RetryableProviderError),
        stop=stop_after_attempt(3),
        wait=wait_retry,
        before_sleep=log_retry(logger, "llm"),
        reraise=True,
    )
    async def complete_with_usage(
        self,
        messages: list[Message],
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> LLMCompletionResult:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        started = time.perf_counter()
        stream = _StreamAccumulator(self.provider)
        try:
            async with self.client.stream(
                "POST",
                f"{self.base_url}/chat/completions",
                headers=headers,
                json=self._payload(messages, temperature, max_tokens),
            ) as response:
                if response.status_code >= 400:
                    raise self._status_error(response.status_code, response.reason_phrase, await response.aread())
                async for line in response.aiter_lines():
                    stream.feed(line)
                    if stream.finished:
                        break
                stream.close()
        except httpx.TimeoutException as exc:
            logger.warning("llm timeout (provider=%s, model=%s, error=%s)", self.provider, self.model, exc)
            raise RetryableProviderError(self.provider, str(exc), error_code=ErrorCode.LLM_TIMEOUT) from exc
        except httpx.TransportError as exc:
            logger.warning("llm transport error (provider=%s, model=%s, error=%s)", self.provider, self.model, exc)
            raise RetryableProviderError(self.provider, str(exc), error_code=ErrorCode.LLM_FAILED) from exc

        latency_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "llm call (provider=%s, model=%s, latency_ms=%s, chars=%s, total_tokens=%s)",
            self.provider,
            self.model,
            latency_ms,
            len(stream.text),
            stream.usage.total_tokens if stream.usage else None,
        )
        return LLMCompletionResult(text=stream.text, usage=stream.usage, latency_ms=latency_ms)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
