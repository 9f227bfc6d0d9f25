"""OpenAI-compatible `/audio/transcriptions` provider (FunASR, vLLM, Whisper servers)."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt

from audioscribe.error_codes import ErrorCode
from audioscribe.exceptions import ProviderError
from audioscribe.providers.asr.base import ASRProvider, ASRResult
from audioscribe.providers.llm._retry import (
    RetryableProviderError,
    format_http_error,
    log_retry,
    wait_retry,
)

logger = logging.getLogger(__name__)


class OpenAIASRProvider(ASRProvider):
    """Multipart upload of a WAV file to an OpenAI-style transcription endpoint."""

    def __init__(
        self,
        base_url: str,
        model: str,
        api_key: str = "",
        *,
        name: str = "openai_asr",
        language: str | None = None,
        timeout: float = 300.0,
    ) -> None:
        """Initialize the provider.

        Args:
            base_url: API base URL (e.g., http://localhost:8000/v1)
            model: Served model name
            api_key: Bearer token; omitted from headers when empty
            name: Engine label reported in results and logs
            language: Default language hint
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.api_key = api_key
        self.name = name
        self.provider = name
        self.language = language
        self.timeout = float(timeout)
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))
        return self._client

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            return {}
        return {"Authorization": f"Bearer {self.api_key}"}

    @retry(
        retry=retry_if_exception_type(RetryableProviderError),
        stop=stop_after_attempt(3),
        wait=wait_retry,
        before_sleep=log_retry(logger, "asr"),
        reraise=True,
    )
    async def transcribe(
        self,
        audio_path: str,
        *,
        language: str | None = None,
        temperature: float | None = None,
        prompt: str | None = None,
    ) -> ASRResult:
        path = Path(audio_path)
        if not path.is_file():
            raise ProviderError(self.name, f"audio file not found: {audio_path}", error_code=ErrorCode.INVALID_AUDIO)

        data: dict[str, Any] = {"model": self.model, "response_format": "json"}
        lang = language or self.language
        if lang:
            data["language"] = lang
        if temperature is not None:
            data["temperature"] = str(float(temperature))
        if prompt:
            data["prompt"] = prompt

        client = await self._get_client()
        started = time.perf_counter()
        try:
            with path.open("rb") as f:
                response = await client.post(
                    f"{self.base_url}/audio/transcriptions",
                    headers=self._headers(),
                    files={"file": (path.name, f, "audio/wav")},
                    data=data,
                )
        except httpx.TimeoutException as exc:
            raise RetryableProviderError(self.name, str(exc), error_code=ErrorCode.TRANSCRIBE_FAILED) from exc
        except httpx.TransportError as exc:
            raise RetryableProviderError(self.name, str(exc), error_code=ErrorCode.TRANSCRIBE_FAILED) from exc

        if response.status_code >= 400:
            message = format_http_error(response.status_code, response.reason_phrase, response.content)
            if response.status_code == 429 or response.status_code >= 500:
                raise RetryableProviderError(
                    self.name,
                    message,
                    rate_limited=response.status_code == 429,
                    error_code=ErrorCode.TRANSCRIBE_FAILED,
                )
            raise ProviderError(self.name, message, error_code=ErrorCode.TRANSCRIBE_FAILED)

        try:
            result = response.json()
        except ValueError:
            result = {"text": response.text}
        if not isinstance(result, dict):
            raise ProviderError(self.name, "unexpected response payload", error_code=ErrorCode.TRANSCRIBE_FAILED)

        text = str(result.get("text") or "").strip()
        duration = result.get("duration")
        logger.info(
            "asr call (provider=%s, model=%s, latency_ms=%s, chars=%s)",
            self.name,
            self.model,
            int((time.perf_counter() - started) * 1000),
            len(text),
        )
        return ASRResult(
            text=text,
            language=result.get("language") or lang,
            duration_s=float(duration) if isinstance(duration, (int, float)) else None,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
