"""Provider factory and registry."""

from __future__ import annotations

from typing import Any
from collections.abc import Mapping

from audioscribe.exceptions import ConfigurationError
from audioscribe.providers.asr.base import ASRProvider
from audioscribe.providers.audio.base import AudioProvider
from audioscribe.providers.llm.base import LLMProvider


def get_asr_provider(config: Mapping[str, Any], *, name: str | None = None) -> ASRProvider:
    """Get ASR provider based on configuration."""
    provider_type = str(config.get("provider", "openai_asr")).strip().lower()

    match provider_type:
        case "openai_asr" | "openai" | "funasr" | "whisper":
            from audioscribe.providers.asr.openai_asr import OpenAIASRProvider

            base_url = str(config.get("base_url") or "").strip()
            model = str(config.get("model") or "").strip()
            if not base_url or not model:
                raise ConfigurationError(
                    f"ASR provider {provider_type!r} requires base_url/model "
                    f"(got base_url={bool(base_url)} model={model!r})"
                )
            return OpenAIASRProvider(
                base_url=base_url,
                model=model,
                api_key=str(config.get("api_key") or ""),
                name=name or provider_type,
                language=config.get("language"),
                timeout=float(config.get("timeout", 300.0)),
            )
        case _:
            raise ConfigurationError(f"Unknown ASR provider: {provider_type}")


def get_llm_provider(config: Mapping[str, Any]) -> LLMProvider:
    """Get LLM provider based on configuration."""
    provider_type = str(config.get("provider", "openai_compat")).strip().lower()

    match provider_type:
        case "openai" | "openai_compat" | "deepseek":
            from audioscribe.providers.llm.openai_compat import OpenAICompatProvider

            return OpenAICompatProvider(
                api_key=str(config.get("api_key") or ""),
                model=str(config.get("model") or "deepseek-chat"),
                base_url=config.get("base_url"),
                provider=provider_type,
                timeout=float(config.get("request_timeout_s", 120.0)),
            )
        case _:
            raise ConfigurationError(f"Unknown LLM provider: {provider_type}")


def get_audio_provider(config: Mapping[str, Any]) -> AudioProvider:
    provider_type = str(config.get("provider", "ffmpeg")).strip().lower()

    match provider_type:
        case "ffmpeg" | "default":
            from audioscribe.providers.audio.ffmpeg import FFmpegAudioProvider

            return FFmpegAudioProvider(
                ffmpeg_bin=str(config.get("ffmpeg_bin") or "ffmpeg"),
                sample_rate=int(config.get("sample_rate", 16000)),
                timeout_s=config.get("ffmpeg_timeout_s"),
            )
        case _:
            raise ConfigurationError(f"Unknown audio provider: {provider_type}")
