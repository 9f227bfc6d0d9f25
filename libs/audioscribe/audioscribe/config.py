"""Configuration management using pydantic-settings."""

from pathlib import Path
from typing import Any
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from audioscribe.exceptions import ConfigurationError

_ENV_FILES = (".env", "../.env", "../../.env")

_REPO_ROOT = Path(__file__).resolve().parents[3]


def _resolve_repo_path(value: str) -> str:
    raw = str(value or "").strip()
    if not raw:
        return raw
    p = Path(raw)
    if p.is_absolute():
        return str(p)
    return str((_REPO_ROOT / p).resolve())


class PipelineConfig(BaseSettings):
    """Segment orchestration limits (retries, slots, watchdog, reconciliation)."""

    model_config = SettingsConfigDict(
        env_prefix="PIPELINE_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_retries: int = Field(default=3, ge=0)
    # Slot count; bounded by the decode resource, not by network rate limits.
    concurrency: int = Field(default=2, ge=1)
    watchdog_interval_s: float = Field(default=5.0, gt=0)
    watchdog_timeout_s: float = Field(default=60.0, gt=0)
    reconcile_grace_s: float | None = Field(
        default=30.0,
        description="Upper bound (seconds) to wait for polishing continuations before reconciling.",
    )
    early_hallucination_threshold: float = Field(default=0.8, ge=0, le=1)
    judge_threshold: float = Field(default=0.7, ge=0, le=1)
    base_retry_temperature: float = Field(default=0.3, ge=0, le=2)
    min_retry_temperature: float = Field(default=0.1, ge=0, le=2)
    consult_fallback_temperature: float = Field(default=0.6, ge=0, le=2)


class ASREngineConfig(BaseSettings):
    """Speech-to-text engine (OpenAI-compatible transcription endpoint)."""

    provider: str = "openai_asr"
    base_url: str = ""
    api_key: str = ""
    model: str = ""
    language: str | None = None
    timeout: float = 300.0  # per request (seconds)

    @property
    def enabled(self) -> bool:
        return bool(str(self.base_url or "").strip())


class ASRPrimaryConfig(ASREngineConfig):
    model_config = SettingsConfigDict(
        env_prefix="ASR_PRIMARY_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str = "http://localhost:8000/v1"
    model: str = "paraformer-v2"


class ASRSecondaryConfig(ASREngineConfig):
    model_config = SettingsConfigDict(
        env_prefix="ASR_SECONDARY_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _validate_model(self) -> "ASRSecondaryConfig":
        if self.enabled and not str(self.model or "").strip():
            raise ConfigurationError("ASR_SECONDARY_MODEL is required when ASR_SECONDARY_BASE_URL is set")
        return self


class LLMConfig(BaseSettings):
    """LLM used for consultation, polishing and hallucination judgment."""

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    provider: str = "openai_compat"
    base_url: str | None = "https://api.deepseek.com/v1"
    api_key: str = ""
    model: str = "deepseek-chat"
    request_timeout_s: float = Field(default=120.0, gt=0)
    polish_max_tokens: int = Field(default=4000, ge=256)
    polish_temperature: float = Field(default=0.2, ge=0, le=2)
    consult_temperature: float = Field(default=0.2, ge=0, le=2)
    judge_temperature: float = Field(default=0.1, ge=0, le=2)

    @property
    def enabled(self) -> bool:
        return bool(str(self.api_key or "").strip())


class AudioConfig(BaseSettings):
    """Audio processing configuration."""

    model_config = SettingsConfigDict(
        env_prefix="AUDIO_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    ffmpeg_bin: str = "ffmpeg"
    sample_rate: int = Field(default=16000, ge=8000)
    silence_rms_threshold: float = Field(default=0.01, ge=0, le=1)
    chunk_seconds: float = Field(default=300.0, gt=0)
    ffmpeg_timeout_s: float = Field(default=600.0, gt=0)


class VerificationConfig(BaseSettings):
    """Local transcript verification heuristics."""

    model_config = SettingsConfigDict(
        env_prefix="VERIFY_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    min_entropy: float = Field(default=2.0, ge=0)
    min_entropy_length: int = Field(default=20, ge=1)
    max_repeat_run: int = Field(default=5, ge=2)


class StateSinkConfig(BaseSettings):
    """Session snapshot persistence."""

    model_config = SettingsConfigDict(
        env_prefix="STATE_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    backend: str = "local"  # "none" | "local" | "redis"
    path: str = "audioscribe_state.json"
    redis_url: str = "redis://localhost:6379"
    key: str = "audioscribe:state"
    max_age_s: int = Field(default=24 * 60 * 60, ge=1)


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt: str = "%Y-%m-%d %H:%M:%S"
    console: bool = True
    file: str | None = None
    max_bytes: int = Field(default=10 * 1024 * 1024, ge=0)
    backup_count: int = Field(default=5, ge=0)


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILES, env_file_encoding="utf-8", extra="ignore"
    )

    data_dir: str = "./data"
    log_dir: str = "./logs"

    pipeline: PipelineConfig = PipelineConfig()

    # ASR
    asr_primary: ASRPrimaryConfig = ASRPrimaryConfig()
    asr_secondary: ASRSecondaryConfig = ASRSecondaryConfig()

    # LLM
    llm: LLMConfig = LLMConfig()

    audio: AudioConfig = AudioConfig()
    verification: VerificationConfig = VerificationConfig()
    state: StateSinkConfig = StateSinkConfig()

    # Logging
    logging: LoggingSettings = LoggingSettings()

    @model_validator(mode="after")
    def _resolve_paths(self) -> "Settings":
        # Keep paths stable regardless of the caller's CWD.
        self.data_dir = _resolve_repo_path(self.data_dir)
        self.log_dir = _resolve_repo_path(self.log_dir)
        return self

    def model_post_init(self, __context: Any) -> None:
        for p in (self.data_dir, self.log_dir):
            Path(p).mkdir(parents=True, exist_ok=True)

    @property
    def workdir(self) -> Path:
        return Path(self.data_dir) / "workdir"

    @property
    def state_path(self) -> Path:
        path = Path(str(self.state.path))
        if path.is_absolute():
            return path
        return Path(self.data_dir) / path

    def asr_config_for(self, engine: str) -> dict[str, Any]:
        """Return an ASR config dict for the provider registry."""
        name = str(engine or "").strip().lower()
        if name == "primary":
            cfg = self.asr_primary
        elif name == "secondary":
            cfg = self.asr_secondary
        else:
            raise ConfigurationError(f"Unknown ASR engine: {engine!r} (expected: primary/secondary)")
        if not cfg.enabled:
            raise ConfigurationError(f"ASR engine {name!r} is not configured (missing base_url)")
        return cfg.model_dump()

    def llm_config(self) -> dict[str, Any]:
        """Return an LLM config dict for the provider registry."""
        cfg = self.llm.model_dump()
        provider = str(cfg.get("provider") or "").strip().lower()
        if not provider:
            raise ConfigurationError("LLM is not configured (missing provider)")
        base_url = str(cfg.get("base_url") or "").strip()
        if provider in {"openai", "openai_compat"}:
            cfg["base_url"] = base_url or "https://api.openai.com/v1"
        elif not base_url:
            cfg.pop("base_url", None)
        return cfg
