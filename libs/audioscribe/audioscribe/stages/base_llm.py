"""Shared base class for LLM-powered stage adapters."""

from __future__ import annotations

from typing import Any

from audioscribe.config import LLMConfig
from audioscribe.providers.llm.base import LLMProvider
from audioscribe.utils.llm_json import LLMJSONHelper


def _coerce_float(value: Any, *, lo: float, hi: float) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    try:
        num = float(value)
    except ValueError:
        return None
    return min(hi, max(lo, num))


class BaseLLMStage:
    """Holds the provider and JSON helper; `llm=None` means the stage runs its local fallback."""

    name = "llm"

    def __init__(self, llm: LLMProvider | None, config: LLMConfig | None = None) -> None:
        self.llm = llm
        self.config = config or LLMConfig()
        self.json_helper = LLMJSONHelper(llm, max_retries=2) if llm is not None else None

    @property
    def enabled(self) -> bool:
        return self.llm is not None

    async def close(self) -> None:
        if self.llm is not None:
            await self.llm.close()
