"""LLM Provider implementations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from audioscribe.providers.llm.base import LLMCompletionResult, LLMProvider, LLMUsage, Message

if TYPE_CHECKING:
    from audioscribe.providers.llm.openai_compat import OpenAICompatProvider

__all__ = ["LLMCompletionResult", "LLMProvider", "LLMUsage", "Message", "OpenAICompatProvider"]


def __getattr__(name: str) -> Any:
    if name == "OpenAICompatProvider":
        from audioscribe.providers.llm.openai_compat import OpenAICompatProvider

        return OpenAICompatProvider
    raise AttributeError(name)
