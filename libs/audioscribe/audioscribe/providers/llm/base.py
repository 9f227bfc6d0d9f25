"""Chat-completion interface shared by the advisor, polisher and judge stages."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class Message:
    role: str  # system | user | assistant
    content: str


@dataclass
class LLMUsage:
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None

    @classmethod
    def from_payload(cls, payload: object) -> "LLMUsage | None":
        """Build usage from an OpenAI-style `usage` object, or None if it carries no counts."""
        if not isinstance(payload, dict):
            return None
        counts = {
            key: payload.get(key) if isinstance(payload.get(key), int) else None
            for key in ("prompt_tokens", "completion_tokens", "total_tokens")
        }
        if all(v is None for v in counts.values()):
            return None
        return cls(**counts)


@dataclass
class LLMCompletionResult:
    text: str
    usage: LLMUsage | None = None
    latency_ms: int | None = None


class LLMProvider(ABC):
    """A text-in, text-out model endpoint.

    Structured replies are parsed by `utils.llm_json.LLMJSONHelper`, so
    providers only deal in plain text.
    """

    provider: str = "llm"
    model: str = ""

    @abstractmethod
    async def complete_with_usage(
        self,
        messages: list[Message],
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> LLMCompletionResult:
        """Run one completion and report token usage when the endpoint provides it."""
        ...

    async def complete(
        self,
        messages: list[Message],
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> str:
        result = await self.complete_with_usage(messages, temperature=temperature, max_tokens=max_tokens)
        return result.text

    async def close(self) -> None:
        return None
