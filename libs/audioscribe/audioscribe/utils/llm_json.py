"""Parse JSON objects out of free-form LLM replies."""

from __future__ import annotations

import json
import re
from typing import Any, cast

from audioscribe.providers.llm.base import LLMProvider, Message

_THINK_BLOCK_RE = re.compile(r"^\s*<think>[\s\S]*?</think>\s*", re.IGNORECASE)
_THINK_TAG_RE = re.compile(r"</?think>\s*", re.IGNORECASE)
_FENCED_RE = (
    re.compile(r"```json\s*([\s\S]*?)\s*```"),
    re.compile(r"```\s*([\s\S]*?)\s*```"),
)

JSONData = dict[str, Any] | list[Any]


def _loads_container(text: str) -> JSONData:
    data = json.loads(text)
    if isinstance(data, dict):
        return cast(dict[str, Any], data)
    if isinstance(data, list):
        return data
    raise json.JSONDecodeError("Expected a JSON object/array", text, 0)


def parse_llm_json(text: str) -> JSONData:
    """Parse JSON from model output.

    Accepts plain JSON, fenced ```json blocks, reasoning `<think>` preambles,
    and JSON embedded in surrounding prose (first `{`/`[` to last `}`/`]`).

    Raises:
        json.JSONDecodeError: If no JSON object/array can be recovered.
    """
    text = (text or "").strip()
    text = _THINK_BLOCK_RE.sub("", text).strip()
    text = _THINK_TAG_RE.sub("", text).strip()

    for pattern in _FENCED_RE:
        match = pattern.search(text)
        if match:
            text = match.group(1).strip()
            break

    try:
        return _loads_container(text)
    except json.JSONDecodeError as exc:
        first_error = exc

    starts = [(idx, ch) for ch in ("{", "[") if (idx := text.find(ch)) != -1]
    if not starts:
        raise first_error
    start_idx, start_ch = min(starts, key=lambda x: x[0])
    end_idx = text.rfind("}" if start_ch == "{" else "]")
    if end_idx <= start_idx:
        raise first_error
    return _loads_container(text[start_idx : end_idx + 1].strip())


class LLMJSONHelper:
    """Ask for JSON, feeding parse errors back to the model between attempts."""

    def __init__(self, llm: LLMProvider, max_retries: int = 2) -> None:
        self.llm = llm
        self.max_retries = max(1, int(max_retries))

    async def complete_json(
        self,
        messages: list[Message],
        temperature: float = 0.3,
    ) -> JSONData:
        """Raises ValueError when the reply is still not JSON after all attempts."""
        current = list(messages)
        last_error: json.JSONDecodeError | None = None
        last_response = ""

        for attempt in range(self.max_retries):
            completion = await self.llm.complete_with_usage(current, temperature=temperature)
            last_response = completion.text
            try:
                return parse_llm_json(completion.text)
            except json.JSONDecodeError as exc:
                last_error = exc
                if attempt < self.max_retries - 1:
                    current = current + [
                        Message(role="assistant", content=last_response),
                        Message(
                            role="user",
                            content=(
                                f"Your reply was not valid JSON: {exc.msg} (position {exc.pos}). "
                                "Reply again with only the JSON object."
                            ),
                        ),
                    ]

        raise ValueError(
            f"LLM JSON parsing failed after {self.max_retries} attempts: {last_error}; "
            f"last response: {last_response[:500]}"
        )
