"""Conservative transcript cleanup ("surgical cleaning")."""

from __future__ import annotations

import logging

from audioscribe.models.segment import is_sentinel_text
from audioscribe.providers.llm.base import Message
from audioscribe.stages.base_llm import BaseLLMStage
from audioscribe.utils.verification import clean_text

logger = logging.getLogger(__name__)

_QUOTE_PAIRS = (('"', '"'), ("“", "”"), ("「", "」"))


def _strip_wrapping_quotes(text: str) -> str:
    for left, right in _QUOTE_PAIRS:
        if len(text) >= 2 and text.startswith(left) and text.endswith(right):
            return text[len(left) : -len(right)].strip()
    return text


class LLMPolisher(BaseLLMStage):
    name = "polish"

    @staticmethod
    def _get_system_prompt() -> str:
        return (
            "你是会议速记整理员，对语音转写稿做最小化清洗。\n"
            "规则：\n"
            "1. 只删除无意义的口头禅和重复词（嗯、啊、这个这个、我我我）\n"
            "2. 根据上下文修正明显的同音字识别错误，并规范中文标点\n"
            "3. 不要意译、总结、改写句式或补充原文没有的内容，保留讲者的语气和术语\n"
            "4. 只输出清洗后的文本，不要任何解释"
        )

    async def polish(self, text: str) -> str:
        if not str(text or "").strip() or is_sentinel_text(text):
            return ""
        if self.llm is None:
            return text

        messages = [
            Message(role="system", content=self._get_system_prompt()),
            Message(role="user", content=text),
        ]
        try:
            out = await self.llm.complete(
                messages,
                temperature=self.config.polish_temperature,
                max_tokens=self.config.polish_max_tokens,
            )
        except Exception as exc:
            logger.warning("polish failed, returning raw text (error=%s)", exc)
            return text
        cleaned = _strip_wrapping_quotes(clean_text(out))
        return cleaned or text
