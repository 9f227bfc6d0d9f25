"""Advisor: arbitrates transcripts the local verifier found ambiguous."""

from __future__ import annotations

import logging

from audioscribe.config import LLMConfig
from audioscribe.providers.llm.base import LLMProvider, Message
from audioscribe.stages.base import Advice, AdviceAction
from audioscribe.stages.base_llm import BaseLLMStage, _coerce_float

logger = logging.getLogger(__name__)


class LLMAdvisor(BaseLLMStage):
    name = "consult"

    def __init__(
        self,
        llm: LLMProvider | None,
        config: LLMConfig | None = None,
        *,
        fallback_temperature: float = 0.6,
    ) -> None:
        super().__init__(llm, config)
        self.fallback_temperature = float(fallback_temperature)

    @staticmethod
    def _get_system_prompt() -> str:
        return (
            "You supervise a speech transcription system. A local check flagged a transcript "
            "as suspicious. Decide what to do with it.\n\n"
            "- RETRY: hallucination (looping repetition, random characters, gibberish). "
            "Suggest a temperature between 0.5 and 0.7.\n"
            "- SKIP: noise, music, silence or unintelligible sound.\n"
            "- KEEP: genuine content that merely looks unusual (lyrics, chanting, poetry, "
            "another language).\n\n"
            'Output JSON: {"action": "RETRY" | "SKIP" | "KEEP", "reasoning": "...", '
            '"suggested_temperature": 0.6}'
        )

    def _fallback(self, reasoning: str) -> Advice:
        return Advice(
            action=AdviceAction.RETRY,
            reasoning=reasoning,
            suggested_temperature=self.fallback_temperature,
        )

    async def consult(self, text: str, reason: str) -> Advice:
        if self.json_helper is None:
            return self._fallback("Advisor disabled, defaulting to retry")

        messages = [
            Message(role="system", content=self._get_system_prompt()),
            Message(role="user", content=f"Suspicious text:\n{text}\n\nFlag reason: {reason}"),
        ]
        try:
            data = await self.json_helper.complete_json(messages, temperature=self.config.consult_temperature)
        except Exception as exc:
            logger.warning("consult failed, defaulting to retry (error=%s)", exc)
            return self._fallback("Advisor failed, defaulting to retry with higher temperature")

        if not isinstance(data, dict):
            return self._fallback("Advisor returned no object, defaulting to retry")
        raw_action = str(data.get("action") or "").strip().upper()
        try:
            action = AdviceAction(raw_action)
        except ValueError:
            logger.warning("consult returned invalid action (action=%r)", raw_action)
            return self._fallback(f"Invalid advisor action {raw_action!r}, defaulting to retry")

        temperature = None
        if action == AdviceAction.RETRY:
            temperature = _coerce_float(
                data.get("suggested_temperature", data.get("suggestedTemperature")),
                lo=0.0,
                hi=1.0,
            )
            if temperature is None:
                temperature = self.fallback_temperature
        return Advice(
            action=action,
            reasoning=str(data.get("reasoning") or "").strip() or "no reasoning given",
            suggested_temperature=temperature,
        )
