"""Hallucination judge: local heuristics first, LLM review when inconclusive."""

from __future__ import annotations

import logging
from typing import Any

from audioscribe.models.segment import HallucinationVerdict, SuggestedAction
from audioscribe.providers.llm.base import Message
from audioscribe.stages.base_llm import BaseLLMStage, _coerce_float
from audioscribe.utils.verification import local_hallucination_check

logger = logging.getLogger(__name__)

# Local verdicts above this confidence are returned without an LLM call.
_LOCAL_DECISIVE = 0.9


def _parse_verdict(data: Any) -> HallucinationVerdict:
    if not isinstance(data, dict):
        raise ValueError(f"expected JSON object, got {type(data).__name__}")
    flag = data.get("is_hallucination", data.get("isHallucination", False))
    action_raw = str(data.get("suggested_action", data.get("suggestedAction")) or "KEEP").strip().upper()
    try:
        action = SuggestedAction(action_raw)
    except ValueError:
        action = SuggestedAction.KEEP
    evidence = data.get("evidence") or []
    if not isinstance(evidence, list):
        evidence = [evidence]
    return HallucinationVerdict(
        is_hallucination=flag is True or str(flag).strip().lower() == "true",
        confidence=_coerce_float(data.get("confidence"), lo=0.0, hi=1.0) or 0.0,
        reason=str(data.get("reason") or "").strip() or "No hallucination detected",
        suggested_action=action,
        evidence=tuple(str(x) for x in evidence if str(x).strip()),
    )


class LLMHallucinationJudge(BaseLLMStage):
    name = "hallucination"

    @staticmethod
    def _get_system_prompt() -> str:
        return (
            "你是语音转写质量审核员，判断转写是否存在幻觉（ASR 生成的不真实输出）。\n"
            "幻觉包括：同一字词重复超过 5 次、大段无意义音节、语义完全不连贯、与上下文无关的模板化语句。\n"
            "口语语气词和 2-3 次强调性重复不算幻觉；不确定时判定为否。\n"
            "输出 JSON：\n"
            '{"is_hallucination": true/false, "confidence": 0.0-1.0, "reason": "简短说明", '
            '"suggested_action": "RETRY" | "KEEP" | "MANUAL_REVIEW", "evidence": ["..."]}\n'
            "confidence > 0.7 时才建议 RETRY。"
        )

    @staticmethod
    def _build_user_input(raw_text: str, polished_text: str, segment_index: int) -> str:
        return "\n".join(
            [
                f"【片段编号】{segment_index}",
                "【原始转写】",
                (raw_text or "").strip(),
                "",
                "【清洗后文本】",
                (polished_text or "").strip(),
            ]
        )

    async def judge(self, raw_text: str, polished_text: str, segment_index: int) -> HallucinationVerdict:
        local = local_hallucination_check(raw_text)
        if local.confidence > _LOCAL_DECISIVE or self.json_helper is None:
            return local

        messages = [
            Message(role="system", content=self._get_system_prompt()),
            Message(role="user", content=self._build_user_input(raw_text, polished_text, segment_index)),
        ]
        try:
            data = await self.json_helper.complete_json(messages, temperature=self.config.judge_temperature)
            return _parse_verdict(data)
        except Exception as exc:
            logger.warning("hallucination judge failed (segment=%s, error=%s)", segment_index, exc)
            return HallucinationVerdict.clean("Detection failed, assuming valid")
