from __future__ import annotations

import pytest

from audioscribe.models.segment import SILENCE_SENTINEL, SuggestedAction
from audioscribe.utils.verification import (
    VerificationAction,
    char_entropy,
    clean_text,
    local_hallucination_check,
    verify_transcription,
)


def test_clean_text_strips_fences_labels_and_extra_whitespace() -> None:
    raw = "```text\nTranscript:  今天   我们\n\n\n\n讨论预算\n```"
    assert clean_text(raw) == "今天 我们\n\n讨论预算"
    assert clean_text("转写结果：你好") == "你好"
    assert clean_text(None) == ""  # type: ignore[arg-type]


def test_char_entropy_ignores_whitespace() -> None:
    assert char_entropy("") == 0.0
    assert char_entropy("aaaa") == 0.0
    assert char_entropy("ab ab") == pytest.approx(1.0)


@pytest.mark.parametrize("text", ["", "   ", SILENCE_SENTINEL, "。，！？"])
def test_empty_or_sentinel_text_is_discarded(text: str) -> None:
    assert verify_transcription(text).action == VerificationAction.DISCARD


def test_repetition_loop_asks_for_retry() -> None:
    result = verify_transcription("谢谢大家谢谢大家谢谢大家谢谢大家谢谢大家谢谢大家")
    assert result.action == VerificationAction.RETRY
    assert result.reason is not None and result.reason.startswith("Repetition loop detected")


def test_low_entropy_long_text_asks_for_retry() -> None:
    text = "abbaabbaba abab baab abba baba abab"
    result = verify_transcription(text, max_repeat_run=50)
    assert result.action == VerificationAction.RETRY
    assert result.reason is not None and result.reason.startswith("Low entropy")


def test_short_low_entropy_text_is_valid() -> None:
    result = verify_transcription("好的好的")
    assert result.is_valid


def test_normal_sentence_is_valid() -> None:
    result = verify_transcription("The quarterly review covered budget, hiring plans and the product roadmap.")
    assert result.action == VerificationAction.VALID
    assert result.entropy > 3.0


def test_local_check_flags_repetition_with_high_confidence() -> None:
    verdict = local_hallucination_check("哈哈哈哈哈哈哈哈")
    assert verdict.is_hallucination
    assert verdict.confidence == 1.0
    assert verdict.suggested_action == SuggestedAction.RETRY
    assert any(e.startswith("Repeated characters") for e in verdict.evidence)


def test_local_check_passes_ordinary_text() -> None:
    verdict = local_hallucination_check("我们下周一上午十点在三楼会议室讨论新版本的发布计划。")
    assert not verdict.is_hallucination
    assert verdict.confidence == 0.0
    assert verdict.suggested_action == SuggestedAction.KEEP


def test_local_check_short_text_alone_is_not_hallucination() -> None:
    verdict = local_hallucination_check("好的")
    assert not verdict.is_hallucination
    assert verdict.confidence == pytest.approx(0.2)
    assert verdict.evidence == ("Text too short",)
