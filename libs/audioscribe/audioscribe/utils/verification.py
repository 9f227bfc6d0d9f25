"""Deterministic local checks on transcript text (no API calls)."""

from __future__ import annotations

import math
import re
from collections import Counter
from dataclasses import dataclass
from enum import Enum

from audioscribe.models.segment import SILENCE_SENTINEL, HallucinationVerdict, SuggestedAction

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")
_LABEL_RE = re.compile(r"^\s*(transcript(ion)?|转写(结果)?|文本)\s*[:：]\s*", re.IGNORECASE)
_MULTI_BLANK_RE = re.compile(r"\n{3,}")
_INLINE_WS_RE = re.compile(r"[ \t　]+")
_WORD_CHAR_RE = re.compile(r"\w", re.UNICODE)

_REPEATED_CHAR_RE = re.compile(r"(.)\1{4,}")
_REPEATED_WORD_RE = re.compile(r"(\S{2,})\1{3,}")
_FILLER_RE = re.compile(r"(?:嗯|啊|呃|额|这个|那个){8,}")


class VerificationAction(str, Enum):
    VALID = "VALID"
    RETRY = "RETRY"
    DISCARD = "DISCARD"


@dataclass(frozen=True)
class VerificationResult:
    action: VerificationAction
    entropy: float
    reason: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.action == VerificationAction.VALID


def clean_text(text: str) -> str:
    """Strip model framing (code fences, "Transcript:" labels) and normalize whitespace."""
    raw = str(text or "").strip()
    raw = _FENCE_RE.sub("", raw).strip()
    raw = _LABEL_RE.sub("", raw, count=1)
    lines = [_INLINE_WS_RE.sub(" ", line).strip() for line in raw.splitlines()]
    return _MULTI_BLANK_RE.sub("\n\n", "\n".join(lines)).strip()


def char_entropy(text: str) -> float:
    """Shannon entropy (bits/char) over non-whitespace characters."""
    chars = [c for c in str(text or "") if not c.isspace()]
    if not chars:
        return 0.0
    total = len(chars)
    return -sum((n / total) * math.log2(n / total) for n in Counter(chars).values())


def verify_transcription(
    text: str,
    *,
    min_entropy: float = 2.0,
    min_entropy_length: int = 20,
    max_repeat_run: int = 5,
) -> VerificationResult:
    stripped = str(text or "").strip()
    compact = "".join(stripped.split())
    entropy = char_entropy(compact)

    if not compact or compact == SILENCE_SENTINEL or not _WORD_CHAR_RE.search(compact):
        return VerificationResult(VerificationAction.DISCARD, entropy, "Empty or silence")

    loop = re.search(r"(.{1,8}?)\1{%d,}" % (max(2, int(max_repeat_run)) - 1), compact)
    if loop is not None:
        return VerificationResult(
            VerificationAction.RETRY,
            entropy,
            f"Repetition loop detected ({loop.group(1)!r} x{len(loop.group(0)) // len(loop.group(1))})",
        )

    if len(compact) >= min_entropy_length and entropy < min_entropy:
        return VerificationResult(
            VerificationAction.RETRY,
            entropy,
            f"Low entropy ({entropy:.2f} < {min_entropy:.2f})",
        )

    return VerificationResult(VerificationAction.VALID, entropy)


def local_hallucination_check(text: str) -> HallucinationVerdict:
    """Heuristic hallucination scoring: repetition, fillers, length, diversity."""
    raw = str(text or "")
    evidence: list[str] = []
    score = 0.0

    repeated_chars = [m.group(0) for m in _REPEATED_CHAR_RE.finditer(raw)]
    if repeated_chars:
        evidence.append(f"Repeated characters: {', '.join(repeated_chars)}")
        score += 0.4

    repeated_words = [m.group(0) for m in _REPEATED_WORD_RE.finditer(raw)]
    if repeated_words:
        evidence.append(f"Repeated words: {', '.join(repeated_words)}")
        score += 0.5

    if _FILLER_RE.search(raw):
        evidence.append("Excessive filler words")
        score += 0.3

    if len(raw) < 10:
        evidence.append("Text too short")
        score += 0.2

    if len(raw) > 20:
        diversity = len(set(raw)) / len(raw)
        if diversity < 0.1:
            evidence.append(f"Low character diversity: {diversity * 100:.1f}%")
            score += 0.4

    confidence = min(score, 1.0)
    is_hallucination = confidence > 0.7
    return HallucinationVerdict(
        is_hallucination=is_hallucination,
        confidence=confidence,
        reason=(
            f"Local check found hallucination patterns (confidence: {confidence * 100:.0f}%)"
            if is_hallucination
            else "Local check found no obvious hallucination"
        ),
        suggested_action=SuggestedAction.RETRY if is_hallucination else SuggestedAction.KEEP,
        evidence=tuple(evidence),
    )
