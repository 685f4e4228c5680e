"""Rule-based urgency scoring.

Every rule is additive and fires at most once per message; the total is
capped at :data:`MAX_SCORE`. The same table scores CSV imports and live
inbound messages so scores from both paths are comparable.

==========  =====================================================  ======
Rule        Condition                                              Points
==========  =====================================================  ======
Keyword     mentions "loan", "money" or "fund"                     +20
Keyword     mentions "urgent", "wait" or "asap"                    +25
Critical    mentions "blocked", "rejected", "denied" or "error"    +40
Sentiment   contains "??" or is all caps and longer than 10 chars  +15
Gap         previous message 6 to 24 hours ago                     +10
Gap         previous message more than 24 hours ago                +30
==========  =====================================================  ======
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

MAX_SCORE = 100

FINANCIAL_KEYWORDS = ("loan", "money", "fund")
URGENCY_KEYWORDS = ("urgent", "wait", "asap")
CRITICAL_KEYWORDS = ("blocked", "rejected", "denied", "error")

MODERATE_GAP_HOURS = 6.0
SEVERE_GAP_HOURS = 24.0


@dataclass(frozen=True)
class UrgencyReason:
    """One contribution to an urgency score."""

    rule: str
    description: str

    def to_dict(self) -> dict[str, str]:
        return {"rule": self.rule, "description": self.description}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UrgencyReason":
        return cls(rule=str(data["rule"]), description=str(data["description"]))


@dataclass(frozen=True)
class UrgencyResult:
    score: int
    reasons: list[UrgencyReason] = field(default_factory=list)


FINANCIAL = UrgencyReason("Keyword", "Financial intent detected")
EXPLICIT_URGENCY = UrgencyReason("Keyword", "Explicit urgency")
CRITICAL = UrgencyReason("Critical", "Blockage or negative sentiment")
SENTIMENT = UrgencyReason("Sentiment", "High emotional intensity (Caps/Punctuation)")
MODERATE_GAP = UrgencyReason("Gap", "Waiting > 6 hours")
SEVERE_GAP = UrgencyReason("Gap", "Waiting > 24 hours")


def _mentions(text: str, keywords: Iterable[str]) -> bool:
    return any(keyword in text for keyword in keywords)


def _is_shouting(text: str) -> bool:
    return "??" in text or (text == text.upper() and len(text) > 10)


def calculate_urgency(text: str, gap_hours: float) -> UrgencyResult:
    """Score ``text`` given the hours elapsed since the previous message.

    Keyword rules match case-insensitively; the sentiment rule looks at the
    raw text. Never raises: an empty message simply scores zero.
    """

    lower = text.lower()
    triggered: list[tuple[UrgencyReason, int]] = []

    if _mentions(lower, FINANCIAL_KEYWORDS):
        triggered.append((FINANCIAL, 20))
    if _mentions(lower, URGENCY_KEYWORDS):
        triggered.append((EXPLICIT_URGENCY, 25))
    if _mentions(lower, CRITICAL_KEYWORDS):
        triggered.append((CRITICAL, 40))
    if _is_shouting(text):
        triggered.append((SENTIMENT, 15))

    if MODERATE_GAP_HOURS < gap_hours <= SEVERE_GAP_HOURS:
        triggered.append((MODERATE_GAP, 10))
    elif gap_hours > SEVERE_GAP_HOURS:
        triggered.append((SEVERE_GAP, 30))

    score = min(sum(points for _, points in triggered), MAX_SCORE)
    return UrgencyResult(score=score, reasons=[reason for reason, _ in triggered])


def merge_reasons(
    existing: Iterable[UrgencyReason], new: Iterable[UrgencyReason]
) -> list[UrgencyReason]:
    """Append ``new`` reasons that are not already present, keeping order."""

    merged = list(existing)
    seen = set(merged)
    for reason in new:
        if reason not in seen:
            merged.append(reason)
            seen.add(reason)
    return merged


def add_scores(existing: int, new: int) -> int:
    return min(MAX_SCORE, existing + new)


__all__ = [
    "MAX_SCORE",
    "UrgencyReason",
    "UrgencyResult",
    "add_scores",
    "calculate_urgency",
    "merge_reasons",
]
