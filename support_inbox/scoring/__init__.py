"""Urgency scoring for inbound customer messages."""

from .urgency import (
    MAX_SCORE,
    UrgencyReason,
    UrgencyResult,
    add_scores,
    calculate_urgency,
    merge_reasons,
)

__all__ = [
    "MAX_SCORE",
    "UrgencyReason",
    "UrgencyResult",
    "add_scores",
    "calculate_urgency",
    "merge_reasons",
]
