"""Conversation windowing: decide whether a message opens a new conversation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID

from ..scoring.urgency import UrgencyReason
from ..timeutils import as_utc

DEFAULT_WINDOW_HOURS = 24.0
_SECONDS_PER_HOUR = 3600.0


def hours_between(earlier: datetime, later: datetime) -> float:
    return (as_utc(later) - as_utc(earlier)).total_seconds() / _SECONDS_PER_HOUR


class WindowAction(str, Enum):
    NEW = "NEW"
    CONTINUE = "CONTINUE"


@dataclass
class ActiveConversation:
    """The conversation currently receiving a customer's messages."""

    id: UUID
    customer_id: str
    last_message_at: datetime
    urgency_score: int = 0
    urgency_reasons: list[UrgencyReason] = field(default_factory=list)


@dataclass(frozen=True)
class WindowDecision:
    action: WindowAction
    gap_hours: float
    conversation: ActiveConversation | None = None

    @property
    def is_new(self) -> bool:
        return self.action is WindowAction.NEW


class ConversationWindower:
    """Applies the inactivity window to a customer's active conversation.

    Messages must be fed in chronological order per customer; a timestamp
    earlier than ``last_message_at`` yields a negative gap and is treated as
    a continuation.
    """

    def __init__(self, window_hours: float = DEFAULT_WINDOW_HOURS) -> None:
        self.window_hours = window_hours

    def decide(
        self, active: ActiveConversation | None, timestamp: datetime
    ) -> WindowDecision:
        if active is None:
            return WindowDecision(WindowAction.NEW, 0.0)
        gap = hours_between(active.last_message_at, timestamp)
        if gap > self.window_hours:
            return WindowDecision(WindowAction.NEW, gap)
        return WindowDecision(WindowAction.CONTINUE, gap, conversation=active)


class ActiveConversations:
    """Explicit customer id -> active conversation mapping for one run."""

    def __init__(self) -> None:
        self._by_customer: dict[str, ActiveConversation] = {}

    def get(self, customer_id: str) -> ActiveConversation | None:
        return self._by_customer.get(customer_id)

    def set(self, conversation: ActiveConversation) -> None:
        self._by_customer[conversation.customer_id] = conversation

    def __len__(self) -> int:
        return len(self._by_customer)

    def __contains__(self, customer_id: object) -> bool:
        return customer_id in self._by_customer


__all__ = [
    "ActiveConversation",
    "ActiveConversations",
    "ConversationWindower",
    "DEFAULT_WINDOW_HOURS",
    "WindowAction",
    "WindowDecision",
    "as_utc",
    "hours_between",
]
