"""Ingestion driver: turns ordered message records into scored conversations.

For each record the driver

1. upserts the customer,
2. asks the :class:`~.windowing.ConversationWindower` whether the message
   continues the customer's active conversation,
3. scores the message with the hours elapsed since the previous one,
4. creates a new ``OPEN`` conversation or folds the score and reasons into
   the active one,
5. stores the message as an unread customer message, and
6. points the customer's active conversation at the result.

Processing is strictly sequential. Store errors propagate unchanged; the
caller decides whether earlier writes are kept.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Protocol

from ..conversations import schemas
from ..conversations.repository import ConversationStore, make_title
from ..models import ConversationStatus, SenderType
from ..scoring.urgency import (
    UrgencyResult,
    add_scores,
    calculate_urgency,
    merge_reasons,
)
from ..timeutils import as_utc
from .records import MessageRecord, sort_records
from .windowing import (
    ActiveConversation,
    ActiveConversations,
    ConversationWindower,
    WindowDecision,
)

logger = logging.getLogger(__name__)


class Scorer(Protocol):
    def __call__(self, text: str, gap_hours: float) -> UrgencyResult: ...


@dataclass(frozen=True)
class IngestionOutcome:
    """What happened to a single record."""

    conversation: schemas.ConversationSummary
    message: schemas.MessageOut
    decision: WindowDecision
    urgency: UrgencyResult

    @property
    def created_conversation(self) -> bool:
        return self.decision.is_new


@dataclass
class IngestionReport:
    records: int = 0
    conversations_created: int = 0
    conversations_continued: int = 0
    customers: set[str] = field(default_factory=set)

    def as_dict(self) -> dict[str, int]:
        return {
            "records": self.records,
            "conversations_created": self.conversations_created,
            "conversations_continued": self.conversations_continued,
            "customers": len(self.customers),
        }


def active_from_summary(conversation: schemas.ConversationSummary) -> ActiveConversation:
    return ActiveConversation(
        id=conversation.id,
        customer_id=conversation.customer_id,
        last_message_at=conversation.last_message_at,
        urgency_score=conversation.urgency_score,
        urgency_reasons=conversation.reasons(),
    )


class IngestionDriver:
    """Drives windowing and scoring for a sequence of customer messages.

    With ``reopen=True`` a continued conversation is set back to ``OPEN``;
    live inbound messages use it so a customer answering a ``WAITING`` or
    ``RESOLVED`` thread puts it back in front of the agents.
    """

    def __init__(
        self,
        store: ConversationStore,
        *,
        windower: ConversationWindower | None = None,
        scorer: Scorer = calculate_urgency,
        active: ActiveConversations | None = None,
        reopen: bool = False,
    ) -> None:
        self._store = store
        self._windower = windower or ConversationWindower()
        self._scorer = scorer
        self._reopen = reopen
        self.active = active if active is not None else ActiveConversations()

    def ingest_record(self, record: MessageRecord) -> IngestionOutcome:
        """Persist one record against the customer's active conversation."""

        self._store.upsert_customer(record.customer_id)

        decision = self._windower.decide(self.active.get(record.customer_id), record.timestamp)
        urgency = self._scorer(record.content, decision.gap_hours)

        if decision.is_new:
            conversation = self._store.create_conversation(
                record.customer_id,
                title=make_title(record.content),
                status=ConversationStatus.OPEN.value,
                last_message_at=record.timestamp,
                urgency_score=urgency.score,
                urgency_reasons=[reason.to_dict() for reason in urgency.reasons],
            )
        else:
            current = decision.conversation
            if current is None:
                raise RuntimeError("CONTINUE decision without an active conversation")
            reasons = merge_reasons(current.urgency_reasons, urgency.reasons)
            # A late message never moves the conversation back in time.
            latest = max(as_utc(current.last_message_at), record.timestamp)
            conversation = self._store.update_conversation(
                current.id,
                status=ConversationStatus.OPEN.value if self._reopen else None,
                last_message_at=latest,
                updated_at=latest,
                urgency_score=add_scores(current.urgency_score, urgency.score),
                urgency_reasons=[reason.to_dict() for reason in reasons],
            )

        message = self._store.create_message(
            conversation.id,
            sender_type=SenderType.CUSTOMER.value,
            content=record.content,
            timestamp=record.timestamp,
            is_read=False,
        )
        self.active.set(active_from_summary(conversation))
        logger.debug(
            "%s message for %s -> conversation %s (gap %.2fh, +%d)",
            decision.action.value,
            record.customer_id,
            conversation.id,
            decision.gap_hours,
            urgency.score,
        )
        return IngestionOutcome(conversation, message, decision, urgency)

    def run(
        self,
        records: Iterable[MessageRecord],
        *,
        after_each: Callable[[IngestionOutcome], None] | None = None,
    ) -> IngestionReport:
        """Sort ``records`` per customer and ingest them one by one.

        ``after_each`` runs once a record is fully persisted, e.g. to commit
        the transaction so completed records survive a later failure.
        """

        report = IngestionReport()
        for record in sort_records(records):
            outcome = self.ingest_record(record)
            report.records += 1
            report.customers.add(record.customer_id)
            if outcome.created_conversation:
                report.conversations_created += 1
            else:
                report.conversations_continued += 1
            if after_each is not None:
                after_each(outcome)
        return report


__all__ = [
    "IngestionDriver",
    "IngestionOutcome",
    "IngestionReport",
    "Scorer",
    "active_from_summary",
]
