"""Live inbox operations used by the HTTP API."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any
from uuid import UUID

from ..events import CONVERSATION_UPDATE, NEW_MESSAGE, events
from ..ingestion.driver import IngestionDriver, active_from_summary
from ..ingestion.records import MessageRecord
from ..ingestion.windowing import ActiveConversations, ConversationWindower
from ..models import ConversationStatus, SenderType
from ..timeutils import utcnow
from . import schemas
from .models import (
    VALID_STATUSES,
    ConversationFilters,
    ConversationNotFoundError,
    InvalidStatusError,
)
from .repository import ConversationStore

logger = logging.getLogger(__name__)

Publisher = Callable[[dict[str, Any]], Any]


class CustomerLocks:
    """Per-customer mutexes for live inbound messages.

    Reading the active conversation and folding a new score into it must not
    interleave for one customer, otherwise concurrent requests lose points or
    open two conversations. Hold the lock until the request transaction has
    committed. Only serialises writers inside this process.
    """

    def __init__(self) -> None:
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    @contextmanager
    def hold(self, customer_id: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(customer_id, threading.Lock())
        with lock:
            yield


customer_locks = CustomerLocks()


class ConversationService:
    """Coordinates persistence, urgency scoring and live update events.

    Events are handed to ``publish`` as soon as the corresponding write has
    been issued. Callers that commit afterwards pass a buffering publisher
    and forward the events once the transaction succeeds.
    """

    def __init__(
        self,
        store: ConversationStore,
        *,
        windower: ConversationWindower | None = None,
        publish: Publisher | None = None,
    ) -> None:
        self._store = store
        self._windower = windower or ConversationWindower()
        self._publish = publish or events.publish

    # ------------------------------------------------------------------
    # Queries

    def list_conversations(self, filters: ConversationFilters) -> schemas.ConversationList:
        items = self._store.list_conversations(filters)
        return schemas.ConversationList(items=items, total=len(items))

    def get_conversation(self, conversation_id: UUID) -> schemas.ConversationDetail:
        conversation = self._store.get_conversation(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    # ------------------------------------------------------------------
    # Agent actions

    def reply(self, conversation_id: UUID, content: str) -> schemas.MessageOut:
        """Append an agent reply and move the conversation to ``WAITING``."""

        message = self._store.create_message(
            conversation_id,
            sender_type=SenderType.AGENT.value,
            content=content,
            timestamp=utcnow(),
            is_read=True,
        )
        conversation = self._store.update_conversation(
            conversation_id,
            status=ConversationStatus.WAITING.value,
            last_message_at=message.timestamp,
        )
        logger.info("Agent replied to conversation %s", conversation_id)
        self._emit_message(conversation_id, message)
        self._emit_conversation(conversation)
        return message

    def update_status(self, conversation_id: UUID, status: str) -> schemas.ConversationSummary:
        if status not in VALID_STATUSES:
            raise InvalidStatusError(status)
        conversation = self._store.update_conversation(
            conversation_id, status=status, updated_at=utcnow()
        )
        logger.info("Conversation %s set to %s", conversation_id, status)
        self._emit_conversation(conversation)
        return conversation

    def mark_read(self, conversation_id: UUID) -> schemas.ConversationDetail:
        changed = self._store.mark_customer_messages_read(conversation_id)
        detail = self.get_conversation(conversation_id)
        if changed:
            self._emit_conversation(detail)
        return detail

    # ------------------------------------------------------------------
    # Inbound customer messages

    def receive_customer_message(
        self,
        customer_id: str,
        content: str,
        timestamp: datetime | None = None,
    ) -> schemas.InboundMessageResponse:
        """Window and score a live customer message like an ingested row.

        The customer's most recent conversation is the active one; continuing
        it sets the status back to ``OPEN``. Callers serialise requests for
        the same customer with :data:`customer_locks`.
        """

        record = MessageRecord(
            customer_id=customer_id,
            timestamp=timestamp or utcnow(),
            content=content,
        )
        active = ActiveConversations()
        latest = self._store.find_latest_conversation(record.customer_id)
        if latest is not None:
            active.set(active_from_summary(latest))
        driver = IngestionDriver(
            self._store, windower=self._windower, active=active, reopen=True
        )
        outcome = driver.ingest_record(record)
        logger.info(
            "Inbound message for %s scored %d (%s conversation %s)",
            record.customer_id,
            outcome.urgency.score,
            "new" if outcome.created_conversation else "existing",
            outcome.conversation.id,
        )
        self._emit_message(outcome.conversation.id, outcome.message)
        self._emit_conversation(outcome.conversation)
        return schemas.InboundMessageResponse(
            conversation=outcome.conversation,
            message=outcome.message,
            created_conversation=outcome.created_conversation,
            gap_hours=outcome.decision.gap_hours,
        )

    # ------------------------------------------------------------------
    # Helpers

    def _emit_message(self, conversation_id: UUID, message: schemas.MessageOut) -> None:
        self._publish(
            {
                "type": NEW_MESSAGE,
                "conversation_id": str(conversation_id),
                "message": message.model_dump(mode="json"),
            }
        )

    def _emit_conversation(self, conversation: schemas.ConversationSummary) -> None:
        summary_fields = set(schemas.ConversationSummary.model_fields)
        self._publish(
            {
                "type": CONVERSATION_UPDATE,
                "conversation": conversation.model_dump(mode="json", include=summary_fields),
            }
        )
