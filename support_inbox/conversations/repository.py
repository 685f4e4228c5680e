"""Persistence for customers, conversations and messages."""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol
from uuid import UUID

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.orm import Session, aliased

from ..models import Conversation, Customer, Message, SenderType
from ..timeutils import as_utc, utcnow
from . import schemas
from .models import (
    ASSIGNED_TO_ME,
    UNASSIGNED,
    ConversationFilters,
    ConversationNotFoundError,
)


class ConversationStore(Protocol):
    """Abstraction over the store used by ingestion and the live API.

    Reads must reflect writes previously made through the same instance.
    """

    def upsert_customer(self, customer_id: str) -> None: ...

    def create_conversation(
        self,
        customer_id: str,
        *,
        title: str,
        status: str,
        last_message_at: datetime,
        urgency_score: int,
        urgency_reasons: List[Dict[str, str]],
    ) -> schemas.ConversationSummary: ...

    def update_conversation(
        self,
        conversation_id: UUID,
        *,
        status: Optional[str] = None,
        last_message_at: Optional[datetime] = None,
        urgency_score: Optional[int] = None,
        urgency_reasons: Optional[List[Dict[str, str]]] = None,
        updated_at: Optional[datetime] = None,
    ) -> schemas.ConversationSummary: ...

    def create_message(
        self,
        conversation_id: UUID,
        *,
        sender_type: str,
        content: str,
        timestamp: datetime,
        is_read: bool,
    ) -> schemas.MessageOut: ...

    def get_conversation(self, conversation_id: UUID) -> Optional[schemas.ConversationDetail]: ...

    def find_latest_conversation(self, customer_id: str) -> Optional[schemas.ConversationSummary]: ...

    def list_conversations(
        self, filters: ConversationFilters
    ) -> List[schemas.ConversationSummary]: ...

    def mark_customer_messages_read(self, conversation_id: UUID) -> int: ...


def make_title(content: str, limit: int = 40) -> str:
    """First ``limit`` characters of ``content``, with ``...`` when cut."""

    if len(content) > limit:
        return content[:limit] + "..."
    return content


class SqlAlchemyConversationRepository:
    """SQLAlchemy implementation of :class:`ConversationStore`.

    Writes are flushed, never committed; the caller owns the transaction.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    @property
    def session(self) -> Session:
        return self._session

    # Customers ---------------------------------------------------------------
    def upsert_customer(self, customer_id: str) -> None:
        if self._session.get(Customer, customer_id) is not None:
            return
        self._session.add(Customer(id=customer_id, first_name="User", last_name=customer_id))
        self._session.flush()

    # Conversations -------------------------------------------------------------
    def create_conversation(
        self,
        customer_id: str,
        *,
        title: str,
        status: str,
        last_message_at: datetime,
        urgency_score: int,
        urgency_reasons: List[Dict[str, str]],
    ) -> schemas.ConversationSummary:
        conversation = Conversation(
            customer_id=customer_id,
            title=title,
            status=status,
            last_message_at=last_message_at,
            urgency_score=urgency_score,
            urgency_reasons=list(urgency_reasons),
            created_at=last_message_at,
            updated_at=last_message_at,
        )
        self._session.add(conversation)
        self._session.flush()
        return schemas.ConversationSummary.model_validate(conversation)

    def update_conversation(
        self,
        conversation_id: UUID,
        *,
        status: Optional[str] = None,
        last_message_at: Optional[datetime] = None,
        urgency_score: Optional[int] = None,
        urgency_reasons: Optional[List[Dict[str, str]]] = None,
        updated_at: Optional[datetime] = None,
    ) -> schemas.ConversationSummary:
        conversation = self._require(conversation_id)
        if status is not None:
            conversation.status = status
        if last_message_at is not None:
            conversation.last_message_at = last_message_at
        if urgency_score is not None:
            conversation.urgency_score = urgency_score
        if urgency_reasons is not None:
            # JSON columns only track reassignment, not in-place mutation.
            conversation.urgency_reasons = list(urgency_reasons)
        conversation.updated_at = updated_at or utcnow()
        self._session.flush()
        return schemas.ConversationSummary.model_validate(conversation)

    def get_conversation(self, conversation_id: UUID) -> Optional[schemas.ConversationDetail]:
        conversation = self._session.get(Conversation, conversation_id)
        if conversation is None:
            return None
        detail = schemas.ConversationDetail.model_validate(conversation)
        detail.last_message = detail.messages[-1] if detail.messages else None
        return detail

    def find_latest_conversation(self, customer_id: str) -> Optional[schemas.ConversationSummary]:
        """Most recent conversation of ``customer_id``, row-locked where supported."""

        stmt = (
            select(Conversation)
            .where(Conversation.customer_id == customer_id)
            .order_by(Conversation.last_message_at.desc())
            .limit(1)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        conversation = self._session.scalars(stmt).first()
        if conversation is None:
            return None
        return schemas.ConversationSummary.model_validate(conversation)

    def list_conversations(
        self, filters: ConversationFilters
    ) -> List[schemas.ConversationSummary]:
        """Filtered summaries, most urgent first.

        ``q`` matches case-insensitively with ``lower()`` on both sides; SQLite
        connections register a Unicode-aware ``lower`` (see
        :func:`support_inbox.models.session.get_engine`) so results match
        :class:`InMemoryConversationRepository`.
        """

        stmt = select(Conversation)
        status = filters.effective_status
        if status:
            stmt = stmt.where(Conversation.status == status)
        if filters.min_urgency is not None:
            stmt = stmt.where(Conversation.urgency_score >= filters.min_urgency)
        if filters.assigned_to == UNASSIGNED:
            stmt = stmt.where(Conversation.assigned_to.is_(None))
        elif filters.assigned_to and filters.assigned_to != ASSIGNED_TO_ME:
            stmt = stmt.where(Conversation.assigned_to == filters.assigned_to)
        search = filters.search
        if search:
            needle = search.lower()
            stmt = stmt.where(
                or_(
                    func.lower(Conversation.title).contains(needle, autoescape=True),
                    func.lower(Conversation.customer_id).contains(needle, autoescape=True),
                    Conversation.messages.any(
                        func.lower(Message.content).contains(needle, autoescape=True)
                    ),
                )
            )
        if filters.unread_only:
            stmt = stmt.where(
                Conversation.messages.any(
                    and_(
                        Message.is_read.is_(False),
                        Message.sender_type == SenderType.CUSTOMER.value,
                    )
                )
            )
        stmt = stmt.order_by(
            Conversation.urgency_score.desc(), Conversation.last_message_at.desc()
        )
        conversations = list(self._session.scalars(stmt))
        latest = self._latest_messages([c.id for c in conversations])
        items: List[schemas.ConversationSummary] = []
        for conversation in conversations:
            summary = schemas.ConversationSummary.model_validate(conversation)
            summary.last_message = latest.get(conversation.id)
            items.append(summary)
        return items

    # Messages ------------------------------------------------------------------
    def create_message(
        self,
        conversation_id: UUID,
        *,
        sender_type: str,
        content: str,
        timestamp: datetime,
        is_read: bool,
    ) -> schemas.MessageOut:
        conversation = self._require(conversation_id)
        message = Message(
            sender_type=sender_type,
            content=content,
            timestamp=timestamp,
            is_read=is_read,
        )
        conversation.messages.append(message)
        self._session.flush()
        return schemas.MessageOut.model_validate(message)

    def mark_customer_messages_read(self, conversation_id: UUID) -> int:
        self._require(conversation_id)
        result = self._session.execute(
            update(Message)
            .where(
                Message.conversation_id == conversation_id,
                Message.sender_type == SenderType.CUSTOMER.value,
                Message.is_read.is_(False),
            )
            .values(is_read=True)
            .execution_options(synchronize_session="fetch")
        )
        return int(result.rowcount or 0)

    # Helpers -------------------------------------------------------------------
    def _require(self, conversation_id: UUID) -> Conversation:
        conversation = self._session.get(Conversation, conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    def _latest_messages(self, conversation_ids: List[UUID]) -> Dict[UUID, schemas.MessageOut]:
        if not conversation_ids:
            return {}
        ranked = (
            select(
                Message,
                func.row_number()
                .over(partition_by=Message.conversation_id, order_by=Message.timestamp.desc())
                .label("rank"),
            )
            .where(Message.conversation_id.in_(conversation_ids))
            .subquery()
        )
        latest = aliased(Message, ranked)
        rows = self._session.scalars(select(latest).where(ranked.c.rank == 1))
        return {row.conversation_id: schemas.MessageOut.model_validate(row) for row in rows}


# ---------------------------------------------------------------------------
# In-memory repository (useful for testing and sandbox environments)


class InMemoryConversationRepository:
    def __init__(self) -> None:
        self.customers: Dict[str, Dict[str, Any]] = {}
        self._conversations: Dict[UUID, schemas.ConversationSummary] = {}
        self._messages: Dict[UUID, List[schemas.MessageOut]] = {}

    def upsert_customer(self, customer_id: str) -> None:
        self.customers.setdefault(
            customer_id,
            {"id": customer_id, "first_name": "User", "last_name": customer_id},
        )

    def create_conversation(
        self,
        customer_id: str,
        *,
        title: str,
        status: str,
        last_message_at: datetime,
        urgency_score: int,
        urgency_reasons: List[Dict[str, str]],
    ) -> schemas.ConversationSummary:
        if customer_id not in self.customers:
            raise KeyError(f"Customer {customer_id} does not exist")
        conversation = schemas.ConversationSummary(
            id=uuid.uuid4(),
            customer_id=customer_id,
            title=title,
            status=status,
            last_message_at=last_message_at,
            urgency_score=urgency_score,
            urgency_reasons=[schemas.UrgencyReasonOut(**r) for r in urgency_reasons],
            created_at=last_message_at,
            updated_at=last_message_at,
        )
        self._conversations[conversation.id] = conversation
        self._messages[conversation.id] = []
        return conversation.model_copy(deep=True)

    def update_conversation(
        self,
        conversation_id: UUID,
        *,
        status: Optional[str] = None,
        last_message_at: Optional[datetime] = None,
        urgency_score: Optional[int] = None,
        urgency_reasons: Optional[List[Dict[str, str]]] = None,
        updated_at: Optional[datetime] = None,
    ) -> schemas.ConversationSummary:
        conversation = self._require(conversation_id)
        if status is not None:
            conversation.status = status
        if last_message_at is not None:
            conversation.last_message_at = as_utc(last_message_at)
        if urgency_score is not None:
            conversation.urgency_score = urgency_score
        if urgency_reasons is not None:
            conversation.urgency_reasons = [
                schemas.UrgencyReasonOut(**r) for r in urgency_reasons
            ]
        conversation.updated_at = as_utc(updated_at or utcnow())
        return conversation.model_copy(deep=True)

    def create_message(
        self,
        conversation_id: UUID,
        *,
        sender_type: str,
        content: str,
        timestamp: datetime,
        is_read: bool,
    ) -> schemas.MessageOut:
        self._require(conversation_id)
        message = schemas.MessageOut(
            id=uuid.uuid4(),
            conversation_id=conversation_id,
            sender_type=sender_type,
            content=content,
            timestamp=timestamp,
            is_read=is_read,
        )
        messages = self._messages[conversation_id]
        messages.append(message)
        messages.sort(key=lambda m: m.timestamp)
        return message.model_copy()

    def get_conversation(self, conversation_id: UUID) -> Optional[schemas.ConversationDetail]:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            return None
        messages = [m.model_copy() for m in self._messages[conversation_id]]
        return schemas.ConversationDetail(
            **conversation.model_dump(exclude={"last_message"}),
            messages=messages,
            last_message=messages[-1] if messages else None,
        )

    def find_latest_conversation(self, customer_id: str) -> Optional[schemas.ConversationSummary]:
        candidates = [c for c in self._conversations.values() if c.customer_id == customer_id]
        if not candidates:
            return None
        return max(candidates, key=lambda c: c.last_message_at).model_copy(deep=True)

    def list_conversations(
        self, filters: ConversationFilters
    ) -> List[schemas.ConversationSummary]:
        items: List[schemas.ConversationSummary] = []
        for conversation in self._conversations.values():
            if self._matches(conversation, filters):
                summary = conversation.model_copy(deep=True)
                messages = self._messages[conversation.id]
                summary.last_message = messages[-1].model_copy() if messages else None
                items.append(summary)
        items.sort(key=lambda c: (c.urgency_score, c.last_message_at), reverse=True)
        return items

    def mark_customer_messages_read(self, conversation_id: UUID) -> int:
        self._require(conversation_id)
        changed = 0
        for message in self._messages[conversation_id]:
            if message.sender_type == SenderType.CUSTOMER.value and not message.is_read:
                message.is_read = True
                changed += 1
        return changed

    # Helpers -------------------------------------------------------------------
    def _require(self, conversation_id: UUID) -> schemas.ConversationSummary:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    def _matches(
        self, conversation: schemas.ConversationSummary, filters: ConversationFilters
    ) -> bool:
        status = filters.effective_status
        if status and conversation.status != status:
            return False
        if filters.min_urgency is not None and conversation.urgency_score < filters.min_urgency:
            return False
        if filters.assigned_to == UNASSIGNED and conversation.assigned_to is not None:
            return False
        if (
            filters.assigned_to
            and filters.assigned_to not in (UNASSIGNED, ASSIGNED_TO_ME)
            and conversation.assigned_to != filters.assigned_to
        ):
            return False
        messages = self._messages[conversation.id]
        search = filters.search
        if search:
            needle = search.lower()
            haystacks = [conversation.title, conversation.customer_id]
            haystacks.extend(m.content for m in messages)
            if not any(needle in h.lower() for h in haystacks):
                return False
        if filters.unread_only and not any(
            m.sender_type == SenderType.CUSTOMER.value and not m.is_read for m in messages
        ):
            return False
        return True


__all__ = [
    "ConversationStore",
    "InMemoryConversationRepository",
    "SqlAlchemyConversationRepository",
    "make_title",
]
