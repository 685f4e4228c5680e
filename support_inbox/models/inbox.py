"""Inbox ORM models: customers, conversations and their messages.

Timestamps are stored with ``DateTime(timezone=True)``. SQLite hands them back
naive; callers that compare them normalise to UTC first (see
:func:`support_inbox.timeutils.as_utc`).
"""

from __future__ import annotations

import datetime as dt
import uuid
from enum import Enum
from typing import Any, List

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..timeutils import utcnow as _utcnow
from . import Base


class ConversationStatus(str, Enum):
    """Lifecycle of a conversation from the agent's point of view."""

    OPEN = "OPEN"
    WAITING = "WAITING"
    RESOLVED = "RESOLVED"


class SenderType(str, Enum):
    CUSTOMER = "CUSTOMER"
    AGENT = "AGENT"


class Customer(Base):
    """A customer identified by the id carried in the source data.

    Attributes:
        id: Identifier from the message feed (``User ID`` column).
        first_name: Display name; ingestion fills in ``"User"``.
        last_name: Display name; ingestion fills in the customer id.
        conversations: Every conversation started by the customer.
    """

    __tablename__ = "customers"

    id: Mapped[str] = mapped_column(String(length=255), primary_key=True)
    first_name: Mapped[str] = mapped_column(String(length=255), nullable=False)
    last_name: Mapped[str] = mapped_column(String(length=255), nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    conversations: Mapped[List["Conversation"]] = relationship(
        back_populates="customer",
        passive_deletes=True,
    )


class Conversation(Base):
    """A window of customer activity handled as a single support thread.

    Attributes:
        status: One of :class:`ConversationStatus`.
        assigned_to: Agent handle, ``None`` while unassigned.
        last_message_at: Timestamp of the newest message in the thread.
        urgency_score: Accumulated urgency, capped at 100.
        urgency_reasons: List of ``{"rule", "description"}`` objects, unique
            by exact pair.
    """

    __tablename__ = "conversations"
    __table_args__ = (
        Index("ix_conversations_customer_id", "customer_id"),
        Index("ix_conversations_urgency", "urgency_score", "last_message_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )
    customer_id: Mapped[str] = mapped_column(
        String(length=255),
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(length=255), nullable=False)
    status: Mapped[str] = mapped_column(
        String(length=16),
        nullable=False,
        default=ConversationStatus.OPEN.value,
        server_default=text("'OPEN'"),
    )
    assigned_to: Mapped[str | None] = mapped_column(String(length=255), nullable=True)
    last_message_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    urgency_score: Mapped[int] = mapped_column(
        Integer(),
        nullable=False,
        default=0,
        server_default=text("0"),
    )
    urgency_reasons: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON(),
        nullable=False,
        default=list,
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    customer: Mapped[Customer] = relationship(back_populates="conversations")
    messages: Mapped[List["Message"]] = relationship(
        back_populates="conversation",
        order_by="Message.timestamp",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Message(Base):
    """A single message; append-only once written."""

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_conversation_timestamp", "conversation_id", "timestamp"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )
    conversation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_type: Mapped[str] = mapped_column(String(length=16), nullable=False)
    content: Mapped[str] = mapped_column(Text(), nullable=False)
    timestamp: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_read: Mapped[bool] = mapped_column(
        Boolean(),
        nullable=False,
        default=False,
        server_default=text("false"),
    )

    conversation: Mapped[Conversation] = relationship(back_populates="messages")


__all__ = ["Conversation", "ConversationStatus", "Customer", "Message", "SenderType"]
