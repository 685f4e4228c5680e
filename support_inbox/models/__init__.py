"""SQLAlchemy declarative base and inbox models.

``Base`` is shared by every ORM model; the concrete models live in
:mod:`support_inbox.models.inbox` and are re-exported here so callers can
write ``from support_inbox.models import Conversation``.
"""

from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy declarative models."""


from .inbox import (  # noqa: E402
    Conversation,
    ConversationStatus,
    Customer,
    Message,
    SenderType,
)


__all__ = [
    "Base",
    "Conversation",
    "ConversationStatus",
    "Customer",
    "Message",
    "SenderType",
]
