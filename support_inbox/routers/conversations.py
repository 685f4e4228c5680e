"""Conversation management API routes."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, Request
from sqlalchemy.exc import SQLAlchemyError

from ..conversations import schemas as convo_schemas
from ..conversations.models import (
    ConversationFilters,
    ConversationNotFoundError,
    InvalidStatusError,
)
from ..conversations.repository import SqlAlchemyConversationRepository
from ..conversations.service import ConversationService, customer_locks
from ..config import get_settings
from ..events import events
from ..ingestion.windowing import ConversationWindower
from ..models.session import get_sessionmaker
from ..rate_limit import limiter, reply_rate_limit

router = APIRouter(prefix="/api/conversations", tags=["conversations"])

logger = logging.getLogger(__name__)


@contextmanager
def _service_context() -> Iterator[ConversationService]:
    """Yield a service bound to a fresh session; commit, then publish events."""

    settings = get_settings()
    session = get_sessionmaker(settings.database_url)()
    pending: list[dict[str, Any]] = []
    service = ConversationService(
        SqlAlchemyConversationRepository(session),
        windower=ConversationWindower(settings.conversation_window_hours),
        publish=pending.append,
    )
    try:
        yield service
        session.commit()
    except ConversationNotFoundError as exc:
        session.rollback()
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidStatusError as exc:
        session.rollback()
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except HTTPException:
        session.rollback()
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Database error while handling conversation request")
        raise HTTPException(status_code=500, detail="Database error") from exc
    finally:
        session.close()
    for payload in pending:
        events.publish(payload)


@router.get("", response_model=convo_schemas.ConversationList)
def list_conversations(
    q: str | None = None,
    status: str | None = None,
    min_urgency: int | None = Query(default=None, alias="minUrgency", ge=0, le=100),
    assigned_to: str | None = Query(default=None, alias="assignedTo"),
    unread_only: bool = Query(default=False, alias="unreadOnly"),
) -> convo_schemas.ConversationList:
    """List conversations, most urgent first."""
    filters = ConversationFilters(
        q=q,
        status=status,
        min_urgency=min_urgency,
        assigned_to=assigned_to,
        unread_only=unread_only,
    )
    with _service_context() as conversations:
        return conversations.list_conversations(filters)


@router.post(
    "/inbound",
    response_model=convo_schemas.InboundMessageResponse,
    status_code=201,
)
def receive_inbound_message(
    payload: convo_schemas.InboundMessageRequest,
) -> convo_schemas.InboundMessageResponse:
    """Accept a customer message from a live channel.

    The customer lock is held until the transaction has committed.
    """
    with customer_locks.hold(payload.customer_id.strip()), _service_context() as conversations:
        return conversations.receive_customer_message(
            payload.customer_id, payload.content, payload.timestamp
        )


@router.get("/{conversation_id}", response_model=convo_schemas.ConversationDetail)
def get_conversation(conversation_id: UUID) -> convo_schemas.ConversationDetail:
    with _service_context() as conversations:
        detail = conversations.get_conversation(conversation_id)
    logger.debug(
        "GET conversation %s -> %d message(s)", conversation_id, len(detail.messages)
    )
    return detail


@router.post("/{conversation_id}/reply", response_model=convo_schemas.MessageOut)
@limiter.limit(reply_rate_limit)
def reply_to_conversation(
    request: Request,
    conversation_id: UUID,
    payload: convo_schemas.ReplyRequest,
) -> convo_schemas.MessageOut:
    """Send an agent reply; the conversation moves to ``WAITING``."""
    if not payload.content.strip():
        raise HTTPException(status_code=400, detail="Reply content is required")
    with _service_context() as conversations:
        return conversations.reply(conversation_id, payload.content)


@router.patch("/{conversation_id}/status", response_model=convo_schemas.ConversationSummary)
def update_conversation_status(
    conversation_id: UUID,
    payload: convo_schemas.StatusUpdateRequest,
) -> convo_schemas.ConversationSummary:
    with _service_context() as conversations:
        return conversations.update_status(conversation_id, payload.status)


@router.post("/{conversation_id}/read", response_model=convo_schemas.ConversationDetail)
def mark_conversation_read(conversation_id: UUID) -> convo_schemas.ConversationDetail:
    with _service_context() as conversations:
        return conversations.mark_read(conversation_id)
