"""Pydantic schemas for the conversation APIs."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated
from uuid import UUID

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from ..scoring.urgency import UrgencyReason
from ..timeutils import as_utc

UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class UrgencyReasonOut(BaseModel):
    rule: str
    description: str

    def to_domain(self) -> UrgencyReason:
        return UrgencyReason(rule=self.rule, description=self.description)


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    conversation_id: UUID
    sender_type: str
    content: str
    timestamp: UtcDatetime
    is_read: bool = False


class ConversationSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    customer_id: str
    title: str
    status: str
    assigned_to: str | None = None
    last_message_at: UtcDatetime
    urgency_score: int = 0
    urgency_reasons: list[UrgencyReasonOut] = Field(default_factory=list)
    created_at: UtcDatetime
    updated_at: UtcDatetime
    last_message: MessageOut | None = None

    def reasons(self) -> list[UrgencyReason]:
        return [reason.to_domain() for reason in self.urgency_reasons]


class ConversationDetail(ConversationSummary):
    messages: list[MessageOut] = Field(default_factory=list)


class ConversationList(BaseModel):
    items: list[ConversationSummary]
    total: int


class ReplyRequest(BaseModel):
    content: str = Field(min_length=1, max_length=5000)


class StatusUpdateRequest(BaseModel):
    status: str


class InboundMessageRequest(BaseModel):
    """Customer message delivered by a live channel rather than the CSV."""

    customer_id: str = Field(min_length=1, max_length=255)
    content: str = Field(max_length=5000)
    timestamp: UtcDatetime | None = None


class InboundMessageResponse(BaseModel):
    conversation: ConversationSummary
    message: MessageOut
    created_conversation: bool
    gap_hours: float
