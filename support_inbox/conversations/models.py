"""Domain errors and filter types used by the conversation service."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from ..models import ConversationStatus

VALID_STATUSES = frozenset(status.value for status in ConversationStatus)
ALL_STATUSES = "ALL"
UNASSIGNED = "UNASSIGNED"
ASSIGNED_TO_ME = "ME"


class ConversationNotFoundError(LookupError):
    def __init__(self, conversation_id: UUID | str) -> None:
        super().__init__(f"Conversation {conversation_id} not found")
        self.conversation_id = conversation_id


class InvalidStatusError(ValueError):
    def __init__(self, status: str) -> None:
        super().__init__(
            f"Invalid status {status!r}; expected one of {', '.join(sorted(VALID_STATUSES))}"
        )
        self.status = status


@dataclass(frozen=True)
class ConversationFilters:
    """Filters accepted by the conversation list.

    ``status="ALL"`` and ``assigned_to="ME"`` leave the list unfiltered;
    ``assigned_to="UNASSIGNED"`` keeps conversations with no agent.
    """

    q: str | None = None
    status: str | None = None
    min_urgency: int | None = None
    assigned_to: str | None = None
    unread_only: bool = False

    @property
    def effective_status(self) -> str | None:
        if not self.status or self.status == ALL_STATUSES:
            return None
        return self.status

    @property
    def search(self) -> str | None:
        return self.q.strip() if self.q and self.q.strip() else None


__all__ = [
    "ALL_STATUSES",
    "ASSIGNED_TO_ME",
    "ConversationFilters",
    "ConversationNotFoundError",
    "InvalidStatusError",
    "UNASSIGNED",
    "VALID_STATUSES",
]
