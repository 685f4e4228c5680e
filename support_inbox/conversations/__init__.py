"""Conversation persistence, schemas and the live inbox service."""

from . import schemas
from .models import ConversationFilters, ConversationNotFoundError, InvalidStatusError

__all__ = [
    "ConversationFilters",
    "ConversationNotFoundError",
    "InvalidStatusError",
    "schemas",
]
