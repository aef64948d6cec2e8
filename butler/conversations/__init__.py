"""Conversation persistence and state management."""

from .models import InboundMessage, NewMessage, OutboundMessage
from .repository import (
    ConversationRepository,
    InMemoryConversationRepository,
    PostgresConversationRepository,
)
from .schemas import Conversation, ConversationDetail, Message
from .service import ConversationService

__all__ = [
    "Conversation",
    "ConversationDetail",
    "ConversationRepository",
    "ConversationService",
    "InMemoryConversationRepository",
    "InboundMessage",
    "Message",
    "NewMessage",
    "OutboundMessage",
    "PostgresConversationRepository",
]
