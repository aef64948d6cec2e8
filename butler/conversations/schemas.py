"""Pydantic schemas for stored conversations and their messages."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from .models import ConversationState, MessageDirection, SenderType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Conversation(BaseModel):
    id: str
    channel_type: str
    channel_id: str
    guest_id: str | None = None
    reservation_id: str | None = None
    state: ConversationState = "new"
    metadata: dict[str, Any] = Field(default_factory=dict)
    last_message_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class Message(BaseModel):
    id: str
    conversation_id: str
    direction: MessageDirection
    sender_type: SenderType
    sender_id: str | None = None
    content: str
    content_type: str = "text"
    intent: str | None = None
    confidence: float | None = None
    entities: list[dict[str, Any]] | None = None
    created_at: datetime = Field(default_factory=_utcnow)


class ConversationDetail(Conversation):
    messages: list[Message] = Field(default_factory=list)
