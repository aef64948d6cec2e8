"""Domain models used by the conversation service and the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from butler.core.annotations import ResponseAnnotation

ChannelType = Literal["whatsapp", "sms", "email", "webchat"]
ConversationState = Literal["new", "active", "escalated", "resolved", "abandoned"]
MessageDirection = Literal["inbound", "outbound"]
SenderType = Literal["guest", "ai", "staff", "system"]

OPEN_STATES: tuple[ConversationState, ...] = ("new", "active", "escalated")


@dataclass
class InboundMessage:
    """Uniform representation of a message received on any channel."""

    id: str
    channel: str
    channel_id: str
    content: str
    content_type: str = "text"
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    raw: Any = None
    conversation_id: str | None = None


@dataclass
class OutboundMessage:
    conversation_id: str
    content: str
    content_type: str = "text"
    metadata: dict[str, Any] | None = None
    annotations: tuple[ResponseAnnotation, ...] = ()


@dataclass
class NewMessage:
    direction: MessageDirection
    sender_type: SenderType
    content: str
    content_type: str = "text"
    sender_id: str | None = None
    intent: str | None = None
    confidence: float | None = None
    entities: list[dict[str, Any]] | None = None
