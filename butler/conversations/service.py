"""Conversation lookup, message persistence and state transitions."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from butler.errors import NotFoundError, ValidationError
from butler.events import EventBus, EventType

from .models import ConversationState, NewMessage
from .repository import ConversationRepository
from .schemas import Conversation, ConversationDetail, Message

logger = logging.getLogger(__name__)


class ConversationService:
    """Owns conversation state; other components only request transitions."""

    def __init__(self, repository: ConversationRepository, events: EventBus | None = None) -> None:
        self._repository = repository
        self._events = events or EventBus()

    # ------------------------------------------------------------------
    # Lookup

    async def find_or_create(
        self, channel: str, channel_id: str, guest_id: str | None = None
    ) -> Conversation:
        conversation, created = await self._repository.find_or_create(channel, channel_id, guest_id)
        if created:
            logger.info(
                "Conversation created",
                extra={"conversation_id": conversation.id, "channel": channel},
            )
            self._events.emit(
                EventType.CONVERSATION_CREATED,
                conversation_id=conversation.id,
                channel=channel,
                guest_id=guest_id,
            )
        elif guest_id and conversation.guest_id is None:
            conversation = await self.update(conversation.id, guest_id=guest_id)
        return conversation

    async def get(self, conversation_id: str) -> Conversation:
        conversation = await self._repository.get(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation", conversation_id)
        return conversation

    async def get_detail(self, conversation_id: str, *, limit: int = 50) -> ConversationDetail:
        conversation = await self.get(conversation_id)
        messages = await self._repository.list_messages(conversation_id, limit)
        return ConversationDetail(**conversation.model_dump(), messages=messages)

    async def recent_messages(self, conversation_id: str, limit: int = 10) -> list[Message]:
        """Return up to ``limit`` messages, oldest first."""

        return await self._repository.list_messages(conversation_id, limit)

    # ------------------------------------------------------------------
    # Mutations

    async def add_message(self, conversation_id: str, message: NewMessage) -> Message:
        stored = await self._repository.add_message(conversation_id, message)
        changes: dict[str, Any] = {"last_message_at": stored.created_at}
        conversation = await self.get(conversation_id)
        if conversation.state == "new":
            changes["state"] = "active"
        await self._repository.update(conversation_id, **changes)
        return stored

    async def update(
        self,
        conversation_id: str,
        *,
        state: ConversationState | None = None,
        guest_id: str | None = None,
        reservation_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Conversation:
        changes: dict[str, Any] = {}
        if state is not None:
            changes["state"] = state
        if guest_id is not None:
            changes["guest_id"] = guest_id
        if reservation_id is not None:
            changes["reservation_id"] = reservation_id
        if metadata is not None:
            changes["metadata"] = metadata
        conversation = await self._repository.update(conversation_id, **changes)
        if conversation is None:
            raise NotFoundError("Conversation", conversation_id)
        return conversation

    async def resolve(self, conversation_id: str, *, staff_id: str | None = None) -> Conversation:
        """Hand an escalated conversation back to the assistant."""

        conversation = await self.get(conversation_id)
        if conversation.state != "escalated":
            raise ValidationError(f"Conversation {conversation_id} is not escalated")
        metadata = dict(conversation.metadata)
        metadata.setdefault("resolutions", []).append(
            {"by": staff_id, "at": datetime.now(timezone.utc).isoformat()}
        )
        conversation = await self.update(conversation_id, state="active", metadata=metadata)
        self._events.emit(
            EventType.CONVERSATION_RESOLVED, conversation_id=conversation_id, staff_id=staff_id
        )
        return conversation

    async def close(self, conversation_id: str) -> Conversation:
        await self.get(conversation_id)
        return await self.update(conversation_id, state="resolved")
