"""Database repository for conversations."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, Tuple
from uuid import uuid4

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from butler.errors import NotFoundError

from .models import OPEN_STATES, NewMessage
from .schemas import Conversation, Message

_UPDATABLE_FIELDS = frozenset({"state", "guest_id", "reservation_id", "metadata", "last_message_at"})


class ConversationRepository(Protocol):
    """Abstraction for persisting conversations and their messages."""

    async def find_or_create(
        self, channel_type: str, channel_id: str, guest_id: Optional[str] = None
    ) -> Tuple[Conversation, bool]: ...

    async def get(self, conversation_id: str) -> Optional[Conversation]: ...

    async def update(self, conversation_id: str, **fields: Any) -> Optional[Conversation]: ...

    async def add_message(self, conversation_id: str, message: NewMessage) -> Message: ...

    async def list_messages(self, conversation_id: str, limit: int = 50) -> List[Message]: ...


def new_conversation_id() -> str:
    return f"conv_{uuid4().hex[:16]}"


def new_message_id() -> str:
    return f"msg_{uuid4().hex[:16]}"


def _check_fields(fields: Dict[str, Any]) -> None:
    unknown = set(fields) - _UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update conversation fields: {sorted(unknown)}")


class InMemoryConversationRepository:
    """Dictionary-backed repository; lookups and inserts never yield, so
    find-or-create is atomic within one event loop."""

    def __init__(self) -> None:
        self._conversations: Dict[str, Conversation] = {}
        self._messages: Dict[str, List[Message]] = {}

    async def find_or_create(
        self, channel_type: str, channel_id: str, guest_id: Optional[str] = None
    ) -> Tuple[Conversation, bool]:
        for conversation in self._conversations.values():
            if (
                conversation.channel_type == channel_type
                and conversation.channel_id == channel_id
                and conversation.state in OPEN_STATES
            ):
                return conversation.model_copy(deep=True), False
        conversation = Conversation(
            id=new_conversation_id(),
            channel_type=channel_type,
            channel_id=channel_id,
            guest_id=guest_id,
        )
        self._conversations[conversation.id] = conversation
        self._messages[conversation.id] = []
        return conversation.model_copy(deep=True), True

    async def get(self, conversation_id: str) -> Optional[Conversation]:
        conversation = self._conversations.get(conversation_id)
        return conversation.model_copy(deep=True) if conversation else None

    async def update(self, conversation_id: str, **fields: Any) -> Optional[Conversation]:
        _check_fields(fields)
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            return None
        updated = conversation.model_copy(
            update={**fields, "updated_at": datetime.now(timezone.utc)}, deep=True
        )
        self._conversations[conversation_id] = updated
        return updated.model_copy(deep=True)

    async def add_message(self, conversation_id: str, message: NewMessage) -> Message:
        if conversation_id not in self._conversations:
            raise NotFoundError("Conversation", conversation_id)
        stored = Message(
            id=new_message_id(),
            conversation_id=conversation_id,
            direction=message.direction,
            sender_type=message.sender_type,
            sender_id=message.sender_id,
            content=message.content,
            content_type=message.content_type,
            intent=message.intent,
            confidence=message.confidence,
            entities=message.entities,
        )
        self._messages[conversation_id].append(stored)
        return stored

    async def list_messages(self, conversation_id: str, limit: int = 50) -> List[Message]:
        messages = self._messages.get(conversation_id, [])
        return [m.model_copy() for m in messages[-limit:]] if limit > 0 else []


class PostgresConversationRepository:
    """PostgreSQL implementation of :class:`ConversationRepository`."""

    def __init__(self, conn: psycopg.AsyncConnection) -> None:
        self._conn = conn

    # Utility -----------------------------------------------------------------
    def _cursor(self):
        return self._conn.cursor(row_factory=dict_row)

    # Conversation operations --------------------------------------------------
    async def find_or_create(
        self, channel_type: str, channel_id: str, guest_id: Optional[str] = None
    ) -> Tuple[Conversation, bool]:
        # The partial unique index on open conversations makes concurrent
        # inserts collapse into one row; the loser re-reads the winner.
        async with self._cursor() as cur:
            await cur.execute(
                """
                INSERT INTO conversations (id, channel_type, channel_id, guest_id, state)
                VALUES (%s, %s, %s, %s, 'new')
                ON CONFLICT (channel_type, channel_id)
                    WHERE state IN ('new', 'active', 'escalated')
                DO NOTHING
                RETURNING *
                """,
                (new_conversation_id(), channel_type, channel_id, guest_id),
            )
            row = await cur.fetchone()
            created = row is not None
            if not created:
                await cur.execute(
                    """
                    SELECT * FROM conversations
                    WHERE channel_type = %s AND channel_id = %s
                      AND state IN ('new', 'active', 'escalated')
                    """,
                    (channel_type, channel_id),
                )
                row = await cur.fetchone()
        return Conversation(**row), created

    async def get(self, conversation_id: str) -> Optional[Conversation]:
        async with self._cursor() as cur:
            await cur.execute("SELECT * FROM conversations WHERE id = %s", (conversation_id,))
            row = await cur.fetchone()
        return Conversation(**row) if row else None

    async def update(self, conversation_id: str, **fields: Any) -> Optional[Conversation]:
        _check_fields(fields)
        if not fields:
            return await self.get(conversation_id)
        assignments = ", ".join(f"{name} = %s" for name in fields)
        values = [Jsonb(v) if name == "metadata" else v for name, v in fields.items()]
        async with self._cursor() as cur:
            await cur.execute(
                f"UPDATE conversations SET {assignments}, updated_at = now() WHERE id = %s RETURNING *",
                (*values, conversation_id),
            )
            row = await cur.fetchone()
        return Conversation(**row) if row else None

    # Message operations -------------------------------------------------------
    async def add_message(self, conversation_id: str, message: NewMessage) -> Message:
        async with self._cursor() as cur:
            await cur.execute(
                """
                INSERT INTO messages (id, conversation_id, direction, sender_type, sender_id,
                                      content, content_type, intent, confidence, entities)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (
                    new_message_id(),
                    conversation_id,
                    message.direction,
                    message.sender_type,
                    message.sender_id,
                    message.content,
                    message.content_type,
                    message.intent,
                    message.confidence,
                    Jsonb(message.entities) if message.entities is not None else None,
                ),
            )
            row = await cur.fetchone()
        return Message(**row)

    async def list_messages(self, conversation_id: str, limit: int = 50) -> List[Message]:
        async with self._cursor() as cur:
            await cur.execute(
                """
                SELECT * FROM (
                    SELECT * FROM messages WHERE conversation_id = %s
                    ORDER BY created_at DESC LIMIT %s
                ) recent ORDER BY created_at
                """,
                (conversation_id, limit),
            )
            rows = await cur.fetchall()
        return [Message(**row) for row in rows]
