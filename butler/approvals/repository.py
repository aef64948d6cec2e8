"""Persistence for approval items."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, Tuple
from uuid import uuid4

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from .schemas import ApprovalItem


class ApprovalRepository(Protocol):
    async def insert(self, item: ApprovalItem) -> ApprovalItem: ...

    async def get(self, item_id: str) -> Optional[ApprovalItem]: ...

    async def list(
        self, *, status: Optional[str] = None, limit: int = 50, offset: int = 0
    ) -> Tuple[List[ApprovalItem], int]: ...

    async def decide(
        self,
        item_id: str,
        *,
        status: str,
        decided_by: str,
        rejection_reason: Optional[str] = None,
    ) -> Optional[ApprovalItem]:
        """Move a pending item to ``status``; return ``None`` if it was not pending."""
        ...

    async def reopen(self, item_id: str) -> Optional[ApprovalItem]:
        """Return an approved item to ``pending``; ``None`` if it was not approved."""
        ...


def new_approval_id() -> str:
    return f"apv_{uuid4().hex[:16]}"


def _sort_key(item: ApprovalItem) -> Tuple[int, Any]:
    # Urgent first, then oldest first.
    return (0 if item.priority == "urgent" else 1, item.created_at)


class InMemoryApprovalRepository:
    def __init__(self) -> None:
        self._items: Dict[str, ApprovalItem] = {}

    async def insert(self, item: ApprovalItem) -> ApprovalItem:
        self._items[item.id] = item.model_copy(deep=True)
        return item

    async def get(self, item_id: str) -> Optional[ApprovalItem]:
        item = self._items.get(item_id)
        return item.model_copy(deep=True) if item else None

    async def list(
        self, *, status: Optional[str] = None, limit: int = 50, offset: int = 0
    ) -> Tuple[List[ApprovalItem], int]:
        matches = sorted(
            (i for i in self._items.values() if status is None or i.status == status),
            key=_sort_key,
        )
        return [i.model_copy(deep=True) for i in matches[offset : offset + limit]], len(matches)

    async def decide(
        self,
        item_id: str,
        *,
        status: str,
        decided_by: str,
        rejection_reason: Optional[str] = None,
    ) -> Optional[ApprovalItem]:
        item = self._items.get(item_id)
        if item is None or item.status != "pending":
            return None
        updated = item.model_copy(
            update={
                "status": status,
                "decided_by": decided_by,
                "decided_at": datetime.now(timezone.utc),
                "rejection_reason": rejection_reason,
            }
        )
        self._items[item_id] = updated
        return updated.model_copy(deep=True)

    async def reopen(self, item_id: str) -> Optional[ApprovalItem]:
        item = self._items.get(item_id)
        if item is None or item.status != "approved":
            return None
        reopened = item.model_copy(
            update={"status": "pending", "decided_by": None, "decided_at": None}
        )
        self._items[item_id] = reopened
        return reopened.model_copy(deep=True)


class PostgresApprovalRepository:
    """PostgreSQL implementation of :class:`ApprovalRepository`."""

    def __init__(self, conn: psycopg.AsyncConnection) -> None:
        self._conn = conn

    def _cursor(self):
        return self._conn.cursor(row_factory=dict_row)

    async def insert(self, item: ApprovalItem) -> ApprovalItem:
        async with self._cursor() as cur:
            await cur.execute(
                """
                INSERT INTO approval_queue (id, type, action_type, action_data, conversation_id,
                                            guest_id, status, priority, created_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (
                    item.id,
                    item.type,
                    item.action_type,
                    Jsonb(item.action_data),
                    item.conversation_id,
                    item.guest_id,
                    item.status,
                    item.priority,
                    item.created_at,
                ),
            )
            row = await cur.fetchone()
        return ApprovalItem(**row)

    async def get(self, item_id: str) -> Optional[ApprovalItem]:
        async with self._cursor() as cur:
            await cur.execute("SELECT * FROM approval_queue WHERE id = %s", (item_id,))
            row = await cur.fetchone()
        return ApprovalItem(**row) if row else None

    async def list(
        self, *, status: Optional[str] = None, limit: int = 50, offset: int = 0
    ) -> Tuple[List[ApprovalItem], int]:
        where = "WHERE status = %s" if status else ""
        params: List[Any] = [status] if status else []
        async with self._cursor() as cur:
            await cur.execute(f"SELECT count(*) AS total FROM approval_queue {where}", params)
            total = (await cur.fetchone())["total"]
            await cur.execute(
                f"""
                SELECT * FROM approval_queue {where}
                ORDER BY (priority = 'urgent') DESC, created_at
                LIMIT %s OFFSET %s
                """,
                (*params, limit, offset),
            )
            rows = await cur.fetchall()
        return [ApprovalItem(**row) for row in rows], total

    async def decide(
        self,
        item_id: str,
        *,
        status: str,
        decided_by: str,
        rejection_reason: Optional[str] = None,
    ) -> Optional[ApprovalItem]:
        # Only pending rows match; a concurrent decision leaves nothing to update.
        async with self._cursor() as cur:
            await cur.execute(
                """
                UPDATE approval_queue
                SET status = %s, decided_by = %s, decided_at = now(), rejection_reason = %s
                WHERE id = %s AND status = 'pending'
                RETURNING *
                """,
                (status, decided_by, rejection_reason, item_id),
            )
            row = await cur.fetchone()
        return ApprovalItem(**row) if row else None

    async def reopen(self, item_id: str) -> Optional[ApprovalItem]:
        async with self._cursor() as cur:
            await cur.execute(
                """
                UPDATE approval_queue
                SET status = 'pending', decided_by = NULL, decided_at = NULL
                WHERE id = %s AND status = 'approved'
                RETURNING *
                """,
                (item_id,),
            )
            row = await cur.fetchone()
        return ApprovalItem(**row) if row else None
