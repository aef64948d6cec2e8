"""Persistence for staff tasks."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple
from uuid import uuid4

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from .schemas import Task

_UPDATABLE_FIELDS = frozenset(
    {
        "status",
        "assigned_to",
        "priority",
        "description",
        "room_number",
        "assigned_at",
        "started_at",
        "completed_at",
        "completion_notes",
    }
)


class TaskRepository(Protocol):
    async def create(self, task: Task) -> Task: ...

    async def get(self, task_id: str) -> Optional[Task]: ...

    async def list(
        self,
        *,
        status: Optional[str] = None,
        department: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Task], int]: ...

    async def update(self, task_id: str, **fields: Any) -> Optional[Task]: ...

    async def transition(
        self, task_id: str, from_statuses: Sequence[str], **fields: Any
    ) -> Optional[Task]:
        """Apply ``fields`` only while the task is in one of ``from_statuses``."""
        ...


def new_task_id() -> str:
    return f"task_{uuid4().hex[:16]}"


def _check_fields(fields: Dict[str, Any]) -> None:
    unknown = set(fields) - _UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update task fields: {sorted(unknown)}")


class InMemoryTaskRepository:
    def __init__(self) -> None:
        self._tasks: Dict[str, Task] = {}

    async def create(self, task: Task) -> Task:
        self._tasks[task.id] = task.model_copy(deep=True)
        return task

    async def get(self, task_id: str) -> Optional[Task]:
        task = self._tasks.get(task_id)
        return task.model_copy(deep=True) if task else None

    async def list(
        self,
        *,
        status: Optional[str] = None,
        department: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Task], int]:
        matches = [
            task
            for task in self._tasks.values()
            if (status is None or task.status == status)
            and (department is None or task.department == department)
        ]
        matches.sort(key=lambda t: t.created_at, reverse=True)
        page = matches[offset : offset + limit]
        return [t.model_copy(deep=True) for t in page], len(matches)

    async def update(self, task_id: str, **fields: Any) -> Optional[Task]:
        _check_fields(fields)
        task = self._tasks.get(task_id)
        if task is None:
            return None
        updated = task.model_copy(update={**fields, "updated_at": datetime.now(timezone.utc)})
        self._tasks[task_id] = updated
        return updated.model_copy(deep=True)

    async def transition(
        self, task_id: str, from_statuses: Sequence[str], **fields: Any
    ) -> Optional[Task]:
        task = self._tasks.get(task_id)
        if task is None or task.status not in from_statuses:
            return None
        return await self.update(task_id, **fields)


class PostgresTaskRepository:
    """PostgreSQL implementation of :class:`TaskRepository`."""

    def __init__(self, conn: psycopg.AsyncConnection) -> None:
        self._conn = conn

    def _cursor(self):
        return self._conn.cursor(row_factory=dict_row)

    async def create(self, task: Task) -> Task:
        async with self._cursor() as cur:
            await cur.execute(
                """
                INSERT INTO tasks (id, conversation_id, message_id, type, department, room_number,
                                   description, items, priority, status, source, created_at, updated_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (
                    task.id,
                    task.conversation_id,
                    task.message_id,
                    task.type,
                    task.department,
                    task.room_number,
                    task.description,
                    Jsonb(task.items),
                    task.priority,
                    task.status,
                    task.source,
                    task.created_at,
                    task.updated_at,
                ),
            )
            row = await cur.fetchone()
        return Task(**row)

    async def get(self, task_id: str) -> Optional[Task]:
        async with self._cursor() as cur:
            await cur.execute("SELECT * FROM tasks WHERE id = %s", (task_id,))
            row = await cur.fetchone()
        return Task(**row) if row else None

    async def list(
        self,
        *,
        status: Optional[str] = None,
        department: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Task], int]:
        clauses: List[str] = []
        params: List[Any] = []
        if status is not None:
            clauses.append("status = %s")
            params.append(status)
        if department is not None:
            clauses.append("department = %s")
            params.append(department)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        async with self._cursor() as cur:
            await cur.execute(f"SELECT count(*) AS total FROM tasks {where}", params)
            total = (await cur.fetchone())["total"]
            await cur.execute(
                f"SELECT * FROM tasks {where} ORDER BY created_at DESC LIMIT %s OFFSET %s",
                (*params, limit, offset),
            )
            rows = await cur.fetchall()
        return [Task(**row) for row in rows], total

    async def update(self, task_id: str, **fields: Any) -> Optional[Task]:
        _check_fields(fields)
        if not fields:
            return await self.get(task_id)
        assignments = ", ".join(f"{name} = %s" for name in fields)
        async with self._cursor() as cur:
            await cur.execute(
                f"UPDATE tasks SET {assignments}, updated_at = now() WHERE id = %s RETURNING *",
                (*fields.values(), task_id),
            )
            row = await cur.fetchone()
        return Task(**row) if row else None

    async def transition(
        self, task_id: str, from_statuses: Sequence[str], **fields: Any
    ) -> Optional[Task]:
        _check_fields(fields)
        assignments = ", ".join(f"{name} = %s" for name in fields)
        async with self._cursor() as cur:
            await cur.execute(
                f"""
                UPDATE tasks SET {assignments}, updated_at = now()
                WHERE id = %s AND status = ANY(%s)
                RETURNING *
                """,
                (*fields.values(), task_id, list(from_statuses)),
            )
            row = await cur.fetchone()
        return Task(**row) if row else None
