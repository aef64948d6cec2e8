"""Task lifecycle operations used by the pipeline and staff endpoints."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from butler.errors import NotFoundError, ValidationError
from butler.events import EventBus, EventType

from .repository import TaskRepository, new_task_id
from .schemas import OPEN_TASK_STATUSES, CreateTaskInput, Task, TaskList

logger = logging.getLogger(__name__)


class TaskService:
    """Creates tasks and moves them through ``pending → assigned → completed``.

    Creation does not emit ``task.created``; callers that create tasks on a
    guest's behalf (the pipeline, the approval queue) emit it with their own
    context.
    """

    def __init__(self, repository: TaskRepository, events: EventBus | None = None) -> None:
        self._repository = repository
        self._events = events or EventBus()

    async def create(self, data: CreateTaskInput) -> Task:
        now = datetime.now(timezone.utc)
        task = Task(id=new_task_id(), created_at=now, updated_at=now, **data.model_dump())
        task = await self._repository.create(task)
        logger.info(
            "Task created",
            extra={"task_id": task.id, "department": task.department, "priority": task.priority},
        )
        return task

    async def get(self, task_id: str) -> Task:
        task = await self._repository.get(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    async def list(
        self,
        *,
        status: str | None = None,
        department: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> TaskList:
        items, total = await self._repository.list(
            status=status, department=department, limit=limit, offset=offset
        )
        return TaskList(items=items, total=total)

    async def update(self, task_id: str, **changes: Any) -> Task:
        task = await self._repository.update(task_id, **changes)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    async def _transition(
        self, task_id: str, from_statuses: tuple[str, ...], action: str, **changes: Any
    ) -> Task:
        task = await self.get(task_id)
        if task.status in from_statuses:
            updated = await self._repository.transition(task_id, from_statuses, **changes)
            if updated is not None:
                return updated
            # Changed concurrently since the read above.
            task = await self.get(task_id)
        raise ValidationError(f"Task {task_id} cannot be {action} from status {task.status}")

    async def claim(self, task_id: str, staff_id: str) -> Task:
        task = await self._transition(
            task_id,
            ("pending",),
            "claimed",
            status="assigned",
            assigned_to=staff_id,
            assigned_at=datetime.now(timezone.utc),
        )
        self._events.emit(EventType.TASK_ASSIGNED, task_id=task_id, assigned_to=staff_id)
        return task

    async def start(self, task_id: str) -> Task:
        return await self._transition(
            task_id,
            ("pending", "assigned"),
            "started",
            status="in_progress",
            started_at=datetime.now(timezone.utc),
        )

    async def complete(
        self, task_id: str, *, staff_id: str | None = None, notes: str | None = None
    ) -> Task:
        current = await self.get(task_id)
        changes: dict[str, Any] = {
            "status": "completed",
            "completed_at": datetime.now(timezone.utc),
            "completion_notes": notes,
        }
        if current.assigned_to is None and staff_id is not None:
            changes["assigned_to"] = staff_id
        task = await self._transition(task_id, OPEN_TASK_STATUSES, "completed", **changes)
        self._events.emit(
            EventType.TASK_COMPLETED, task_id=task_id, completed_by=staff_id or task.assigned_to
        )
        return task

    async def cancel(self, task_id: str) -> Task:
        return await self._transition(task_id, OPEN_TASK_STATUSES, "cancelled", status="cancelled")
