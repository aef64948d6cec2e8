"""Pydantic schemas for staff tasks."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

TaskType = Literal["housekeeping", "maintenance", "concierge", "room_service", "other"]
TaskPriority = Literal["low", "standard", "high", "urgent"]
TaskStatus = Literal["pending", "assigned", "in_progress", "completed", "cancelled"]
TaskSource = Literal["manual", "auto", "automation"]

OPEN_TASK_STATUSES: tuple[TaskStatus, ...] = ("pending", "assigned", "in_progress")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CreateTaskInput(BaseModel):
    conversation_id: str | None = None
    message_id: str | None = None
    source: TaskSource = "manual"
    type: TaskType = "other"
    department: str
    room_number: str | None = None
    description: str
    items: list[str] = Field(default_factory=list)
    priority: TaskPriority = "standard"


class Task(BaseModel):
    id: str
    conversation_id: str | None = None
    message_id: str | None = None
    type: TaskType
    department: str
    room_number: str | None = None
    description: str
    items: list[str] = Field(default_factory=list)
    priority: TaskPriority
    status: TaskStatus = "pending"
    assigned_to: str | None = None
    source: TaskSource
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    assigned_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    completion_notes: str | None = None


class TaskList(BaseModel):
    items: list[Task]
    total: int


class CompleteTaskRequest(BaseModel):
    notes: str | None = None
