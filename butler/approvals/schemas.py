"""Pydantic schemas for the staff approval queue."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field

ApprovalType = Literal["task", "response"]
ApprovalStatus = Literal["pending", "approved", "rejected"]
ApprovalPriority = Literal["normal", "urgent"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CreateApprovalInput(BaseModel):
    type: ApprovalType
    action_type: str
    action_data: dict[str, Any]
    conversation_id: str
    guest_id: str | None = None
    priority: ApprovalPriority = "normal"


class ApprovalItem(BaseModel):
    id: str
    type: ApprovalType
    action_type: str
    action_data: dict[str, Any]
    conversation_id: str
    guest_id: str | None = None
    status: ApprovalStatus = "pending"
    priority: ApprovalPriority = "normal"
    decided_by: str | None = None
    decided_at: datetime | None = None
    rejection_reason: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)


class ApprovalList(BaseModel):
    items: list[ApprovalItem]
    total: int


class RejectRequest(BaseModel):
    reason: str | None = None
