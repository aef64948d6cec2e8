"""Typed annotations attached to a generated response.

The pipeline records what it did to a reply (task created, queued for
approval, escalated) as a list of annotations. Each one renders its own
metadata keys; :func:`fold_metadata` applies them in order over the
responder's metadata to produce the flat dict delivered to channels and
stored on approval items.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Union


@dataclass(frozen=True)
class TaskCreated:
    task_id: str
    department: str
    priority: str

    def to_metadata(self) -> dict[str, Any]:
        return {
            "task_created": True,
            "task_id": self.task_id,
            "task_department": self.department,
            "task_priority": self.priority,
        }


@dataclass(frozen=True)
class TaskPendingApproval:
    approval_id: str
    department: str
    priority: str

    def to_metadata(self) -> dict[str, Any]:
        return {
            "task_pending_approval": True,
            "approval_id": self.approval_id,
            "task_department": self.department,
            "task_priority": self.priority,
        }


@dataclass(frozen=True)
class Escalated:
    reasons: tuple[str, ...]
    priority: str

    def to_metadata(self) -> dict[str, Any]:
        return {
            "escalated": True,
            "escalation_reasons": list(self.reasons),
            "escalation_priority": self.priority,
        }


@dataclass(frozen=True)
class PendingApproval:
    """The reply is held; its content lives only in the approval item."""

    approval_id: str

    def to_metadata(self) -> dict[str, Any]:
        return {
            "pending_approval": True,
            "approval_id": self.approval_id,
        }


ResponseAnnotation = Union[TaskCreated, TaskPendingApproval, Escalated, PendingApproval]


def fold_metadata(
    base: dict[str, Any] | None, annotations: Iterable[ResponseAnnotation]
) -> dict[str, Any] | None:
    """Merge annotation metadata over ``base``; later annotations win."""

    merged: dict[str, Any] = dict(base or {})
    for annotation in annotations:
        merged.update(annotation.to_metadata())
    return merged or None
