"""Approval queue for actions awaiting staff sign-off."""

from .queue import ApprovalQueue
from .repository import ApprovalRepository, InMemoryApprovalRepository, PostgresApprovalRepository
from .schemas import ApprovalItem, ApprovalList, CreateApprovalInput, RejectRequest

__all__ = [
    "ApprovalItem",
    "ApprovalList",
    "ApprovalQueue",
    "ApprovalRepository",
    "CreateApprovalInput",
    "InMemoryApprovalRepository",
    "PostgresApprovalRepository",
    "RejectRequest",
]
