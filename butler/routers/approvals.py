"""Staff review endpoints for the approval queue."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from butler.approvals.schemas import ApprovalItem, ApprovalList, ApprovalStatus, RejectRequest
from butler.container import Services

from .deps import get_services, require_staff_id, service_errors

router = APIRouter(tags=["approvals"])


@router.get("/api/approvals", response_model=ApprovalList)
async def list_approvals(
    status: ApprovalStatus | None = "pending",
    limit: int = 50,
    offset: int = 0,
    services: Services = Depends(get_services),
) -> ApprovalList:
    """List queued items, urgent first then oldest first."""
    return await services.approvals.list(status=status, limit=limit, offset=offset)


@router.get("/api/approvals/{item_id}", response_model=ApprovalItem)
async def get_approval(
    item_id: str, services: Services = Depends(get_services)
) -> ApprovalItem:
    with service_errors():
        return await services.approvals.get(item_id)


@router.post("/api/approvals/{item_id}/approve", response_model=ApprovalItem)
async def approve(
    item_id: str,
    staff_id: str = Depends(require_staff_id),
    services: Services = Depends(get_services),
) -> ApprovalItem:
    """Approve an item and execute its stored action."""
    with service_errors():
        return await services.approvals.approve(item_id, staff_id)


@router.post("/api/approvals/{item_id}/reject", response_model=ApprovalItem)
async def reject(
    item_id: str,
    payload: RejectRequest | None = None,
    staff_id: str = Depends(require_staff_id),
    services: Services = Depends(get_services),
) -> ApprovalItem:
    reason = payload.reason if payload else None
    with service_errors():
        return await services.approvals.reject(item_id, staff_id, reason)
