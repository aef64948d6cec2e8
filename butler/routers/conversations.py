"""Conversation inspection and hand-back endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from butler.container import Services
from butler.conversations.schemas import Conversation, ConversationDetail

from .deps import get_services, require_staff_id, service_errors

router = APIRouter(tags=["conversations"])


@router.get("/api/conversations/{conversation_id}", response_model=ConversationDetail)
async def get_conversation(
    conversation_id: str,
    limit: int = 50,
    services: Services = Depends(get_services),
) -> ConversationDetail:
    with service_errors():
        return await services.conversations.get_detail(conversation_id, limit=limit)


@router.post("/api/conversations/{conversation_id}/resolve", response_model=Conversation)
async def resolve_conversation(
    conversation_id: str,
    staff_id: str = Depends(require_staff_id),
    services: Services = Depends(get_services),
) -> Conversation:
    """Return an escalated conversation to the assistant."""
    with service_errors():
        return await services.conversations.resolve(conversation_id, staff_id=staff_id)


@router.post("/api/conversations/{conversation_id}/close", response_model=Conversation)
async def close_conversation(
    conversation_id: str,
    services: Services = Depends(get_services),
) -> Conversation:
    with service_errors():
        return await services.conversations.close(conversation_id)
