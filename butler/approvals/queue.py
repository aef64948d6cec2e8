"""Staff approval queue for AI actions held back by the autonomy policy."""

from __future__ import annotations

import copy
import logging
from typing import Any

from butler.conversations.models import NewMessage
from butler.conversations.service import ConversationService
from butler.errors import ApprovalStateError, NotFoundError
from butler.events import EventBus, EventType
from butler.tasks.schemas import CreateTaskInput
from butler.tasks.service import TaskService

from .repository import ApprovalRepository, new_approval_id
from .schemas import ApprovalItem, ApprovalList, CreateApprovalInput

logger = logging.getLogger(__name__)


class ApprovalQueue:
    """Queue, decide and execute deferred actions.

    ``action_data`` is a snapshot taken when the item was queued. Approving an
    item executes exactly that snapshot; nothing is re-derived from the
    conversation at decision time.
    """

    def __init__(
        self,
        repository: ApprovalRepository,
        *,
        conversations: ConversationService,
        tasks: TaskService,
        events: EventBus | None = None,
    ) -> None:
        self._repository = repository
        self._conversations = conversations
        self._tasks = tasks
        self._events = events or EventBus()

    # ------------------------------------------------------------------
    # Queueing

    async def queue_for_approval(self, data: CreateApprovalInput) -> ApprovalItem:
        item = ApprovalItem(
            id=new_approval_id(),
            type=data.type,
            action_type=data.action_type,
            action_data=copy.deepcopy(data.action_data),
            conversation_id=data.conversation_id,
            guest_id=data.guest_id,
            priority=data.priority,
        )
        item = await self._repository.insert(item)
        logger.info(
            "Action queued for approval",
            extra={
                "approval_id": item.id,
                "action_type": item.action_type,
                "conversation_id": item.conversation_id,
            },
        )
        self._events.emit(
            EventType.APPROVAL_QUEUED,
            approval_id=item.id,
            type=item.type,
            action_type=item.action_type,
            conversation_id=item.conversation_id,
            guest_id=item.guest_id,
            priority=item.priority,
        )
        return item

    # ------------------------------------------------------------------
    # Lookup

    async def get(self, item_id: str) -> ApprovalItem:
        item = await self._repository.get(item_id)
        if item is None:
            raise NotFoundError("Approval item", item_id)
        return item

    async def list_pending(self, limit: int = 50) -> list[ApprovalItem]:
        items, _ = await self._repository.list(status="pending", limit=limit)
        return items

    async def list(
        self, *, status: str | None = None, limit: int = 50, offset: int = 0
    ) -> ApprovalList:
        items, total = await self._repository.list(status=status, limit=limit, offset=offset)
        return ApprovalList(items=items, total=total)

    def get_action_data(self, item: ApprovalItem) -> dict[str, Any]:
        return copy.deepcopy(item.action_data)

    # ------------------------------------------------------------------
    # Decisions

    async def approve(self, item_id: str, staff_id: str) -> ApprovalItem:
        item = await self._decide(item_id, "approved", staff_id)
        try:
            await self._execute(item)
        except Exception:
            # Nothing was delivered; put the item back so it can be approved again.
            await self._repository.reopen(item.id)
            raise
        self._events.emit(
            EventType.APPROVAL_EXECUTED,
            approval_id=item.id,
            action_type=item.action_type,
            conversation_id=item.conversation_id,
        )
        return item

    async def reject(self, item_id: str, staff_id: str, reason: str | None = None) -> ApprovalItem:
        return await self._decide(item_id, "rejected", staff_id, reason)

    async def _decide(
        self, item_id: str, status: str, staff_id: str, reason: str | None = None
    ) -> ApprovalItem:
        current = await self.get(item_id)
        verb = "approve" if status == "approved" else "reject"
        if current.status != "pending":
            raise ApprovalStateError(f"Cannot {verb} item with status: {current.status}")
        decided = await self._repository.decide(
            item_id, status=status, decided_by=staff_id, rejection_reason=reason
        )
        if decided is None:
            # Lost a race with another decision.
            latest = await self.get(item_id)
            raise ApprovalStateError(f"Cannot {verb} item with status: {latest.status}")
        logger.info(
            "Approval item decided",
            extra={"approval_id": item_id, "status": status, "staff_id": staff_id},
        )
        self._events.emit(
            EventType.APPROVAL_DECIDED,
            approval_id=item_id,
            status=status,
            decided_by=staff_id,
            rejection_reason=reason,
        )
        return decided

    async def _execute(self, item: ApprovalItem) -> None:
        data = self.get_action_data(item)
        try:
            if item.type == "response":
                await self._send_response(item, data)
            else:
                await self._create_task(item, data)
        except Exception:
            logger.exception(
                "Approved action failed to execute",
                extra={"approval_id": item.id, "action_type": item.action_type},
            )
            raise

    async def _send_response(self, item: ApprovalItem, data: dict[str, Any]) -> None:
        conversation_id = data.get("conversation_id") or item.conversation_id
        message = await self._conversations.add_message(
            conversation_id,
            NewMessage(
                direction="outbound",
                sender_type="ai",
                content=data["content"],
                intent=data.get("intent"),
                confidence=data.get("confidence"),
            ),
        )
        self._events.emit(
            EventType.MESSAGE_SENT,
            conversation_id=conversation_id,
            message_id=message.id,
            content=message.content,
            sender_type="ai",
            approval_id=item.id,
        )

    async def _create_task(self, item: ApprovalItem, data: dict[str, Any]) -> None:
        task = await self._tasks.create(CreateTaskInput.model_validate(data))
        self._events.emit(
            EventType.TASK_CREATED,
            task_id=task.id,
            conversation_id=task.conversation_id,
            task_type=task.type,
            department=task.department,
            priority=task.priority,
            approval_id=item.id,
        )
