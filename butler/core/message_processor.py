"""Inbound message pipeline.

One inbound message in, exactly one outbound message out. The steps run in a
fixed order:

1. identify the guest by phone (whatsapp/sms; best effort)
2. find or create the conversation
3. match guest and reservation context (whatsapp/sms; best effort)
4. persist the inbound message
5. generate the AI response
6. route to a staff task, directly or through the approval queue (best effort)
7. escalate to staff when warranted
8. gate the reply behind the autonomy policy; queue it and send a holding
   message when it may not go out automatically
9. persist and return the reply

Failures in steps 2, 4 and 5 propagate to the channel boundary, which answers
the guest with an apology. Best-effort steps log and continue.
"""

from __future__ import annotations

import logging
import time

from butler.ai.responder import AIResponse, Responder
from butler.approvals.queue import ApprovalQueue
from butler.approvals.schemas import CreateApprovalInput
from butler.conversations.models import InboundMessage, NewMessage, OutboundMessage
from butler.conversations.schemas import Conversation, Message
from butler.conversations.service import ConversationService
from butler.events import EventBus, EventType
from butler.guests.models import GuestContext
from butler.guests.service import GuestContextService, GuestService
from butler.intents.classifier import ClassificationResult
from butler.tasks.schemas import CreateTaskInput
from butler.tasks.service import TaskService

from .annotations import (
    Escalated,
    PendingApproval,
    ResponseAnnotation,
    TaskCreated,
    TaskPendingApproval,
    fold_metadata,
)
from .autonomy import AutonomyContext, AutonomyEngine
from .escalation import EscalationManager
from .locks import KeyedLock
from .task_router import MIN_CONFIDENCE_FOR_TASK, RouterGuestContext, TaskRouter

logger = logging.getLogger(__name__)

PHONE_CHANNELS = frozenset({"whatsapp", "sms"})

# Used for escalation and autonomy checks when the responder gives no confidence.
DEFAULT_CONFIDENCE = 0.5

URGENT_ESCALATION_NOTICE = "I'm also connecting you with a staff member who will be with you shortly."
STANDARD_ESCALATION_NOTICE = "I'm also connecting you with a staff member who can assist you further."

_GENERIC_PENDING = "I'm looking into this for you. Someone from our team will get back to you shortly."

# (prefixes, text); the first entry with a matching prefix wins.
_PENDING_MESSAGES: tuple[tuple[tuple[str, ...], str], ...] = (
    (
        ("request.housekeeping", "request.dnd", "request.laundry"),
        "I've noted your housekeeping request. Our team will arrange this and confirm shortly.",
    ),
    (("request.maintenance",), "I've flagged this with our maintenance team. Someone will look into it shortly."),
    (("request.room_service",), "I've passed your order along. Our room service team will confirm shortly."),
    (("request.transport",), "I'm arranging your transport. Someone will confirm the details shortly."),
    (
        ("request.reservation", "request.checkin", "request.checkout"),
        "I've forwarded your request to our front desk. They'll get back to you shortly.",
    ),
    (
        ("request.billing",),
        "I've sent your billing request to our front desk. They'll have that ready for you shortly.",
    ),
    (
        ("request.room_change",),
        "I've noted your room change request. Our front desk will look into available options shortly.",
    ),
    (("request.security", "request.noise"), "I've alerted our team about this. Someone will assist you right away."),
    (
        ("request.special_occasion",),
        "how lovely! I've passed this along to our team to arrange something special for you.",
    ),
    (
        ("feedback.complaint",),
        "I'm sorry to hear that. I've flagged your concern and a manager will follow up with you shortly.",
    ),
    (("inquiry",), "great question! Let me check on that. Someone from our team will get back to you shortly."),
    (("emergency",), "I've immediately alerted our team. Someone will be with you right away."),
)


def _matches_prefix(intent: str, prefix: str) -> bool:
    return intent == prefix or intent.startswith(prefix + ".")


def pending_message(intent: str | None, first_name: str | None = None) -> str:
    """Holding reply sent to the guest while a response waits for approval."""

    prefix = f"Thanks {first_name or 'there'}"
    if intent:
        for prefixes, text in _PENDING_MESSAGES:
            if any(_matches_prefix(intent, p) for p in prefixes):
                return f"{prefix}, {text}"
    return f"{prefix}, {_GENERIC_PENDING}"


class MessageProcessor:
    def __init__(
        self,
        *,
        conversations: ConversationService,
        guests: GuestService,
        guest_context: GuestContextService,
        responder: Responder,
        tasks: TaskService,
        task_router: TaskRouter,
        escalation: EscalationManager,
        autonomy: AutonomyEngine,
        approvals: ApprovalQueue,
        events: EventBus,
        task_confidence_threshold: float = MIN_CONFIDENCE_FOR_TASK,
    ) -> None:
        self._conversations = conversations
        self._guests = guests
        self._guest_context = guest_context
        self._responder = responder
        self._tasks = tasks
        self._task_router = task_router
        self._escalation = escalation
        self._autonomy = autonomy
        self._approvals = approvals
        self._events = events
        self._task_confidence_threshold = task_confidence_threshold
        self._locks = KeyedLock()

    async def process(self, inbound: InboundMessage) -> OutboundMessage:
        async with self._locks.hold((inbound.channel, inbound.channel_id)):
            return await self._process(inbound)

    async def _process(self, inbound: InboundMessage) -> OutboundMessage:
        started = time.perf_counter()
        await self._autonomy.ensure_loaded()

        # 1. Guest identification
        guest_id = await self._identify_guest(inbound)

        # 2. Conversation
        conversation = await self._conversations.find_or_create(
            inbound.channel, inbound.channel_id, guest_id
        )
        inbound.conversation_id = conversation.id
        log_extra = {"conversation_id": conversation.id, "channel": inbound.channel}

        # 3. Guest context
        guest_context = await self._load_guest_context(conversation, inbound)

        # 4. Inbound message
        saved_inbound = await self._conversations.add_message(
            conversation.id,
            NewMessage(
                direction="inbound",
                sender_type="guest",
                content=inbound.content,
                content_type=inbound.content_type,
            ),
        )
        self._events.emit(
            EventType.MESSAGE_RECEIVED,
            conversation_id=conversation.id,
            message_id=saved_inbound.id,
            channel=inbound.channel,
            content=inbound.content,
            content_type=inbound.content_type,
        )

        # 5. Response
        response = await self._responder.generate(conversation, inbound, guest_context)
        logger.debug("Response generated", extra={**log_extra, "intent": response.intent})
        confidence = response.confidence if response.confidence is not None else DEFAULT_CONFIDENCE
        annotations: list[ResponseAnnotation] = []

        # 6. Task routing
        if response.intent and response.confidence is not None and (
            response.confidence >= self._task_confidence_threshold
        ):
            annotation = await self._route_task(
                conversation, inbound, saved_inbound, response, guest_context
            )
            if annotation is not None:
                annotations.append(annotation)

        # 7. Escalation
        content = response.content
        decision = await self._escalation.should_escalate(
            conversation.id, inbound.content, confidence, intent=response.intent
        )
        if decision.should_escalate:
            logger.info(
                "Escalating conversation",
                extra={**log_extra, "reasons": decision.reasons, "priority": decision.priority},
            )
            await self._conversations.update(conversation.id, state="escalated")
            self._events.emit(
                EventType.CONVERSATION_ESCALATED,
                conversation_id=conversation.id,
                reasons=list(decision.reasons),
                priority=decision.priority,
            )
            notice = (
                URGENT_ESCALATION_NOTICE if decision.priority == "urgent" else STANDARD_ESCALATION_NOTICE
            )
            content = f"{content}\n\n{notice}"
            annotations.append(Escalated(reasons=tuple(decision.reasons), priority=decision.priority))

        metadata = fold_metadata(response.metadata, annotations)

        # 8. Autonomy gate
        autonomy_context = self._autonomy_context(guest_context, response.intent)
        can_auto_execute = self._autonomy.can_auto_execute("respondToGuest", autonomy_context)
        by_confidence = self._autonomy.should_auto_execute_by_confidence(confidence)
        if not can_auto_execute or by_confidence == "approval_required":
            item = await self._approvals.queue_for_approval(
                CreateApprovalInput(
                    type="response",
                    action_type="respondToGuest",
                    action_data={
                        "conversation_id": conversation.id,
                        "content": content,
                        "intent": response.intent,
                        "confidence": response.confidence,
                        "metadata": metadata,
                    },
                    conversation_id=conversation.id,
                    guest_id=guest_context.guest.id if guest_context.guest else None,
                    priority="urgent" if self._autonomy.is_urgent_confidence(confidence) else "normal",
                )
            )
            logger.info(
                "Response queued for approval",
                extra={
                    **log_extra,
                    "approval_id": item.id,
                    "reason": "autonomy_level" if not can_auto_execute else "low_confidence",
                },
            )
            first_name = guest_context.guest.first_name if guest_context.guest else None
            pending = PendingApproval(approval_id=item.id)
            outbound = OutboundMessage(
                conversation_id=conversation.id,
                content=pending_message(response.intent, first_name),
                metadata=pending.to_metadata(),
                annotations=(pending,),
            )
            # Intent and confidence are kept on the holding reply so repeated
            # low-confidence turns stay visible to the escalation check.
            await self._conversations.add_message(
                conversation.id,
                NewMessage(
                    direction="outbound",
                    sender_type="ai",
                    content=outbound.content,
                    intent=response.intent,
                    confidence=response.confidence,
                ),
            )
            logger.info(
                "Message processed (pending approval)",
                extra={**log_extra, "duration_ms": _elapsed_ms(started)},
            )
            return outbound

        # 9. Reply
        saved_outbound = await self._conversations.add_message(
            conversation.id,
            NewMessage(
                direction="outbound",
                sender_type="ai",
                content=content,
                intent=response.intent,
                confidence=response.confidence,
                entities=response.entities,
            ),
        )
        self._events.emit(
            EventType.MESSAGE_SENT,
            conversation_id=conversation.id,
            message_id=saved_outbound.id,
            content=content,
            sender_type="ai",
        )
        logger.info(
            "Message processed",
            extra={**log_extra, "intent": response.intent, "duration_ms": _elapsed_ms(started)},
        )
        return OutboundMessage(
            conversation_id=conversation.id,
            content=content,
            metadata=metadata,
            annotations=tuple(annotations),
        )

    # ------------------------------------------------------------------
    # Best-effort enrichment

    async def _identify_guest(self, inbound: InboundMessage) -> str | None:
        if inbound.channel not in PHONE_CHANNELS:
            return None
        try:
            guest = await self._guests.find_or_create_by_phone(inbound.channel_id)
        except Exception:
            logger.warning(
                "Failed to identify guest by phone",
                exc_info=True,
                extra={"channel": inbound.channel},
            )
            return None
        return guest.id

    async def _load_guest_context(
        self, conversation: Conversation, inbound: InboundMessage
    ) -> GuestContext:
        if inbound.channel not in PHONE_CHANNELS:
            return GuestContext()
        try:
            await self._guest_context.match_conversation(conversation.id, phone=inbound.channel_id)
            return await self._guest_context.get_context_by_conversation(conversation.id)
        except Exception:
            logger.warning(
                "Failed to load guest context",
                exc_info=True,
                extra={"conversation_id": conversation.id},
            )
            return GuestContext()

    # ------------------------------------------------------------------
    # Task routing

    async def _route_task(
        self,
        conversation: Conversation,
        inbound: InboundMessage,
        saved_inbound: Message,
        response: AIResponse,
        guest_context: GuestContext,
    ) -> ResponseAnnotation | None:
        try:
            classification = ClassificationResult.for_intent(response.intent, response.confidence)
            decision = self._task_router.process(
                classification, self._router_context(guest_context)
            )
            if not decision.should_create_task or not decision.department:
                return None

            room_number = guest_context.room_number
            task_input = CreateTaskInput(
                conversation_id=conversation.id,
                message_id=saved_inbound.id,
                source="auto",
                type=decision.task_type or "other",
                department=decision.department,
                room_number=room_number,
                description=self._task_description(inbound, guest_context),
                priority=decision.priority,
            )

            if decision.requires_approval and decision.action_type:
                item = await self._approvals.queue_for_approval(
                    CreateApprovalInput(
                        type="task",
                        action_type=decision.action_type,
                        action_data=task_input.model_dump(mode="json"),
                        conversation_id=conversation.id,
                        guest_id=guest_context.guest.id if guest_context.guest else None,
                    )
                )
                logger.info(
                    "Task queued for approval",
                    extra={
                        "approval_id": item.id,
                        "conversation_id": conversation.id,
                        "task_type": decision.task_type,
                        "department": decision.department,
                    },
                )
                return TaskPendingApproval(
                    approval_id=item.id, department=decision.department, priority=decision.priority
                )

            task = await self._tasks.create(task_input)
            logger.info(
                "Auto-created task from guest request",
                extra={
                    "task_id": task.id,
                    "conversation_id": conversation.id,
                    "department": decision.department,
                    "priority": decision.priority,
                },
            )
            self._events.emit(
                EventType.TASK_CREATED,
                task_id=task.id,
                conversation_id=conversation.id,
                task_type=task.type,
                department=task.department,
                priority=task.priority,
            )
            return TaskCreated(task_id=task.id, department=task.department, priority=task.priority)
        except Exception:
            logger.error(
                "Failed to create task",
                exc_info=True,
                extra={"conversation_id": conversation.id, "intent": response.intent},
            )
            return None

    @staticmethod
    def _router_context(guest_context: GuestContext) -> RouterGuestContext:
        guest = guest_context.guest
        if guest is None:
            return RouterGuestContext(
                guest_id="unknown",
                first_name="Guest",
                last_name="",
                room_number=guest_context.room_number,
            )
        return RouterGuestContext(
            guest_id=guest.id,
            first_name=guest.first_name or "Guest",
            last_name=guest.last_name,
            room_number=guest_context.room_number,
            is_vip=bool(guest.vip_status),
            loyalty_tier=guest.loyalty_tier,
            language=guest.language,
        )

    @staticmethod
    def _task_description(inbound: InboundMessage, guest_context: GuestContext) -> str:
        guest = guest_context.guest
        guest_name = guest.full_name if guest and guest.full_name else "Guest"
        parts = [guest_name]
        if guest_context.room_number:
            parts.append(f"Room {guest_context.room_number}")
        if inbound.channel:
            parts.append(f"via {inbound.channel}")
        return f'"{inbound.content}" - {", ".join(parts)}'

    @staticmethod
    def _autonomy_context(guest_context: GuestContext, intent: str | None) -> AutonomyContext:
        guest = guest_context.guest
        return AutonomyContext(
            guest_id=guest.id if guest else None,
            is_vip=bool(guest and guest.vip_status),
            has_complaint=bool(intent) and _matches_prefix(intent, "feedback.complaint"),
            loyalty_tier=guest.loyalty_tier if guest else None,
            room_number=guest_context.room_number,
        )


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
