"""Service wiring.

Everything the pipeline needs is constructed once here and passed down
explicitly; there are no module-level service singletons.
"""

from __future__ import annotations

from dataclasses import dataclass

import psycopg

from butler.ai.responder import KeywordResponder, Responder
from butler.approvals.queue import ApprovalQueue
from butler.approvals.repository import InMemoryApprovalRepository, PostgresApprovalRepository
from butler.config import Settings
from butler.conversations.repository import (
    InMemoryConversationRepository,
    PostgresConversationRepository,
)
from butler.conversations.service import ConversationService
from butler.core.autonomy import (
    AutonomyEngine,
    AutonomySettingsStore,
    InMemoryAutonomySettingsStore,
    PostgresAutonomySettingsStore,
)
from butler.core.escalation import EscalationConfig, EscalationManager
from butler.core.message_processor import MessageProcessor
from butler.core.task_router import TaskRouter
from butler.events import EventBus
from butler.guests.repository import InMemoryGuestRepository, PostgresGuestRepository
from butler.guests.service import GuestContextService, GuestService
from butler.tasks.repository import InMemoryTaskRepository, PostgresTaskRepository
from butler.tasks.service import TaskService


@dataclass
class Services:
    settings: Settings
    events: EventBus
    conversations: ConversationService
    guests: GuestService
    guest_context: GuestContextService
    tasks: TaskService
    autonomy: AutonomyEngine
    approvals: ApprovalQueue
    escalation: EscalationManager
    task_router: TaskRouter
    processor: MessageProcessor


def build_services(
    settings: Settings,
    *,
    conn: psycopg.AsyncConnection | None = None,
    responder: Responder | None = None,
    autonomy_store: AutonomySettingsStore | None = None,
    events: EventBus | None = None,
) -> Services:
    """Wire repositories and services; in-memory storage when ``conn`` is ``None``."""

    events = events or EventBus()
    if conn is not None:
        conversation_repo = PostgresConversationRepository(conn)
        guest_repo = PostgresGuestRepository(conn)
        task_repo = PostgresTaskRepository(conn)
        approval_repo = PostgresApprovalRepository(conn)
        autonomy_store = autonomy_store or PostgresAutonomySettingsStore(conn)
    else:
        conversation_repo = InMemoryConversationRepository()
        guest_repo = InMemoryGuestRepository()
        task_repo = InMemoryTaskRepository()
        approval_repo = InMemoryApprovalRepository()
        autonomy_store = autonomy_store or InMemoryAutonomySettingsStore()

    conversations = ConversationService(conversation_repo, events)
    guests = GuestService(guest_repo, events)
    guest_context = GuestContextService(guest_repo, conversations)
    tasks = TaskService(task_repo, events)
    autonomy = AutonomyEngine(autonomy_store)
    approvals = ApprovalQueue(approval_repo, conversations=conversations, tasks=tasks, events=events)
    escalation = EscalationManager(conversations, EscalationConfig.from_settings(settings))
    task_router = TaskRouter(autonomy, min_confidence=settings.task_confidence_threshold)
    processor = MessageProcessor(
        conversations=conversations,
        guests=guests,
        guest_context=guest_context,
        responder=responder or KeywordResponder(),
        tasks=tasks,
        task_router=task_router,
        escalation=escalation,
        autonomy=autonomy,
        approvals=approvals,
        events=events,
        task_confidence_threshold=settings.task_confidence_threshold,
    )
    return Services(
        settings=settings,
        events=events,
        conversations=conversations,
        guests=guests,
        guest_context=guest_context,
        tasks=tasks,
        autonomy=autonomy,
        approvals=approvals,
        escalation=escalation,
        task_router=task_router,
        processor=processor,
    )
