"""In-process event bus used for notifications and audit trails.

Events are fire-and-forget: :meth:`EventBus.emit` calls every subscribed
handler synchronously and returns immediately. Handler failures are logged
and never reach the emitter, so events can not influence control flow in the
message pipeline.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    MESSAGE_RECEIVED = "message.received"
    MESSAGE_SENT = "message.sent"

    CONVERSATION_CREATED = "conversation.created"
    CONVERSATION_ESCALATED = "conversation.escalated"
    CONVERSATION_RESOLVED = "conversation.resolved"

    TASK_CREATED = "task.created"
    TASK_ASSIGNED = "task.assigned"
    TASK_COMPLETED = "task.completed"

    APPROVAL_QUEUED = "approval.queued"
    APPROVAL_DECIDED = "approval.decided"
    APPROVAL_EXECUTED = "approval.executed"

    GUEST_CREATED = "guest.created"


@dataclass(frozen=True)
class Event:
    type: EventType
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


EventHandler = Callable[[Event], None]


class EventBus:
    """Typed publish/subscribe hub keyed by :class:`EventType`."""

    def __init__(self) -> None:
        self._handlers: dict[EventType, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        self._handlers[event_type].append(handler)
        logger.debug("Event handler registered for %s", event_type.value)

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def listener_count(self, event_type: EventType) -> int:
        return len(self._handlers.get(event_type, []))

    def emit(self, event_type: EventType, **payload: Any) -> Event:
        """Publish an event to all subscribers and return it."""

        event = Event(type=event_type, payload=payload)
        logger.debug("Event emitted: %s", event_type.value)
        for handler in list(self._handlers.get(event_type, [])):
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler failed for %s", event_type.value)
        return event


class EventRecorder:
    """Subscriber that keeps every received event; handy for audits and tests."""

    def __init__(self, bus: EventBus, *event_types: EventType) -> None:
        self.events: list[Event] = []
        for event_type in event_types or tuple(EventType):
            bus.subscribe(event_type, self.events.append)

    def of_type(self, event_type: EventType) -> list[Event]:
        return [event for event in self.events if event.type == event_type]
