"""Intent-to-task routing.

Turns a classification into a routing decision: whether a staff task should
be created, for which department and task type, and at what priority. The
router is pure policy; it never persists anything and never raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from butler.core.autonomy import AutonomyContext, AutonomyEngine, map_task_type_to_action_type
from butler.intents.classifier import ClassificationResult
from butler.intents.taxonomy import Priority, get_intent_definition

logger = logging.getLogger(__name__)

MIN_CONFIDENCE_FOR_TASK = 0.6

PRIORITY_ORDER: tuple[Priority, ...] = ("low", "standard", "high", "urgent")

# First matching prefix wins; unmatched intents map to "other".
TASK_TYPE_PREFIXES: tuple[tuple[str, str], ...] = (
    ("request.housekeeping", "housekeeping"),
    ("request.maintenance", "maintenance"),
    ("request.room_service", "room_service"),
    ("inquiry.reservation", "concierge"),
    ("feedback.complaint", "other"),
    ("request.concierge", "concierge"),
    ("emergency", "other"),
)


@dataclass
class RouterGuestContext:
    guest_id: str
    first_name: str
    last_name: str
    room_number: str | None = None
    is_vip: bool = False
    loyalty_tier: str | None = None
    language: str | None = None


@dataclass
class RoutingDecision:
    should_create_task: bool
    priority: Priority = "standard"
    department: str | None = None
    task_type: str | None = None
    description: str | None = None
    auto_assign: bool = False
    requires_approval: bool = False
    action_type: str | None = None


def task_type_for_intent(intent: str) -> str:
    for prefix, task_type in TASK_TYPE_PREFIXES:
        if intent == prefix or intent.startswith(prefix + "."):
            return task_type
    return "other"


def elevate_priority(priority: Priority) -> Priority:
    index = PRIORITY_ORDER.index(priority)
    return PRIORITY_ORDER[min(index + 1, len(PRIORITY_ORDER) - 1)]


class TaskRouter:
    def __init__(
        self,
        autonomy: AutonomyEngine | None = None,
        *,
        min_confidence: float = MIN_CONFIDENCE_FOR_TASK,
    ) -> None:
        self._autonomy = autonomy
        self._min_confidence = min_confidence

    def should_create_task(self, classification: ClassificationResult) -> bool:
        if classification.confidence < self._min_confidence:
            return False
        definition = get_intent_definition(classification.intent)
        if definition is None or definition.name == "unknown":
            return False
        return definition.requires_action and definition.department is not None

    def process(
        self, classification: ClassificationResult, context: RouterGuestContext
    ) -> RoutingDecision:
        if not self.should_create_task(classification):
            logger.debug(
                "No task for intent %s (confidence=%.2f)",
                classification.intent,
                classification.confidence,
            )
            return RoutingDecision(should_create_task=False)

        definition = get_intent_definition(classification.intent)
        priority = definition.priority
        if context.is_vip and self._elevates_vip_priority():
            priority = elevate_priority(priority)
        task_type = task_type_for_intent(definition.name)

        decision = RoutingDecision(
            should_create_task=True,
            department=definition.department,
            task_type=task_type,
            priority=priority,
            description=definition.description,
            auto_assign=False,
        )
        if self._autonomy is not None:
            self._apply_autonomy(decision, context)
        logger.debug(
            "Routed intent %s to %s (%s, priority=%s)",
            definition.name,
            decision.department,
            task_type,
            priority,
        )
        return decision

    def _elevates_vip_priority(self) -> bool:
        if self._autonomy is None:
            return True
        return self._autonomy.settings.vip_overrides.elevate_task_priority

    def _apply_autonomy(self, decision: RoutingDecision, context: RouterGuestContext) -> None:
        action_type = map_task_type_to_action_type(decision.task_type or "other")
        decision.action_type = action_type
        if action_type is None:
            return
        autonomy_context = AutonomyContext(
            guest_id=context.guest_id,
            is_vip=context.is_vip,
            loyalty_tier=context.loyalty_tier,
            room_number=context.room_number,
        )
        decision.requires_approval = not self._autonomy.can_auto_execute(action_type, autonomy_context)
