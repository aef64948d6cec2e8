"""Escalation heuristics.

Decides whether a conversation should be handed to staff, and how urgently,
from the current message, its confidence and the recent AI replies stored in
the conversation. The manager only reads state; the message processor asks
the conversation service for the ``escalated`` transition.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from butler.config import Settings
from butler.conversations.schemas import Conversation
from butler.conversations.service import ConversationService

logger = logging.getLogger(__name__)

EscalationPriority = Literal["standard", "urgent"]

HUMAN_REQUEST_PATTERNS = (
    r"\b(speak|talk|chat)\s+(to|with)\s+(a\s+|an\s+|the\s+|some)?(human|person|someone|manager|staff|agent|receptionist)",
    r"\breal\s+(person|human)\b",
    r"\b(human|live)\s+(agent|support|being)\b",
    r"\bget\s+(me\s+)?(a|the)\s+manager\b",
    r"\bstaff\s+member\b",
    r"\bnot\s+a\s+(bot|robot|machine)\b",
)

EMERGENCY_PATTERNS = (
    r"\bfire\b",
    r"\bsmoke\b",
    r"\bambulance\b",
    r"\bmedical\s+emergency\b",
    r"\bemergency\b",
    r"\b(hurt|injured|bleeding|unconscious)\b",
    r"\bcan'?t\s+breathe\b",
    r"\bheart\s+attack\b",
    r"\bunsafe\b",
    r"\bpolice\b",
    r"\bcall\s+911\b",
)

COMPLAINT_PATTERNS = (
    r"\bunacceptable\b",
    r"\b(terrible|horrible|awful|disgusting|worst)\b",
    r"\bvery\s+disappointed\b",
    r"\b(refund|compensation)\b",
    r"\bwant\s+to\s+complain\b",
    r"\bfile\s+a\s+complaint\b",
)


def _compile(patterns: tuple[str, ...]) -> re.Pattern[str]:
    return re.compile("|".join(f"(?:{p})" for p in patterns), re.IGNORECASE)


_HUMAN_REQUEST = _compile(HUMAN_REQUEST_PATTERNS)
_EMERGENCY = _compile(EMERGENCY_PATTERNS)
_COMPLAINT = _compile(COMPLAINT_PATTERNS)


@dataclass
class EscalationConfig:
    low_confidence_threshold: float = 0.5
    repeat_count: int = 2
    history_window: int = 10

    @classmethod
    def from_settings(cls, settings: Settings) -> "EscalationConfig":
        return cls(
            low_confidence_threshold=settings.escalation_low_confidence,
            repeat_count=settings.escalation_repeat_count,
            history_window=settings.escalation_history_window,
        )


@dataclass
class EscalationDecision:
    should_escalate: bool
    reasons: list[str] = field(default_factory=list)
    priority: EscalationPriority = "standard"


class EscalationManager:
    def __init__(
        self,
        conversations: ConversationService,
        config: EscalationConfig | None = None,
    ) -> None:
        self._conversations = conversations
        self._config = config or EscalationConfig()

    async def should_escalate(
        self,
        conversation_id: str,
        message_content: str,
        ai_confidence: float,
        *,
        intent: str | None = None,
    ) -> EscalationDecision:
        conversation = await self._conversations.get(conversation_id)
        if conversation.state == "escalated":
            return EscalationDecision(should_escalate=False)

        reasons: list[str] = []
        priority: EscalationPriority = "standard"

        if _HUMAN_REQUEST.search(message_content):
            reasons.append("human_requested")
        if intent == "emergency" or _EMERGENCY.search(message_content):
            reasons.append("emergency")
            priority = "urgent"
        if intent == "feedback.complaint" or _COMPLAINT.search(message_content):
            reasons.append("complaint")
        if await self._has_repeated_low_confidence(conversation, ai_confidence):
            reasons.append("repeated_low_confidence")

        if not reasons:
            return EscalationDecision(should_escalate=False)
        logger.debug(
            "Escalation triggered",
            extra={"conversation_id": conversation_id, "reasons": reasons, "priority": priority},
        )
        return EscalationDecision(should_escalate=True, reasons=reasons, priority=priority)

    async def _has_repeated_low_confidence(
        self, conversation: Conversation, ai_confidence: float
    ) -> bool:
        threshold = self._config.low_confidence_threshold
        if ai_confidence >= threshold:
            return False
        needed = self._config.repeat_count - 1
        if needed <= 0:
            return True
        history = await self._conversations.recent_messages(
            conversation.id, self._config.history_window
        )
        # Only replies since the last staff hand-back count.
        since = _last_resolution(conversation)
        earlier_low = sum(
            1
            for message in history
            if message.sender_type == "ai"
            and (since is None or message.created_at > since)
            and message.confidence is not None
            and message.confidence < threshold
        )
        return earlier_low >= needed


def _last_resolution(conversation: Conversation) -> datetime | None:
    resolutions = conversation.metadata.get("resolutions") or []
    if not resolutions:
        return None
    return datetime.fromisoformat(resolutions[-1]["at"])
