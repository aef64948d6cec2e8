"""Responders turn an inbound guest message into an AI reply."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Protocol

from langdetect import LangDetectException, detect

from butler.conversations.models import InboundMessage
from butler.conversations.schemas import Conversation
from butler.conversations.service import ConversationService
from butler.guests.models import GuestContext
from butler.intents.classifier import IntentClassifier
from butler.intents.taxonomy import INTENT_TAXONOMY, get_intent_definition

from .prompts import PromptTemplateStore
from .providers import CompletionMessage, CompletionProvider

logger = logging.getLogger(__name__)


@dataclass
class AIResponse:
    content: str
    intent: str | None = None
    confidence: float | None = None
    entities: list[dict[str, Any]] | None = None
    metadata: dict[str, Any] | None = None


class Responder(Protocol):
    async def generate(
        self,
        conversation: Conversation,
        inbound: InboundMessage,
        guest_context: GuestContext | None = None,
    ) -> AIResponse: ...


def detect_language(text: str) -> str | None:
    try:
        return detect(text) if text and text.strip() else None
    except LangDetectException:
        return None


class LLMResponder:
    """Classify the message, then ask the completion provider for a reply."""

    def __init__(
        self,
        provider: CompletionProvider,
        conversations: ConversationService,
        *,
        hotel_name: str,
        classifier: IntentClassifier | None = None,
        prompt_store: PromptTemplateStore | None = None,
        history_limit: int = 10,
    ) -> None:
        self._provider = provider
        self._conversations = conversations
        self._hotel_name = hotel_name
        self._prompts = prompt_store or PromptTemplateStore()
        self._classifier = classifier or IntentClassifier(provider, self._prompts)
        self._history_limit = history_limit

    async def generate(
        self,
        conversation: Conversation,
        inbound: InboundMessage,
        guest_context: GuestContext | None = None,
    ) -> AIResponse:
        classification = await self._classifier.classify(inbound.content)
        definition = get_intent_definition(classification.intent)
        system_prompt = self._prompts.butler_prompt(
            self._hotel_name,
            guest_context,
            definition,
            getattr(self._provider, "name", "default"),
        )
        messages = [CompletionMessage("system", system_prompt)]
        history = await self._conversations.recent_messages(conversation.id, self._history_limit)
        for message in history:
            role = "user" if message.sender_type == "guest" else "assistant"
            messages.append(CompletionMessage(role, message.content))
        # The inbound message is already persisted and therefore in the history.
        if not history or history[-1].content != inbound.content:
            messages.append(CompletionMessage("user", inbound.content))

        content = await self._provider.complete(messages, max_tokens=300, temperature=0.7)
        metadata: dict[str, Any] = {"provider": getattr(self._provider, "name", "default")}
        if classification.reasoning:
            metadata["classification_reasoning"] = classification.reasoning
        return AIResponse(
            content=content.strip(),
            intent=classification.intent,
            confidence=classification.confidence,
            metadata=metadata,
        )


_WORD = re.compile(r"[a-z0-9']+")
_ROOM_NUMBER = re.compile(r"\broom\s+(\d{2,5})\b", re.I)
_TIME = re.compile(r"\b(\d{1,2})(?::(\d{2}))?\s*(am|pm)\b", re.I)
_STOPWORDS = frozenset(
    {"a", "an", "the", "i", "me", "my", "is", "it", "to", "for", "can", "you", "please", "do", "of", "in", "at"}
)

# Reply per intent family; the first matching prefix wins.
_KEYWORD_REPLIES: tuple[tuple[str, str], ...] = (
    ("request.housekeeping", "Of course{name}! Housekeeping will take care of that shortly."),
    ("request.dnd", "No problem{name}, we won't disturb you."),
    ("request.laundry", "Happy to help{name}. Housekeeping will collect your laundry."),
    ("request.maintenance", "Sorry about that{name}! I've let our maintenance team know."),
    ("request.room_service", "Lovely choice{name}. Your order is on its way to the kitchen."),
    ("request.transport", "I'll arrange that transport for you{name}."),
    ("request.wakeup", "Your wake-up call is noted{name}."),
    ("request", "I'll arrange that for you{name}."),
    ("inquiry", "Good question{name}! Let me find that out for you."),
    ("feedback.complaint", "I'm really sorry to hear that{name}."),
    ("feedback.compliment", "Thank you so much{name}, that means a lot to the team!"),
    ("greeting", "Hello{name}! How can I help you today?"),
    ("farewell", "You're very welcome{name}. Enjoy your stay!"),
    ("emergency", "Please stay safe{name}. I'm alerting our team right now."),
)
_FALLBACK_REPLY = "Thanks for your message{name}. Let me check with the team."


def _tokens(text: str) -> set[str]:
    return {t for t in _WORD.findall(text.lower()) if t not in _STOPWORDS}


def extract_entities(text: str) -> list[dict[str, Any]]:
    entities: list[dict[str, Any]] = []
    for match in _ROOM_NUMBER.finditer(text):
        entities.append({"type": "room_number", "value": match.group(1)})
    for match in _TIME.finditer(text):
        hour = int(match.group(1)) % 12 + (12 if match.group(3).lower() == "pm" else 0)
        entities.append({"type": "time", "value": f"{hour:02d}:{match.group(2) or '00'}"})
    return entities


@dataclass
class KeywordResponder:
    """Offline responder that matches messages against the taxonomy examples.

    Deterministic, so it backs local development and the test-suite. An exact
    example match scores 0.95; partial word overlap scales down from there and
    anything below ``min_overlap`` is answered as ``unknown``.
    """

    min_overlap: float = 0.5
    unknown_confidence: float = 0.3
    overrides: dict[str, tuple[str, float]] = field(default_factory=dict)

    def classify(self, text: str) -> tuple[str, float]:
        lowered = text.lower().strip()
        for phrase, result in self.overrides.items():
            if phrase.lower() in lowered:
                return result
        words = _tokens(text)
        best_intent, best_score = "unknown", 0.0
        for name, definition in INTENT_TAXONOMY.items():
            for example in definition.examples:
                example_words = _tokens(example)
                if not example_words:
                    continue
                score = len(words & example_words) / max(len(words), len(example_words))
                if score > best_score:
                    best_intent, best_score = name, score
        if best_score < self.min_overlap:
            return "unknown", self.unknown_confidence
        return best_intent, round(0.45 + 0.5 * best_score, 2)

    async def generate(
        self,
        conversation: Conversation,
        inbound: InboundMessage,
        guest_context: GuestContext | None = None,
    ) -> AIResponse:
        intent, confidence = self.classify(inbound.content)
        guest = guest_context.guest if guest_context else None
        name = f" {guest.first_name}" if guest and guest.first_name else ""
        template = next(
            (reply for prefix, reply in _KEYWORD_REPLIES if intent.startswith(prefix)),
            _FALLBACK_REPLY,
        )
        metadata: dict[str, Any] = {"provider": "keyword"}
        language = guest.language if guest and guest.language else detect_language(inbound.content)
        if language:
            metadata["language"] = language
        logger.debug(
            "Keyword responder matched %s (confidence=%.2f)",
            intent,
            confidence,
            extra={"conversation_id": conversation.id},
        )
        return AIResponse(
            content=template.format(name=name),
            intent=intent,
            confidence=confidence,
            entities=extract_entities(inbound.content) or None,
            metadata=metadata,
        )
