"""LLM-backed intent classification."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass

from butler.ai.prompts import PromptTemplateStore, classifier_user_prompt
from butler.ai.providers import CompletionMessage, CompletionProvider
from .taxonomy import INTENT_TAXONOMY, get_intent_definition

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{.*\}", re.S)


@dataclass
class ClassificationResult:
    intent: str
    confidence: float
    department: str | None
    requires_action: bool
    reasoning: str | None = None

    @classmethod
    def for_intent(
        cls, intent: str, confidence: float, reasoning: str | None = None
    ) -> "ClassificationResult":
        """Build a result whose routing fields come from the taxonomy."""

        definition = get_intent_definition(intent)
        return cls(
            intent=intent,
            confidence=min(1.0, max(0.0, confidence)),
            department=definition.department if definition else None,
            requires_action=definition.requires_action if definition else False,
            reasoning=reasoning,
        )

    @classmethod
    def unknown(cls) -> "ClassificationResult":
        return cls(intent="unknown", confidence=0.0, department=None, requires_action=False)


class IntentClassifier:
    """Classify guest messages into taxonomy intents using a completion provider."""

    def __init__(
        self,
        provider: CompletionProvider,
        prompt_store: PromptTemplateStore | None = None,
    ) -> None:
        self._provider = provider
        self._prompts = prompt_store or PromptTemplateStore()

    async def classify(self, message: str) -> ClassificationResult:
        system_prompt = self._prompts.classifier_prompt(
            INTENT_TAXONOMY.values(), getattr(self._provider, "name", "default")
        )
        try:
            content = await self._provider.complete(
                [
                    CompletionMessage("system", system_prompt),
                    CompletionMessage("user", classifier_user_prompt(message)),
                ],
                max_tokens=150,
                temperature=0.1,
            )
        except Exception:
            logger.exception("Intent classification failed")
            return ClassificationResult.unknown()
        result = parse_classification(content)
        logger.info(
            "Message classified as %s (confidence=%.2f)", result.intent, result.confidence
        )
        return result

    async def classify_batch(self, messages: list[str]) -> list[ClassificationResult]:
        return [await self.classify(message) for message in messages]


def parse_classification(content: str) -> ClassificationResult:
    """Parse the JSON object embedded in a classifier completion.

    Malformed answers and labels outside the taxonomy degrade to ``unknown``
    with zero confidence rather than raising.
    """

    match = _JSON_OBJECT.search(content or "")
    if not match:
        logger.warning("No JSON found in classifier response")
        return ClassificationResult.unknown()
    try:
        parsed = json.loads(match.group(0))
        intent = str(parsed.get("intent") or "unknown")
        confidence = float(parsed.get("confidence") or 0.0)
    except (ValueError, TypeError, AttributeError):
        logger.warning("Failed to parse classifier response")
        return ClassificationResult.unknown()
    if get_intent_definition(intent) is None:
        logger.warning("Classifier returned unregistered intent %s", intent)
        return ClassificationResult.unknown()
    return ClassificationResult.for_intent(intent, confidence, parsed.get("reasoning"))
