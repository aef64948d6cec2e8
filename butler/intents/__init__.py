"""Intent taxonomy and classification."""

from .classifier import ClassificationResult, IntentClassifier, parse_classification
from .taxonomy import (
    INTENT_TAXONOMY,
    IntentDefinition,
    get_actionable_intents,
    get_intent_definition,
    get_intent_names,
    get_intents_by_department,
)

__all__ = [
    "ClassificationResult",
    "INTENT_TAXONOMY",
    "IntentClassifier",
    "IntentDefinition",
    "get_actionable_intents",
    "get_intent_definition",
    "get_intent_names",
    "get_intents_by_department",
    "parse_classification",
]
