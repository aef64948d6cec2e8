"""AI response generation.

Responders live in :mod:`butler.ai.responder`; this package root only
exposes the provider contract and prompt templates shared with the intent
classifier.
"""

from .prompts import PromptTemplateStore
from .providers import CompletionMessage, CompletionProvider

__all__ = ["CompletionMessage", "CompletionProvider", "PromptTemplateStore"]
