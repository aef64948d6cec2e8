"""Completion provider contract shared by the classifier and the responder."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal, Protocol

MessageRole = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class CompletionMessage:
    role: MessageRole
    content: str


class CompletionProvider(Protocol):
    """Anything able to turn a chat transcript into a completion string.

    Vendor SDK wrappers (Anthropic, OpenAI, Ollama) live outside this package
    and only need to satisfy this protocol.
    """

    name: str

    async def complete(
        self,
        messages: Sequence[CompletionMessage],
        *,
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> str: ...
