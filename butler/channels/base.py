"""Base abstractions for guest channel adapters."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from typing import Any, Protocol

from butler.conversations.models import InboundMessage, OutboundMessage

logger = logging.getLogger(__name__)

APOLOGY_MESSAGE = (
    "I'm sorry, I encountered an error processing your request. "
    "Please try again or contact the front desk for assistance."
)
UNSUPPORTED_CONTENT_MESSAGE = (
    "I can only process text messages at the moment. Please send your request as text."
)


class InboundProcessor(Protocol):
    async def process(self, inbound: InboundMessage) -> OutboundMessage: ...


class ChannelAdapter(ABC):
    """Abstract base class encapsulating channel-specific behaviour."""

    #: Lowercase channel identifier used in routes and configuration.
    channel_name: str

    #: Content types handed to the pipeline; anything else gets a fallback reply.
    supported_content_types: frozenset[str] = frozenset({"text"})

    def __init__(self, *, config: Mapping[str, Any] | None = None) -> None:
        self.config: Mapping[str, Any] = config or {}

    @abstractmethod
    def parse_incoming(
        self,
        payload: Mapping[str, Any],
        headers: Mapping[str, str],
    ) -> Iterable[InboundMessage]:
        """Convert a webhook payload into inbound messages."""

    def verify_signature(
        self,
        body: bytes,
        headers: Mapping[str, str],
        *,
        url: str | None = None,
    ) -> bool:
        """Validate authenticity of the webhook payload.

        Adapters can override this to implement signature checks. The default
        implementation returns ``True``.
        """

        return True

    def build_outgoing_payload(
        self, outbound: OutboundMessage, recipient: str
    ) -> dict[str, Any]:
        """Prepare an outbound payload for the channel API."""

        return {
            "to": recipient,
            "conversation_id": outbound.conversation_id,
            "content": outbound.content,
            "metadata": outbound.metadata or {},
        }

    async def handle(
        self, processor: InboundProcessor, inbound: InboundMessage
    ) -> OutboundMessage:
        """Run ``inbound`` through ``processor``; never raises.

        Infrastructure failures inside the pipeline are logged with their
        traceback and answered with a generic apology.
        """

        if inbound.content_type not in self.supported_content_types:
            logger.info(
                "Unsupported content type, sending fallback",
                extra={"channel": self.channel_name, "content_type": inbound.content_type},
            )
            return OutboundMessage(
                conversation_id=inbound.conversation_id or "",
                content=UNSUPPORTED_CONTENT_MESSAGE,
            )
        try:
            return await processor.process(inbound)
        except Exception:
            logger.exception(
                "Failed to process inbound message",
                extra={"channel": self.channel_name, "message_id": inbound.id},
            )
            return OutboundMessage(
                conversation_id=inbound.conversation_id or "",
                content=APOLOGY_MESSAGE,
                metadata={"error": True},
            )
