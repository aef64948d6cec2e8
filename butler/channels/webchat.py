"""Web chat widget adapter."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from butler.conversations.models import InboundMessage

from .base import ChannelAdapter


class WebChatAdapter(ChannelAdapter):
    """Accepts ``{"session_id", "content", "message_id"?}`` JSON posts."""

    channel_name = "webchat"

    def parse_incoming(
        self,
        payload: Mapping[str, Any],
        headers: Mapping[str, str],
    ) -> Iterable[InboundMessage]:
        session_id = payload.get("session_id")
        content = (payload.get("content") or "").strip()
        if not session_id or not content:
            return []
        return [
            InboundMessage(
                id=str(payload.get("message_id") or uuid4().hex),
                channel=self.channel_name,
                channel_id=str(session_id),
                content=content,
                content_type="text",
                timestamp=datetime.now(timezone.utc),
                raw=dict(payload),
            )
        ]
