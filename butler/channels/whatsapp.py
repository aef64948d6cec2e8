"""WhatsApp Cloud API channel adapter."""

from __future__ import annotations

import hashlib
import hmac
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from butler.conversations.models import InboundMessage, OutboundMessage

from .base import ChannelAdapter


class WhatsAppAdapter(ChannelAdapter):
    channel_name = "whatsapp"

    def verify_signature(
        self,
        body: bytes,
        headers: Mapping[str, str],
        *,
        url: str | None = None,
    ) -> bool:
        secret = self.config.get("app_secret")
        if not secret:
            return True
        received = headers.get("x-hub-signature-256") or headers.get("X-Hub-Signature-256")
        if not received:
            return False
        digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
        expected = f"sha256={digest}"
        return hmac.compare_digest(received, expected)

    def parse_incoming(
        self,
        payload: Mapping[str, Any],
        headers: Mapping[str, str],
    ) -> Iterable[InboundMessage]:
        for entry in payload.get("entry", []):
            for change in entry.get("changes", []):
                value = change.get("value", {})
                # Status callbacks (sent/delivered/read) carry no messages.
                for message in value.get("messages", []):
                    sender = message.get("from") or ""
                    message_type = message.get("type") or "text"
                    text = ""
                    if message_type == "text":
                        text = (message.get("text") or {}).get("body", "")
                    elif message_type == "interactive":
                        interactive = message.get("interactive", {})
                        reply = interactive.get("button_reply") or interactive.get("list_reply") or {}
                        text = reply.get("title", "")
                        message_type = "text"
                    elif message_type in {"image", "audio", "video", "document"}:
                        text = (message.get(message_type) or {}).get("caption", "")
                    yield InboundMessage(
                        id=str(message.get("id") or ""),
                        channel=self.channel_name,
                        channel_id=f"+{sender.lstrip('+')}" if sender else "",
                        content=text,
                        content_type=message_type,
                        timestamp=_parse_timestamp(message.get("timestamp")),
                        raw=message,
                    )

    def build_outgoing_payload(
        self, outbound: OutboundMessage, recipient: str
    ) -> dict[str, Any]:
        return {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": recipient.lstrip("+"),
            "type": "text",
            "text": {"preview_url": False, "body": outbound.content},
        }


def _parse_timestamp(value: Any) -> datetime:
    if value:
        try:
            return datetime.fromtimestamp(int(value), tz=timezone.utc)
        except (ValueError, TypeError):
            pass
    return datetime.now(timezone.utc)
