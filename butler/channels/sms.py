"""SMS channel adapter for Twilio messaging webhooks."""

from __future__ import annotations

import base64
import hashlib
import hmac
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any
from urllib.parse import parse_qsl

from butler.conversations.models import InboundMessage

from .base import ChannelAdapter


def twilio_signature(auth_token: str, url: str, params: Mapping[str, str]) -> str:
    """Compute the ``X-Twilio-Signature`` value for a form-encoded webhook."""

    data = url + "".join(f"{key}{params[key]}" for key in sorted(params))
    digest = hmac.new(auth_token.encode("utf-8"), data.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("ascii")


class SmsAdapter(ChannelAdapter):
    channel_name = "sms"

    def verify_signature(
        self,
        body: bytes,
        headers: Mapping[str, str],
        *,
        url: str | None = None,
    ) -> bool:
        token = self.config.get("auth_token")
        if not token:
            return True
        received = headers.get("x-twilio-signature") or headers.get("X-Twilio-Signature")
        if not received or not url:
            return False
        params = dict(parse_qsl(body.decode("utf-8"), keep_blank_values=True))
        return hmac.compare_digest(received, twilio_signature(token, url, params))

    def parse_incoming(
        self,
        payload: Mapping[str, Any],
        headers: Mapping[str, str],
    ) -> Iterable[InboundMessage]:
        sender = payload.get("From")
        if not sender:
            return []
        try:
            num_media = int(payload.get("NumMedia") or 0)
        except ValueError:
            num_media = 0
        return [
            InboundMessage(
                id=str(payload.get("MessageSid") or ""),
                channel=self.channel_name,
                channel_id=str(sender),
                content=str(payload.get("Body") or ""),
                content_type="media" if num_media > 0 else "text",
                timestamp=datetime.now(timezone.utc),
                raw=dict(payload),
            )
        ]
