import asyncio
import hashlib
import hmac
import json

import pytest

from butler.channels import (
    APOLOGY_MESSAGE,
    SmsAdapter,
    WebChatAdapter,
    WhatsAppAdapter,
    get_adapter,
)
from butler.channels.base import UNSUPPORTED_CONTENT_MESSAGE
from butler.channels.sms import twilio_signature
from butler.conversations.models import OutboundMessage


def _whatsapp_payload(*messages):
    return {
        "object": "whatsapp_business_account",
        "entry": [{"id": "1", "changes": [{"field": "messages", "value": {"messages": list(messages)}}]}],
    }


def test_registry():
    assert get_adapter("WhatsApp") is WhatsAppAdapter
    assert get_adapter("sms") is SmsAdapter
    with pytest.raises(KeyError):
        get_adapter("pigeon")


def test_whatsapp_parses_text_and_interactive_messages():
    payload = _whatsapp_payload(
        {"from": "15551230000", "id": "wamid.1", "timestamp": "1700000000", "type": "text", "text": {"body": "Hello"}},
        {
            "from": "15551230000",
            "id": "wamid.2",
            "type": "interactive",
            "interactive": {"type": "button_reply", "button_reply": {"id": "b1", "title": "Late checkout"}},
        },
        {"from": "15551230000", "id": "wamid.3", "type": "image", "image": {"caption": "look"}},
    )

    messages = list(WhatsAppAdapter().parse_incoming(payload, {}))

    assert [(m.id, m.content, m.content_type) for m in messages] == [
        ("wamid.1", "Hello", "text"),
        ("wamid.2", "Late checkout", "text"),
        ("wamid.3", "look", "image"),
    ]
    assert messages[0].channel == "whatsapp"
    assert messages[0].channel_id == "+15551230000"
    assert messages[0].timestamp.year == 2023


def test_whatsapp_status_callbacks_have_no_messages():
    payload = {"entry": [{"changes": [{"value": {"statuses": [{"status": "read"}]}}]}]}
    assert list(WhatsAppAdapter().parse_incoming(payload, {})) == []


def test_whatsapp_signature():
    body = json.dumps({"entry": []}).encode()
    adapter = WhatsAppAdapter(config={"app_secret": "s3cret"})
    digest = hmac.new(b"s3cret", body, hashlib.sha256).hexdigest()

    assert adapter.verify_signature(body, {"X-Hub-Signature-256": f"sha256={digest}"})
    assert not adapter.verify_signature(body, {"X-Hub-Signature-256": "sha256=bad"})
    assert not adapter.verify_signature(body, {})
    assert WhatsAppAdapter().verify_signature(body, {})


def test_whatsapp_outgoing_payload():
    payload = WhatsAppAdapter().build_outgoing_payload(
        OutboundMessage(conversation_id="conv_1", content="Hi!"), "+15551230000"
    )
    assert payload == {
        "messaging_product": "whatsapp",
        "recipient_type": "individual",
        "to": "15551230000",
        "type": "text",
        "text": {"preview_url": False, "body": "Hi!"},
    }


def test_sms_parse_and_signature():
    form = {"From": "+15557654321", "Body": "Need towels", "MessageSid": "SM1", "NumMedia": "0"}
    url = "https://hotel.example/api/webhooks/sms"
    body = "&".join(f"{k}={v}" for k, v in form.items()).replace("+", "%2B").encode()
    adapter = SmsAdapter(config={"auth_token": "tok"})

    messages = list(adapter.parse_incoming(form, {}))

    assert messages[0].channel_id == "+15557654321"
    assert messages[0].content == "Need towels"
    assert messages[0].content_type == "text"
    signature = twilio_signature("tok", url, form)
    assert adapter.verify_signature(body, {"X-Twilio-Signature": signature}, url=url)
    assert not adapter.verify_signature(body, {"X-Twilio-Signature": signature}, url=url + "?x=1")


def test_sms_media_and_empty_payloads():
    adapter = SmsAdapter()
    media = list(adapter.parse_incoming({"From": "+1555", "Body": "", "NumMedia": "1"}, {}))
    assert media[0].content_type == "media"
    assert list(adapter.parse_incoming({}, {})) == []


def test_webchat_requires_session_and_content():
    adapter = WebChatAdapter()
    assert list(adapter.parse_incoming({"session_id": "s1", "content": "   "}, {})) == []
    (message,) = adapter.parse_incoming({"session_id": "s1", "content": " Hi ", "message_id": "m9"}, {})
    assert (message.id, message.channel_id, message.content) == ("m9", "s1", "Hi")


class _Processor:
    def __init__(self, error=None):
        self.error = error
        self.seen = []

    async def process(self, inbound):
        self.seen.append(inbound)
        inbound.conversation_id = "conv_1"
        if self.error:
            raise self.error
        return OutboundMessage(conversation_id="conv_1", content="ok")


def test_handle_returns_apology_on_failure(caplog):
    adapter = WebChatAdapter()
    (inbound,) = adapter.parse_incoming({"session_id": "s1", "content": "Hi"}, {})

    outbound = asyncio.run(adapter.handle(_Processor(ConnectionError("db down")), inbound))

    assert outbound.content == APOLOGY_MESSAGE
    assert outbound.metadata == {"error": True}
    assert outbound.conversation_id == "conv_1"
    assert "Failed to process inbound message" in caplog.text


def test_handle_rejects_unsupported_content_types():
    processor = _Processor()
    (inbound,) = SmsAdapter().parse_incoming({"From": "+1555", "NumMedia": "2"}, {})

    outbound = asyncio.run(SmsAdapter().handle(processor, inbound))

    assert outbound.content == UNSUPPORTED_CONTENT_MESSAGE
    assert processor.seen == []
