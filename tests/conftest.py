import pathlib
import sys
from datetime import date, timedelta

import pytest
from fastapi import FastAPI, Request

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))
from butler.ai.responder import AIResponse
from butler.app_logging import init_logging
from butler.config import Settings, reset_settings_cache
from butler.container import build_services
from butler.conversations.models import InboundMessage
from butler.core.autonomy import InMemoryAutonomySettingsStore
from butler.events import EventBus, EventRecorder
from butler.guests.models import Guest, Reservation


class StubResponder:
    """Responder returning a configurable canned reply, or raising it."""

    def __init__(self, response: AIResponse | Exception | None = None) -> None:
        self.response = response or AIResponse(
            content="Hello! How can I help?", intent="greeting", confidence=0.95
        )
        self.calls = []

    async def generate(self, conversation, inbound, guest_context=None):
        self.calls.append((conversation, inbound, guest_context))
        if isinstance(self.response, Exception):
            raise self.response
        return AIResponse(
            content=self.response.content,
            intent=self.response.intent,
            confidence=self.response.confidence,
            entities=self.response.entities,
            metadata=dict(self.response.metadata) if self.response.metadata else None,
        )

    def reply(self, content, intent=None, confidence=None, metadata=None):
        self.response = AIResponse(
            content=content, intent=intent, confidence=confidence, metadata=metadata
        )


@pytest.fixture(autouse=True)
def _fresh_settings():
    reset_settings_cache()
    yield
    reset_settings_cache()


@pytest.fixture
def responder():
    return StubResponder()


@pytest.fixture
def services(responder):
    events = EventBus()
    return build_services(
        Settings(hotel_name="Grand Test Hotel"),
        responder=responder,
        autonomy_store=InMemoryAutonomySettingsStore(),
        events=events,
    )


@pytest.fixture
def recorder(services):
    return EventRecorder(services.events)


@pytest.fixture
def make_inbound():
    counter = {"n": 0}

    def _make(content, channel="whatsapp", channel_id="+15551230000", content_type="text"):
        counter["n"] += 1
        return InboundMessage(
            id=f"wamid.{counter['n']}",
            channel=channel,
            channel_id=channel_id,
            content=content,
            content_type=content_type,
        )

    return _make


@pytest.fixture
def vip_guest(services):
    """A VIP guest staying in room 412, registered by phone."""

    async def _create():
        guest = await services.guests.create(
            Guest(
                id="guest_vip",
                first_name="Ada",
                last_name="Lovelace",
                phone="+15559990000",
                vip_status="platinum",
                loyalty_tier="gold",
            )
        )
        today = date.today()
        await services.guests.add_reservation(
            Reservation(
                id="res_vip",
                guest_id=guest.id,
                confirmation_number="CONF-412",
                room_number="412",
                arrival_date=today - timedelta(days=1),
                departure_date=today + timedelta(days=2),
                status="checked_in",
            )
        )
        return guest

    return _create


@pytest.fixture
def app_factory(monkeypatch):
    def _create_app(log_dir: str, log_request_bodies: bool = False):
        """Create a FastAPI app with logging initialised."""
        monkeypatch.setenv("LOG_DIR", str(log_dir))
        if log_request_bodies:
            monkeypatch.setenv("LOG_REQUEST_BODIES", "true")
        app = FastAPI()

        @app.post("/echo")
        async def echo(request: Request):
            return await request.json()

        init_logging(app)
        return app

    return _create_app
