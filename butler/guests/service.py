"""Guest identification and conversation context matching."""

from __future__ import annotations

import logging
import re
from datetime import date

from butler.conversations.service import ConversationService
from butler.errors import NotFoundError
from butler.events import EventBus, EventType

from .models import Guest, GuestContext, Reservation
from .repository import GuestRepository, new_guest_id

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(phone: str) -> str:
    """Reduce a channel identifier such as ``whatsapp:+44 7700-900`` to E.164-ish form."""

    value = phone.strip()
    if ":" in value:
        value = value.split(":", 1)[1]
    digits = _NON_DIGITS.sub("", value)
    if not digits:
        raise ValueError(f"Not a phone number: {phone!r}")
    return f"+{digits}"


class GuestService:
    def __init__(self, repository: GuestRepository, events: EventBus | None = None) -> None:
        self._repository = repository
        self._events = events or EventBus()

    async def get(self, guest_id: str) -> Guest:
        guest = await self._repository.get(guest_id)
        if guest is None:
            raise NotFoundError("Guest", guest_id)
        return guest

    async def create(self, guest: Guest) -> Guest:
        """Register a known guest profile, normalising the phone number."""

        if guest.phone:
            guest = guest.model_copy(update={"phone": normalize_phone(guest.phone)})
        guest = await self._repository.create(guest)
        self._events.emit(EventType.GUEST_CREATED, guest_id=guest.id, source="profile")
        return guest

    async def add_reservation(self, reservation: Reservation) -> Reservation:
        await self.get(reservation.guest_id)
        return await self._repository.add_reservation(reservation)

    async def find_or_create_by_phone(self, phone: str) -> Guest:
        normalized = normalize_phone(phone)
        guest = await self._repository.find_by_phone(normalized)
        if guest is not None:
            return guest
        guest = await self._repository.create(Guest(id=new_guest_id(), phone=normalized))
        logger.info("Guest created from inbound phone number", extra={"guest_id": guest.id})
        self._events.emit(EventType.GUEST_CREATED, guest_id=guest.id, source="phone")
        return guest


class GuestContextService:
    """Links conversations to a guest profile and their current stay."""

    def __init__(
        self,
        repository: GuestRepository,
        conversations: ConversationService,
        *,
        today=date.today,
    ) -> None:
        self._repository = repository
        self._conversations = conversations
        self._today = today

    async def match_conversation(
        self,
        conversation_id: str,
        *,
        phone: str | None = None,
        email: str | None = None,
    ) -> GuestContext:
        guest: Guest | None = None
        if phone:
            guest = await self._repository.find_by_phone(normalize_phone(phone))
        if guest is None and email:
            guest = await self._repository.find_by_email(email)
        if guest is None:
            return GuestContext()

        reservation = await self._repository.find_current_reservation(guest.id, self._today())
        await self._conversations.update(
            conversation_id,
            guest_id=guest.id,
            reservation_id=reservation.id if reservation else None,
        )
        return GuestContext(guest=guest, reservation=reservation)

    async def get_context_by_conversation(self, conversation_id: str) -> GuestContext:
        conversation = await self._conversations.get(conversation_id)
        if not conversation.guest_id:
            return GuestContext()
        guest = await self._repository.get(conversation.guest_id)
        reservation = None
        if conversation.reservation_id:
            reservation = await self._repository.get_reservation(conversation.reservation_id)
        return GuestContext(guest=guest, reservation=reservation)
