"""Guest profiles, reservations and conversation context."""

from .models import Guest, GuestContext, Reservation
from .repository import GuestRepository, InMemoryGuestRepository, PostgresGuestRepository
from .service import GuestContextService, GuestService, normalize_phone

__all__ = [
    "Guest",
    "GuestContext",
    "GuestContextService",
    "GuestRepository",
    "GuestService",
    "InMemoryGuestRepository",
    "PostgresGuestRepository",
    "Reservation",
    "normalize_phone",
]
