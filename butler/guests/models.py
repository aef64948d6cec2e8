"""Guest profile and reservation records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Guest(BaseModel):
    id: str
    first_name: str = ""
    last_name: str = ""
    phone: str | None = None
    email: str | None = None
    language: str | None = None
    loyalty_tier: str | None = None
    vip_status: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Reservation(BaseModel):
    id: str
    guest_id: str
    confirmation_number: str
    room_number: str | None = None
    room_type: str | None = None
    arrival_date: date
    departure_date: date
    status: str = "confirmed"


@dataclass
class GuestContext:
    """Guest and current stay resolved for a conversation."""

    guest: Guest | None = None
    reservation: Reservation | None = None

    @property
    def room_number(self) -> str | None:
        return self.reservation.room_number if self.reservation else None
