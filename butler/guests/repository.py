"""Persistence for guests and reservations."""

from __future__ import annotations

from datetime import date
from typing import Optional, Protocol
from uuid import uuid4

import psycopg
from psycopg.rows import dict_row

from .models import Guest, Reservation

ACTIVE_RESERVATION_STATUSES = ("confirmed", "checked_in")


class GuestRepository(Protocol):
    async def get(self, guest_id: str) -> Optional[Guest]: ...

    async def find_by_phone(self, phone: str) -> Optional[Guest]: ...

    async def find_by_email(self, email: str) -> Optional[Guest]: ...

    async def create(self, guest: Guest) -> Guest: ...

    async def add_reservation(self, reservation: Reservation) -> Reservation: ...

    async def get_reservation(self, reservation_id: str) -> Optional[Reservation]: ...

    async def find_current_reservation(
        self, guest_id: str, on_date: date
    ) -> Optional[Reservation]: ...


def new_guest_id() -> str:
    return f"guest_{uuid4().hex[:16]}"


def _pick_current(reservations: list[Reservation], on_date: date) -> Optional[Reservation]:
    """Prefer an in-house stay, then the next upcoming arrival."""

    active = [r for r in reservations if r.status in ACTIVE_RESERVATION_STATUSES]
    in_house = [r for r in active if r.arrival_date <= on_date <= r.departure_date]
    if in_house:
        return min(in_house, key=lambda r: r.arrival_date)
    upcoming = [r for r in active if r.arrival_date > on_date]
    if upcoming:
        return min(upcoming, key=lambda r: r.arrival_date)
    return None


class InMemoryGuestRepository:
    def __init__(self) -> None:
        self._guests: dict[str, Guest] = {}
        self._reservations: dict[str, Reservation] = {}

    async def get(self, guest_id: str) -> Optional[Guest]:
        guest = self._guests.get(guest_id)
        return guest.model_copy() if guest else None

    async def find_by_phone(self, phone: str) -> Optional[Guest]:
        for guest in self._guests.values():
            if guest.phone == phone:
                return guest.model_copy()
        return None

    async def find_by_email(self, email: str) -> Optional[Guest]:
        needle = email.lower()
        for guest in self._guests.values():
            if guest.email and guest.email.lower() == needle:
                return guest.model_copy()
        return None

    async def create(self, guest: Guest) -> Guest:
        self._guests[guest.id] = guest.model_copy()
        return guest

    async def add_reservation(self, reservation: Reservation) -> Reservation:
        self._reservations[reservation.id] = reservation.model_copy()
        return reservation

    async def get_reservation(self, reservation_id: str) -> Optional[Reservation]:
        reservation = self._reservations.get(reservation_id)
        return reservation.model_copy() if reservation else None

    async def find_current_reservation(
        self, guest_id: str, on_date: date
    ) -> Optional[Reservation]:
        owned = [r for r in self._reservations.values() if r.guest_id == guest_id]
        return _pick_current(owned, on_date)


class PostgresGuestRepository:
    """PostgreSQL implementation of :class:`GuestRepository`."""

    def __init__(self, conn: psycopg.AsyncConnection) -> None:
        self._conn = conn

    def _cursor(self):
        return self._conn.cursor(row_factory=dict_row)

    async def _fetch_guest(self, query: str, params: tuple) -> Optional[Guest]:
        async with self._cursor() as cur:
            await cur.execute(query, params)
            row = await cur.fetchone()
        return Guest(**row) if row else None

    async def get(self, guest_id: str) -> Optional[Guest]:
        return await self._fetch_guest("SELECT * FROM guests WHERE id = %s", (guest_id,))

    async def find_by_phone(self, phone: str) -> Optional[Guest]:
        return await self._fetch_guest(
            "SELECT * FROM guests WHERE phone = %s ORDER BY created_at LIMIT 1", (phone,)
        )

    async def find_by_email(self, email: str) -> Optional[Guest]:
        return await self._fetch_guest(
            "SELECT * FROM guests WHERE lower(email) = lower(%s) ORDER BY created_at LIMIT 1",
            (email,),
        )

    async def create(self, guest: Guest) -> Guest:
        async with self._cursor() as cur:
            await cur.execute(
                """
                INSERT INTO guests (id, first_name, last_name, phone, email, language,
                                    loyalty_tier, vip_status, created_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (
                    guest.id,
                    guest.first_name,
                    guest.last_name,
                    guest.phone,
                    guest.email,
                    guest.language,
                    guest.loyalty_tier,
                    guest.vip_status,
                    guest.created_at,
                ),
            )
            row = await cur.fetchone()
        return Guest(**row)

    async def add_reservation(self, reservation: Reservation) -> Reservation:
        async with self._cursor() as cur:
            await cur.execute(
                """
                INSERT INTO reservations (id, guest_id, confirmation_number, room_number,
                                          room_type, arrival_date, departure_date, status)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (
                    reservation.id,
                    reservation.guest_id,
                    reservation.confirmation_number,
                    reservation.room_number,
                    reservation.room_type,
                    reservation.arrival_date,
                    reservation.departure_date,
                    reservation.status,
                ),
            )
            row = await cur.fetchone()
        return Reservation(**row)

    async def get_reservation(self, reservation_id: str) -> Optional[Reservation]:
        async with self._cursor() as cur:
            await cur.execute("SELECT * FROM reservations WHERE id = %s", (reservation_id,))
            row = await cur.fetchone()
        return Reservation(**row) if row else None

    async def find_current_reservation(
        self, guest_id: str, on_date: date
    ) -> Optional[Reservation]:
        async with self._cursor() as cur:
            await cur.execute(
                """
                SELECT * FROM reservations
                WHERE guest_id = %s AND status = ANY(%s) AND departure_date >= %s
                ORDER BY arrival_date
                """,
                (guest_id, list(ACTIVE_RESERVATION_STATUSES), on_date),
            )
            rows = await cur.fetchall()
        return _pick_current([Reservation(**row) for row in rows], on_date)
