"""
Seat availability and conflict detection for a schedule.

Held seats are recomputed from storage on every call: a seat is held while a
booking that lists it is pending or confirmed. Cancelled bookings release
their seats simply by dropping out of the query.

`find_conflicts` is pure so the overlap rules can be exercised without a
database; `check_conflict` binds it to the active-booking query. A conflict is
a returned result, not an exception. The caller decides how to reject.
"""

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import raiseload

from app.core.config import get_settings
from app.core.exceptions import ValidationError
from app.models.booking import Booking, BookingStatus

settings = get_settings()


@dataclass(frozen=True)
class SeatHolder:
    seat: str
    ticket_reference: str
    status: str

    def as_dict(self) -> dict:
        return {"seat": self.seat, "ticket_reference": self.ticket_reference, "status": self.status}


@dataclass(frozen=True)
class ConflictResult:
    ok: bool
    conflicting_seats: list[str] = field(default_factory=list)
    holders: list[SeatHolder] = field(default_factory=list)

    @property
    def detail(self) -> str:
        if self.ok:
            return "All requested seats are available"
        by_ticket: dict[str, tuple[str, list[str]]] = {}
        for holder in self.holders:
            status, seats = by_ticket.setdefault(holder.ticket_reference, (holder.status, []))
            seats.append(holder.seat)
        parts = [
            f"{', '.join(seats)} held by {ref} ({_describe_status(status)})"
            for ref, (status, seats) in by_ticket.items()
        ]
        return (
            "One or more of the selected seats are already booked: "
            + "; ".join(parts)
            + ". Please select different seats."
        )


def _describe_status(status: str) -> str:
    return "confirmed" if status == BookingStatus.CONFIRMED else "pending payment"


def normalize_seats(selected_seats: Sequence[str]) -> list[str]:
    """Validate a requested seat list. Never touches the database."""
    if not selected_seats:
        raise ValidationError("Selected seats must be a non-empty list")

    seats = [str(seat).strip() for seat in selected_seats]
    if any(not seat for seat in seats):
        raise ValidationError("Seat labels must not be blank")

    duplicates = sorted({seat for seat in seats if seats.count(seat) > 1})
    if duplicates:
        raise ValidationError(f"Duplicate seats in request: {', '.join(duplicates)}")

    if len(seats) > settings.MAX_SEATS_PER_BOOKING:
        raise ValidationError(
            f"At most {settings.MAX_SEATS_PER_BOOKING} seats can be booked at once"
        )
    return seats


def find_conflicts(requested_seats: Iterable[str], active_bookings: Iterable[Booking]) -> ConflictResult:
    """Intersect the request with every seat held by the given bookings."""
    held: dict[str, Booking] = {}
    for booking in active_bookings:
        for seat in booking.selected_seats or []:
            held.setdefault(seat, booking)

    holders = [
        SeatHolder(seat=seat, ticket_reference=held[seat].ticket_reference, status=held[seat].status)
        for seat in requested_seats
        if seat in held
    ]
    if not holders:
        return ConflictResult(ok=True)
    return ConflictResult(
        ok=False,
        conflicting_seats=[holder.seat for holder in holders],
        holders=holders,
    )


async def get_active_bookings(db: AsyncSession, schedule_id: int) -> list[Booking]:
    """Bookings on the schedule that currently hold seats."""
    result = await db.execute(
        select(Booking)
        .options(raiseload("*"))
        .where(
            Booking.schedule_id == schedule_id,
            Booking.status.in_(BookingStatus.ACTIVE),
        )
        .order_by(Booking.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def check_conflict(db: AsyncSession, schedule_id: int, requested_seats: Sequence[str]) -> ConflictResult:
    active = await get_active_bookings(db, schedule_id)
    return find_conflicts(requested_seats, active)


async def get_booked_seats(db: AsyncSession, schedule_id: int) -> list[str]:
    active = await get_active_bookings(db, schedule_id)
    return [seat for booking in active for seat in booking.selected_seats]
