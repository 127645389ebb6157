"""
Service-level tests for seat conflict detection, ticket reference allocation
and concurrent booking on one schedule.
"""

import asyncio
import warnings
from datetime import timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.exc import InvalidRequestError, SADeprecationWarning

from app.core.exceptions import (
    AllocationExhausted,
    DuplicateReference,
    InvalidBookingState,
    ScheduleContention,
    SeatConflict,
    ValidationError,
)
from app.models.booking import Booking, BookingStatus, PaymentStatus
from app.models.schedule import Schedule
from app.services import booking_service, ticket_service
from app.services.booking_service import compute_total_fare, to_minor_units
from app.services.interfaces.local_seat_lock import LocalSeatLock
from app.services.seat_lock_service import RedisSeatLock
from app.services.seat_service import (
    check_conflict,
    find_conflicts,
    get_active_bookings,
    get_booked_seats,
    normalize_seats,
)


def _held(ticket_reference: str, seats: list[str], status: str = BookingStatus.PENDING):
    return SimpleNamespace(ticket_reference=ticket_reference, selected_seats=seats, status=status)


async def _count_bookings(db, schedule_id: int) -> int:
    result = await db.execute(
        select(func.count()).select_from(Booking).where(Booking.schedule_id == schedule_id)
    )
    return result.scalar()


async def _insert_rival(session_factory, user_id: int, schedule_id: int, bus_id: int, seats: list[str], reference: str):
    """Commit a booking and bump the schedule version from a separate session."""
    async with session_factory() as session:
        session.add(
            Booking(
                user_id=user_id,
                schedule_id=schedule_id,
                bus_id=bus_id,
                selected_seats=seats,
                total_fare=Decimal("20.00") * len(seats),
                status=BookingStatus.PENDING,
                payment_status=PaymentStatus.PENDING,
                ticket_reference=reference,
            )
        )
        await session.flush()
        await session.execute(
            update(Schedule).where(Schedule.id == schedule_id).values(version=Schedule.version + 1)
        )
        await session.commit()


# --- Conflict detection -------------------------------------------------------

def test_find_conflicts_no_active_bookings():
    result = find_conflicts(["A1", "A2"], [])
    assert result.ok
    assert result.conflicting_seats == []


def test_find_conflicts_reports_every_overlap_with_holder():
    active = [
        _held("PNRAAAAAAA", ["A1", "A2"]),
        _held("PNRBBBBBBB", ["B1"], status=BookingStatus.CONFIRMED),
    ]
    result = find_conflicts(["A2", "A3", "B1"], active)

    assert not result.ok
    assert result.conflicting_seats == ["A2", "B1"]
    assert [h.ticket_reference for h in result.holders] == ["PNRAAAAAAA", "PNRBBBBBBB"]
    assert "A2 held by PNRAAAAAAA (pending payment)" in result.detail
    assert "B1 held by PNRBBBBBBB (confirmed)" in result.detail


def test_find_conflicts_disjoint_seats():
    result = find_conflicts(["C1"], [_held("PNRAAAAAAA", ["A1", "A2"])])
    assert result.ok


def test_normalize_seats_strips_labels():
    assert normalize_seats([" A1", "A2 "]) == ["A1", "A2"]


@pytest.mark.parametrize(
    "seats, message",
    [
        ([], "non-empty"),
        (["A1", " A1"], "Duplicate seats in request: A1"),
        (["A1", ""], "must not be blank"),
        ([f"S{i}" for i in range(11)], "At most 10 seats"),
    ],
)
def test_normalize_seats_rejects(seats, message):
    with pytest.raises(ValidationError) as exc_info:
        normalize_seats(seats)
    assert message in exc_info.value.detail


@pytest.mark.asyncio
async def test_empty_request_never_touches_storage():
    with pytest.raises(ValidationError):
        await booking_service.create_booking(None, user_id=1, schedule_id=1, selected_seats=[])


# --- Fares --------------------------------------------------------------------

def test_total_fare_is_fare_times_seats():
    assert compute_total_fare(Decimal("20.00"), 3) == Decimal("60.00")
    assert compute_total_fare(12.5, 2) == Decimal("25.00")


def test_minor_units_round_half_up():
    assert to_minor_units(Decimal("40.00")) == 4000
    assert to_minor_units(Decimal("10.005")) == 1001
    assert to_minor_units(19.99) == 1999


# --- Ticket references ----------------------------------------------------------

def test_generated_reference_shape():
    reference = ticket_service.generate_ticket_reference()
    assert reference.startswith("PNR")
    assert len(reference) == len("PNR") + 7
    assert reference[3:].isalnum() and reference[3:].upper() == reference[3:]


@pytest.mark.asyncio
async def test_allocate_unique_skips_taken_candidates():
    candidates = iter(["PNRTAKEN01", "PNRTAKEN02", "PNRFREE001"])
    taken = {"PNRTAKEN01", "PNRTAKEN02"}

    async def exists(reference):
        return reference in taken

    reference = await ticket_service.allocate_unique(lambda: next(candidates), exists, max_attempts=5)
    assert reference == "PNRFREE001"


@pytest.mark.asyncio
async def test_allocate_unique_gives_up_after_max_attempts():
    calls = []

    def generate():
        calls.append(1)
        return "PNRSAME0001"

    async def exists(reference):
        return True

    with pytest.raises(AllocationExhausted):
        await ticket_service.allocate_unique(generate, exists, max_attempts=4)
    assert len(calls) == 4


@pytest.mark.asyncio
async def test_exhausted_allocation_persists_nothing(
    db_session, session_factory, monkeypatch, test_user, test_schedule
):
    """A booking whose reference cannot be allocated fails retryably and writes no row."""
    user_id, schedule_id, bus_id = test_user.id, test_schedule.id, test_schedule.bus_id
    await _insert_rival(session_factory, user_id, schedule_id, bus_id, ["Z9"], "PNRFIXED01")

    async def always_taken(db):
        return await ticket_service.allocate_ticket_reference(db, generate=lambda: "PNRFIXED01", max_attempts=3)

    monkeypatch.setattr(booking_service, "allocate_ticket_reference", always_taken)

    with pytest.raises(AllocationExhausted) as exc_info:
        await booking_service.create_booking(db_session, user_id, schedule_id, ["A1"])
    assert exc_info.value.status_code == 503
    assert exc_info.value.headers["Retry-After"] == "1"

    assert await _count_bookings(db_session, schedule_id) == 1
    assert await get_booked_seats(db_session, schedule_id) == ["Z9"]


@pytest.mark.asyncio
async def test_duplicate_reference_on_insert_is_retried(
    db_session, session_factory, monkeypatch, test_user, test_schedule
):
    """A reference that slips past the existence check trips the unique index and is retried."""
    user_id, schedule_id, bus_id = test_user.id, test_schedule.id, test_schedule.bus_id
    await _insert_rival(session_factory, user_id, schedule_id, bus_id, ["Z9"], "PNRDUPE001")

    references = iter(["PNRDUPE001", "PNRFRESH01"])

    async def racing_allocator(db):
        return next(references)

    monkeypatch.setattr(booking_service, "allocate_ticket_reference", racing_allocator)

    booking = await booking_service.create_booking(db_session, user_id, schedule_id, ["A1"])
    assert booking.ticket_reference == "PNRFRESH01"
    assert await _count_bookings(db_session, schedule_id) == 2


@pytest.mark.asyncio
async def test_duplicate_reference_surfaces_after_retries(
    db_session, session_factory, monkeypatch, test_user, test_schedule
):
    user_id, schedule_id, bus_id = test_user.id, test_schedule.id, test_schedule.bus_id
    await _insert_rival(session_factory, user_id, schedule_id, bus_id, ["Z9"], "PNRDUPE001")

    async def stuck_allocator(db):
        return "PNRDUPE001"

    monkeypatch.setattr(booking_service, "allocate_ticket_reference", stuck_allocator)

    with pytest.raises(DuplicateReference):
        await booking_service.create_booking(db_session, user_id, schedule_id, ["A1"])
    assert await _count_bookings(db_session, schedule_id) == 1


# --- Concurrency ----------------------------------------------------------------

@pytest.mark.asyncio
async def test_concurrent_overlapping_requests_one_wins(
    db_session, session_factory, test_user, other_user, test_schedule
):
    """Two requests for A1,A2 and A2,A3 at the same instant: exactly one succeeds."""
    schedule_id = test_schedule.id
    lock = LocalSeatLock()

    async with session_factory() as first, session_factory() as second:
        results = await asyncio.gather(
            booking_service.create_booking(first, test_user.id, schedule_id, ["A1", "A2"], seat_lock=lock),
            booking_service.create_booking(second, other_user.id, schedule_id, ["A2", "A3"], seat_lock=lock),
            return_exceptions=True,
        )

    winners = [r for r in results if isinstance(r, Booking)]
    losers = [r for r in results if isinstance(r, SeatConflict)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert losers[0].conflicting_seats == ["A2"]
    assert losers[0].holders[0]["ticket_reference"] == winners[0].ticket_reference

    booked = await get_booked_seats(db_session, schedule_id)
    assert sorted(booked) == sorted(winners[0].selected_seats)


@pytest.mark.asyncio
async def test_many_requests_for_one_seat(db_session, session_factory, test_user, test_schedule):
    schedule_id = test_schedule.id
    lock = LocalSeatLock()
    sessions = [session_factory() for _ in range(5)]
    try:
        results = await asyncio.gather(
            *(
                booking_service.create_booking(session, test_user.id, schedule_id, ["A1"], seat_lock=lock)
                for session in sessions
            ),
            return_exceptions=True,
        )
    finally:
        for session in sessions:
            await session.close()

    assert sum(isinstance(r, Booking) for r in results) == 1
    assert sum(isinstance(r, SeatConflict) for r in results) == 4
    assert await get_booked_seats(db_session, schedule_id) == ["A1"]


@pytest.mark.asyncio
async def test_version_conflict_retries_and_sees_winner(
    db_session, session_factory, monkeypatch, test_user, other_user, test_schedule
):
    """
    A writer that commits between our check and our insert bumps the schedule
    version; our attempt is rolled back, retried and reports the winner's seats.
    """
    user_id, rival_id = test_user.id, other_user.id
    schedule_id, bus_id = test_schedule.id, test_schedule.bus_id
    real_check = booking_service.check_conflict
    calls = []

    async def check_then_lose_race(db, sid, seats):
        calls.append(sid)
        result = await real_check(db, sid, seats)
        if len(calls) == 1:
            await _insert_rival(session_factory, rival_id, sid, bus_id, ["A2"], "PNRRIVAL01")
        return result

    monkeypatch.setattr(booking_service, "check_conflict", check_then_lose_race)

    with pytest.raises(SeatConflict) as exc_info:
        await booking_service.create_booking(db_session, user_id, schedule_id, ["A1", "A2"])

    assert len(calls) == 2
    assert exc_info.value.conflicting_seats == ["A2"]
    assert await get_booked_seats(db_session, schedule_id) == ["A2"]


@pytest.mark.asyncio
async def test_persistent_version_conflicts_are_retryable(
    db_session, session_factory, monkeypatch, test_user, test_schedule
):
    schedule_id = test_schedule.id
    real_check = booking_service.check_conflict

    async def check_under_constant_writes(db, sid, seats):
        result = await real_check(db, sid, seats)
        async with session_factory() as session:
            await session.execute(
                update(Schedule).where(Schedule.id == sid).values(version=Schedule.version + 1)
            )
            await session.commit()
        return result

    monkeypatch.setattr(booking_service, "check_conflict", check_under_constant_writes)

    with pytest.raises(ScheduleContention) as exc_info:
        await booking_service.create_booking(db_session, test_user.id, schedule_id, ["A1"])
    assert exc_info.value.status_code == 503
    assert await _count_bookings(db_session, schedule_id) == 0


@pytest.mark.asyncio
async def test_local_seat_lock_scopes_by_schedule():
    lock = LocalSeatLock()
    entered = asyncio.Event()
    release = asyncio.Event()

    async def hold_first():
        async with lock.hold(1):
            entered.set()
            await release.wait()

    holder = asyncio.create_task(hold_first())
    await entered.wait()
    assert lock.is_held(1)

    # Another schedule is never blocked by schedule 1
    async with lock.hold(2):
        assert lock.is_held(2)

    waiter = asyncio.create_task(_enter(lock, 1))
    await asyncio.sleep(0)
    assert not waiter.done()

    release.set()
    await holder
    await waiter
    assert not lock.is_held(1)
    assert lock._locks == {}


async def _enter(lock, schedule_id):
    async with lock.hold(schedule_id):
        return True


@pytest.mark.asyncio
async def test_redis_lock_falls_back_to_local_lock_without_redis():
    lock = RedisSeatLock()
    async with lock.hold(7):
        assert lock.fallback.is_held(7)
    assert not lock.fallback.is_held(7)


# --- Relationship loading -------------------------------------------------------

@pytest.mark.asyncio
async def test_seat_checks_load_bookings_without_deprecated_loaders(db_session, test_user, test_schedule):
    user_id, schedule_id = test_user.id, test_schedule.id
    await booking_service.create_booking(db_session, user_id, schedule_id, ["A1"])

    with warnings.catch_warnings():
        warnings.simplefilter("error", SADeprecationWarning)
        active = await get_active_bookings(db_session, schedule_id)
        conflict = await check_conflict(db_session, schedule_id, ["A1", "A2"])

    assert [b.selected_seats for b in active] == [["A1"]]
    assert conflict.conflicting_seats == ["A1"]


@pytest.mark.asyncio
async def test_reverse_collections_raise_instead_of_loading(test_bus, test_schedule, test_user):
    with pytest.raises(InvalidRequestError):
        test_schedule.bookings
    with pytest.raises(InvalidRequestError):
        test_bus.schedules
    with pytest.raises(InvalidRequestError):
        test_user.bookings


# --- Cancellation window --------------------------------------------------------

@pytest.mark.asyncio
async def test_confirmed_cancellation_cutoff_boundary(db_session, test_user, test_schedule):
    user_id, schedule_id = test_user.id, test_schedule.id
    departure = test_schedule.departure_time
    if departure.tzinfo is None:
        departure = departure.replace(tzinfo=timezone.utc)
    cutoff = departure - timedelta(hours=24)

    late = await booking_service.create_booking(db_session, user_id, schedule_id, ["A1"])
    await booking_service.confirm_booking(db_session, late.id, user_id, "pi_late")
    with pytest.raises(InvalidBookingState):
        await booking_service.cancel_booking(db_session, late.id, user_id, now=cutoff + timedelta(seconds=1))

    on_time = await booking_service.create_booking(db_session, user_id, schedule_id, ["A2"])
    await booking_service.confirm_booking(db_session, on_time.id, user_id, "pi_on_time")
    cancelled = await booking_service.cancel_booking(db_session, on_time.id, user_id, now=cutoff)
    assert cancelled.status == BookingStatus.CANCELLED
    assert cancelled.payment_status == PaymentStatus.SUCCEEDED

    assert await get_booked_seats(db_session, schedule_id) == ["A1"]
