"""
Booking lifecycle with concurrency-safe seat reservation.

CONCURRENCY STRATEGY: Per-schedule lock + optimistic version check
===================================================================

Problem:
  Two users request overlapping seats on the same schedule at the same time.
  Both load the active bookings, both see the seats free, both insert.
  Result: the same seat sold twice.

  A unique index cannot prevent this: the rule compares the seat list of one
  booking row against the seat lists of every other active row.

Solution:
  1. The check-then-insert section runs under a per-schedule lock
     (see strategy_factory: in-process asyncio lock or a Redis lock).
  2. Inside the same transaction, the insert is followed by
     UPDATE schedules SET version = version + 1
       WHERE id = :schedule_id AND version = :version_read_before_the_check
     If rows_affected == 0 another writer committed against this schedule
     after we read it. The attempt is rolled back and retried; the retry sees
     the winner's booking and reports SeatConflict.
  3. The transaction commits before the lock is released, so the next holder
     always reads committed seats.

  The lock keeps contention cheap (losers wait instead of retrying). The
  version check keeps the invariant even if the lock is lost, expires or
  is bypassed by another deployment.

Ticket references:
  Allocated with a best-effort existence check; the unique constraint is the
  backstop. An IntegrityError on insert is retried like a version conflict and
  surfaces as DuplicateReference once retries run out.

State machine:
  pending -> confirmed   (verified payment, idempotent on replay)
  pending -> cancelled   (owner, any time)
  confirmed -> cancelled (owner, until CANCELLATION_CUTOFF_HOURS before departure)
"""

import time
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import (
    DuplicateReference,
    Forbidden,
    InvalidBookingState,
    NotFound,
    PaymentVerificationError,
    ScheduleContention,
    SeatConflict,
    ValidationError,
)
from app.core.logging import get_logger
from app.core.metrics import (
    booking_cancellations,
    booking_latency,
    record_booking_attempt,
    record_booking_retry,
    record_confirmation,
)
from app.core.security import Principal
from app.models.booking import Booking, BookingStatus, PaymentStatus
from app.models.schedule import Schedule
from app.services.interfaces.payment_gateway import PaymentGateway
from app.services.interfaces.seat_lock import SeatLockStrategy
from app.services.seat_service import check_conflict, normalize_seats
from app.services.strategy_factory import get_seat_lock
from app.services.ticket_service import allocate_ticket_reference

logger = get_logger(__name__)
settings = get_settings()


def compute_total_fare(fare, seat_count: int) -> Decimal:
    return (Decimal(str(fare)) * seat_count).quantize(Decimal("0.01"))


def to_minor_units(amount) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _is_duplicate_reference(error: IntegrityError) -> bool:
    return "ticket_reference" in str(error.orig)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def get_booking_detail(db: AsyncSession, booking_id: int) -> Optional[Booking]:
    """Load a booking with user, schedule and bus for display."""
    result = await db.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _get_owned_booking(db: AsyncSession, booking_id: int, user_id: int) -> Booking:
    booking = await get_booking_detail(db, booking_id)
    if not booking:
        raise NotFound("Booking not found")
    if booking.user_id != user_id:
        logger.warning("booking_access_denied", booking_id=booking_id, user_id=user_id)
        raise Forbidden("Not authorized to access this booking")
    return booking


async def create_booking(
    db: AsyncSession,
    user_id: int,
    schedule_id: int,
    selected_seats: Sequence[str],
    seat_lock: Optional[SeatLockStrategy] = None,
) -> Booking:
    """
    Reserve seats on a schedule as a pending booking.
    Retries up to BOOKING_MAX_RETRIES on version conflicts and reference races.
    """
    seats = normalize_seats(selected_seats)
    seat_lock = seat_lock or get_seat_lock()
    started = time.perf_counter()

    try:
        async with seat_lock.hold(schedule_id):
            booking = await _reserve_seats(db, user_id, schedule_id, seats)
    except (SeatConflict, ValidationError, NotFound):
        raise
    except Exception:
        record_booking_attempt("error")
        raise
    finally:
        booking_latency.observe(time.perf_counter() - started)

    record_booking_attempt("success")
    return await get_booking_detail(db, booking.id)


async def _reserve_seats(db: AsyncSession, user_id: int, schedule_id: int, seats: list[str]) -> Booking:
    max_attempts = settings.BOOKING_MAX_RETRIES

    for attempt in range(1, max_attempts + 1):
        # Step 1: Read schedule state and the version our check is based on
        result = await db.execute(
            select(Schedule)
            .where(Schedule.id == schedule_id)
            .execution_options(populate_existing=True)
        )
        schedule = result.scalar_one_or_none()
        if not schedule:
            raise NotFound(f"Schedule {schedule_id} not found")

        if len(seats) > schedule.bus.total_seats:
            raise ValidationError(
                f"Requested {len(seats)} seats but the bus has {schedule.bus.total_seats}"
            )
        version_read = schedule.version

        # Step 2: Seats held by pending/confirmed bookings
        conflict = await check_conflict(db, schedule_id, seats)
        if not conflict.ok:
            record_booking_attempt("conflict")
            logger.warning(
                "booking_failed_seat_conflict",
                schedule_id=schedule_id,
                user_id=user_id,
                conflicting_seats=conflict.conflicting_seats,
                holders=[h.ticket_reference for h in conflict.holders],
            )
            raise SeatConflict(
                conflicting_seats=conflict.conflicting_seats,
                holders=[h.as_dict() for h in conflict.holders],
                message=conflict.detail,
            )

        # Step 3: Server-side fare and a fresh ticket reference
        total_fare = compute_total_fare(schedule.fare, len(seats))
        ticket_reference = await allocate_ticket_reference(db)

        booking = Booking(
            user_id=user_id,
            schedule_id=schedule_id,
            bus_id=schedule.bus_id,
            selected_seats=seats,
            total_fare=total_fare,
            status=BookingStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            ticket_reference=ticket_reference,
        )
        db.add(booking)
        try:
            await db.flush()
        except IntegrityError as e:
            await db.rollback()
            if not _is_duplicate_reference(e):
                raise
            record_booking_retry("duplicate_reference")
            logger.info(
                "booking_retry",
                schedule_id=schedule_id,
                attempt=attempt,
                reason="duplicate_reference",
                ticket_reference=ticket_reference,
            )
            if attempt == max_attempts:
                raise DuplicateReference()
            continue

        # Step 4: Optimistic lock - commit only if nobody wrote this schedule since Step 1
        update_result = await db.execute(
            update(Schedule)
            .where(Schedule.id == schedule_id, Schedule.version == version_read)
            .values(version=Schedule.version + 1)
            .execution_options(synchronize_session=False)
        )
        if update_result.rowcount == 0:
            await db.rollback()
            record_booking_retry("version_conflict")
            logger.info(
                "booking_retry",
                schedule_id=schedule_id,
                attempt=attempt,
                reason="version_conflict",
            )
            if attempt == max_attempts:
                raise ScheduleContention()
            continue

        await db.commit()
        logger.info(
            "booking_created",
            booking_id=booking.id,
            ticket_reference=ticket_reference,
            user_id=user_id,
            schedule_id=schedule_id,
            seats=seats,
            total_fare=str(total_fare),
            attempt=attempt,
        )
        return booking

    # Loop always returns or raises
    raise ScheduleContention()


async def confirm_booking(
    db: AsyncSession,
    booking_id: int,
    user_id: int,
    payment_reference: str,
    gateway: Optional[PaymentGateway] = None,
) -> Booking:
    """
    Mark a booking paid. Replays for an already confirmed booking return it
    unchanged, whatever payment reference they carry.
    """
    booking = await _get_owned_booking(db, booking_id, user_id)

    if booking.status == BookingStatus.CONFIRMED:
        record_confirmation("replayed")
        logger.info(
            "booking_confirm_replayed",
            booking_id=booking.id,
            payment_reference=payment_reference,
            recorded_reference=booking.payment_reference,
        )
        return booking

    if booking.status == BookingStatus.CANCELLED:
        record_confirmation("rejected")
        raise InvalidBookingState("Cannot confirm a cancelled booking")

    if gateway is not None:
        await _verify_payment(booking, payment_reference, gateway)

    result = await db.execute(
        update(Booking)
        .where(Booking.id == booking.id, Booking.status == BookingStatus.PENDING)
        .values(
            status=BookingStatus.CONFIRMED,
            payment_reference=payment_reference,
            payment_status=PaymentStatus.SUCCEEDED,
            payment_date=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    confirmed = await get_booking_detail(db, booking.id)
    if result.rowcount == 0:
        # Lost a race with another confirmation or a cancellation
        if confirmed.status == BookingStatus.CONFIRMED:
            record_confirmation("replayed")
            logger.info("booking_confirm_replayed", booking_id=booking.id, concurrent=True)
            return confirmed
        record_confirmation("rejected")
        raise InvalidBookingState("Cannot confirm a cancelled booking")

    record_confirmation("confirmed")
    logger.info(
        "booking_confirmed",
        booking_id=booking.id,
        ticket_reference=booking.ticket_reference,
        payment_reference=payment_reference,
    )
    return confirmed


async def _verify_payment(booking: Booking, payment_reference: str, gateway: PaymentGateway) -> None:
    intent = await gateway.retrieve_intent(payment_reference)
    expected_amount = to_minor_units(booking.total_fare)
    problems = []
    if not intent.succeeded:
        problems.append(f"status is {intent.status}")
    if str(intent.metadata.get("booking_id")) != str(booking.id):
        problems.append("intent belongs to another booking")
    if intent.amount != expected_amount:
        problems.append(f"amount {intent.amount} does not match {expected_amount}")
    if intent.currency.lower() != settings.PAYMENT_CURRENCY.lower():
        problems.append(f"currency {intent.currency} does not match {settings.PAYMENT_CURRENCY}")

    if problems:
        record_confirmation("rejected")
        logger.warning(
            "payment_verification_failed",
            booking_id=booking.id,
            payment_reference=payment_reference,
            problems=problems,
        )
        raise PaymentVerificationError(f"Payment could not be verified: {'; '.join(problems)}")


async def cancel_booking(
    db: AsyncSession,
    booking_id: int,
    user_id: int,
    now: Optional[datetime] = None,
) -> Booking:
    """
    Cancel a booking, releasing its seats.
    Confirmed bookings can be cancelled until CANCELLATION_CUTOFF_HOURS before departure.
    """
    booking = await _get_owned_booking(db, booking_id, user_id)
    now = now or datetime.now(timezone.utc)

    if booking.status == BookingStatus.CANCELLED:
        raise InvalidBookingState("Booking is already cancelled")

    values = {"status": BookingStatus.CANCELLED}
    if booking.status == BookingStatus.CONFIRMED:
        cutoff = _as_utc(booking.schedule.departure_time) - timedelta(hours=settings.CANCELLATION_CUTOFF_HOURS)
        if now > cutoff:
            raise InvalidBookingState(
                f"Confirmed bookings can only be cancelled up to "
                f"{settings.CANCELLATION_CUTOFF_HOURS} hours before departure"
            )
    else:
        values["payment_status"] = PaymentStatus.CANCELLED

    previous_status = booking.status
    result = await db.execute(
        update(Booking)
        .where(Booking.id == booking.id, Booking.status == previous_status)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise InvalidBookingState("Booking was modified concurrently. Please retry.")
    await db.commit()

    booking_cancellations.labels(previous_status=previous_status).inc()
    logger.info(
        "booking_cancelled",
        booking_id=booking.id,
        ticket_reference=booking.ticket_reference,
        user_id=user_id,
        schedule_id=booking.schedule_id,
        seats_released=booking.selected_seats,
        previous_status=previous_status,
    )
    if previous_status == BookingStatus.CONFIRMED:
        logger.info(
            "refund_required",
            booking_id=booking.id,
            payment_reference=booking.payment_reference,
            amount=str(booking.total_fare),
        )
    return await get_booking_detail(db, booking.id)


async def get_booking(db: AsyncSession, booking_id: int, principal: Principal) -> Booking:
    """Owner or admin."""
    booking = await get_booking_detail(db, booking_id)
    if not booking:
        raise NotFound("Booking not found")
    if booking.user_id != principal.id and not principal.is_admin:
        raise Forbidden("Not authorized to access this booking")
    return booking


async def get_user_bookings(db: AsyncSession, user_id: int) -> list[Booking]:
    """Get all bookings for a user, newest first."""
    result = await db.execute(
        select(Booking)
        .where(Booking.user_id == user_id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return list(result.scalars().all())


async def list_all_bookings(db: AsyncSession) -> list[Booking]:
    result = await db.execute(
        select(Booking).order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return list(result.scalars().all())
