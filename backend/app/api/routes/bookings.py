"""
Booking endpoints with concurrency-safe seat reservation.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.booking import BookingCreate, BookingConfirm, BookingResponse, BookingCancelResponse
from app.services import booking_service
from app.services.interfaces.payment_gateway import PaymentGateway
from app.services.payment_service import get_confirmation_gateway
from app.core.security import Principal, get_current_principal, get_current_user_id, require_admin

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Reserve seats on a schedule. The booking starts pending until payment.

    Returns 409 with the conflicting seats and the ticket references holding
    them when any requested seat is already taken. The fare is computed from
    the schedule; any fare in the request body is ignored.
    """
    return await booking_service.create_booking(
        db, user_id, booking_data.schedule_id, booking_data.selected_seats
    )


@router.post("/confirm", response_model=BookingResponse)
async def confirm_booking(
    confirm_data: BookingConfirm,
    user_id: int = Depends(get_current_user_id),
    gateway: Optional[PaymentGateway] = Depends(get_confirmation_gateway),
    db: AsyncSession = Depends(get_db),
):
    """
    Confirm a booking after payment. Safe to replay: confirming an already
    confirmed booking returns it unchanged.
    """
    return await booking_service.confirm_booking(
        db, confirm_data.booking_id, user_id, confirm_data.payment_intent_id, gateway
    )


@router.get("/", response_model=list[BookingResponse])
@router.get("/my-bookings", response_model=list[BookingResponse])
async def list_user_bookings(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Get all bookings for the authenticated user."""
    return await booking_service.get_user_bookings(db, user_id)


@router.get("/all", response_model=list[BookingResponse], dependencies=[Depends(require_admin)])
async def list_all_bookings(db: AsyncSession = Depends(get_db)):
    return await booking_service.list_all_bookings(db)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    return await booking_service.get_booking(db, booking_id, principal)


@router.delete("/{booking_id}", response_model=BookingCancelResponse)
async def cancel_booking_endpoint(
    booking_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a booking and release its seats."""
    booking = await booking_service.cancel_booking(db, booking_id, user_id)
    return BookingCancelResponse(
        message="Booking cancelled successfully",
        booking_id=booking.id,
        status=booking.status,
    )
