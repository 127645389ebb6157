"""
Domain error taxonomy.

Every error is an HTTPException with a fixed status code, so services can raise
them directly and FastAPI renders `{"detail": ...}` without extra handlers.
Business outcomes (validation, not found, forbidden, seat conflict) carry
detail the client can act on. Retryable conditions set Retry-After.
Infrastructure failures never expose internal detail.
"""

from typing import Any, Optional

from fastapi import HTTPException, status


class BookingError(HTTPException):
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_detail: str = "Booking request failed"

    def __init__(self, detail: Any = None, headers: Optional[dict[str, str]] = None):
        super().__init__(
            status_code=type(self).status_code,
            detail=detail if detail is not None else self.default_detail,
            headers=headers,
        )


class ValidationError(BookingError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"


class NotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Resource not found"


class Forbidden(BookingError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Not authorized to access this resource"


class InvalidBookingState(BookingError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Booking cannot change to the requested state"


class SeatConflict(BookingError):
    """Requested seats are held by another pending or confirmed booking."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, conflicting_seats: list[str], holders: list[dict], message: str):
        self.conflicting_seats = conflicting_seats
        self.holders = holders
        super().__init__(
            detail={
                "message": message,
                "conflicting_seats": conflicting_seats,
                "holders": holders,
            }
        )


class RetryableError(BookingError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retry_after_seconds: int = 1

    def __init__(self, detail: Any = None):
        super().__init__(detail, headers={"Retry-After": str(self.retry_after_seconds)})


class AllocationExhausted(RetryableError):
    default_detail = "Could not generate a unique ticket reference. Please try again."


class ScheduleContention(RetryableError):
    default_detail = "Booking failed due to high demand on this schedule. Please try again."


class DuplicateReference(BookingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "A booking with this ticket reference already exists. Please try again."


class PaymentVerificationError(BookingError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    default_detail = "Payment could not be verified for this booking"


class PaymentUnavailable(BookingError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Payment system is not properly configured. Please contact support."


class PaymentProviderError(HTTPException):
    """Failure reported by the payment processor; status depends on the failure kind."""

    def __init__(self, status_code: int, message: str):
        super().__init__(status_code=status_code, detail=message)


class InfrastructureError(BookingError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Internal server error"


class ResourceInUse(BookingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Resource is referenced by existing bookings or schedules"
