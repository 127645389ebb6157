"""
Payment intents through Stripe.

The booking's recorded total is the only amount ever charged; the client
never supplies an amount. The intent carries the booking and user ids in its
metadata so confirmation can check the intent really pays for this booking.
"""

from typing import Optional

import stripe
from fastapi import status
from starlette.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import (
    Forbidden,
    InvalidBookingState,
    NotFound,
    PaymentProviderError,
    PaymentUnavailable,
)
from app.core.logging import get_logger
from app.models.booking import BookingStatus
from app.services.booking_service import get_booking_detail, to_minor_units
from app.services.interfaces.payment_gateway import PaymentGateway, PaymentIntent

logger = get_logger(__name__)
settings = get_settings()

PLACEHOLDER_SECRET_KEY = "sk_test_your_stripe_secret_key_here"


def intent_idempotency_key(booking_id: int) -> str:
    """Stripe replays the first intent for a booking instead of creating another."""
    return f"booking-{booking_id}"


def _to_payment_intent(intent) -> PaymentIntent:
    return PaymentIntent(
        id=intent.id,
        amount=intent.amount,
        currency=intent.currency,
        status=intent.status,
        client_secret=getattr(intent, "client_secret", None),
        metadata=dict(intent.metadata or {}),
    )


class StripeGateway(PaymentGateway):
    """PaymentGateway backed by Stripe PaymentIntents. Calls run in the threadpool."""

    def __init__(self, api_key: str):
        self.api_key = api_key

    async def create_intent(
        self,
        amount: int,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: Optional[str] = None,
    ) -> PaymentIntent:
        options = {"api_key": self.api_key}
        if idempotency_key:
            options["idempotency_key"] = idempotency_key
        try:
            intent = await run_in_threadpool(
                stripe.PaymentIntent.create,
                amount=amount,
                currency=currency,
                metadata=metadata,
                **options,
            )
        except stripe.StripeError as e:
            raise _translate_stripe_error(e, "create_intent")
        return _to_payment_intent(intent)

    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        try:
            intent = await run_in_threadpool(
                stripe.PaymentIntent.retrieve,
                intent_id,
                api_key=self.api_key,
            )
        except stripe.StripeError as e:
            raise _translate_stripe_error(e, "retrieve_intent")
        return _to_payment_intent(intent)


def _translate_stripe_error(error: stripe.StripeError, operation: str) -> PaymentProviderError:
    logger.error(
        "payment_provider_error",
        operation=operation,
        error_type=type(error).__name__,
        error=str(error),
    )
    if isinstance(error, stripe.CardError):
        return PaymentProviderError(
            status.HTTP_400_BAD_REQUEST,
            "Your card was declined. Please try a different payment method.",
        )
    if isinstance(error, stripe.InvalidRequestError):
        return PaymentProviderError(
            status.HTTP_400_BAD_REQUEST,
            "Invalid payment request. Please check your details and try again.",
        )
    if isinstance(error, stripe.APIConnectionError):
        return PaymentProviderError(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "Unable to connect to payment service. Please try again later.",
        )
    if isinstance(error, stripe.APIError):
        return PaymentProviderError(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "Payment service is temporarily unavailable. Please try again later.",
        )
    return PaymentProviderError(
        status.HTTP_502_BAD_GATEWAY,
        "An error occurred while processing your payment. Please try again.",
    )


_gateway: Optional[PaymentGateway] = None


def get_payment_gateway() -> PaymentGateway:
    """FastAPI dependency. Fails with PaymentUnavailable when Stripe is not configured."""
    global _gateway
    key = settings.STRIPE_SECRET_KEY
    if not key or key == PLACEHOLDER_SECRET_KEY:
        logger.error("payment_gateway_not_configured")
        raise PaymentUnavailable()
    if _gateway is None:
        _gateway = StripeGateway(api_key=key)
    return _gateway


def get_confirmation_gateway() -> Optional[PaymentGateway]:
    """Gateway used to verify intents on confirmation; None when verification is off."""
    if not settings.PAYMENT_VERIFY_ON_CONFIRM:
        return None
    return get_payment_gateway()


async def create_payment_intent(
    db: AsyncSession,
    booking_id: int,
    user_id: int,
    gateway: PaymentGateway,
) -> dict:
    """Create an intent for the booking's recorded total."""
    booking = await get_booking_detail(db, booking_id)
    if not booking:
        raise NotFound("Booking not found")
    if booking.user_id != user_id:
        raise Forbidden("Not authorized to access this booking")
    if booking.status == BookingStatus.CONFIRMED:
        raise InvalidBookingState("This booking has already been paid for")
    if booking.status == BookingStatus.CANCELLED:
        raise InvalidBookingState("Cannot pay for a cancelled booking")

    currency = settings.PAYMENT_CURRENCY
    intent = await gateway.create_intent(
        amount=to_minor_units(booking.total_fare),
        currency=currency,
        metadata={"booking_id": str(booking.id), "user_id": str(user_id)},
        idempotency_key=intent_idempotency_key(booking.id),
    )
    logger.info(
        "payment_intent_created",
        booking_id=booking.id,
        payment_intent_id=intent.id,
        amount=intent.amount,
        currency=currency,
    )
    return {
        "client_secret": intent.client_secret,
        "payment_intent_id": intent.id,
        "amount": float(booking.total_fare),
        "currency": currency,
    }
