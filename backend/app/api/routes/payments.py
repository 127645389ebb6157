"""
Payment endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.payment import PaymentIntentCreate, PaymentIntentResponse
from app.services.interfaces.payment_gateway import PaymentGateway
from app.services.payment_service import create_payment_intent, get_payment_gateway
from app.core.security import get_current_user_id

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/create-payment-intent", response_model=PaymentIntentResponse)
async def create_payment_intent_endpoint(
    payload: PaymentIntentCreate,
    user_id: int = Depends(get_current_user_id),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_db),
):
    """Create a payment intent for the booking's recorded total."""
    return await create_payment_intent(db, payload.booking_id, user_id, gateway)
