"""
Pydantic schemas for payment intent creation.
"""

from pydantic import BaseModel


class PaymentIntentCreate(BaseModel):
    booking_id: int


class PaymentIntentResponse(BaseModel):
    client_secret: str
    payment_intent_id: str
    amount: float
    currency: str
