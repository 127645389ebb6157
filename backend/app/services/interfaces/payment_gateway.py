"""
Payment gateway interface.
The booking core only needs to create an intent and read one back.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class PaymentIntent:
    id: str
    amount: int  # minor currency units
    currency: str
    status: str
    client_secret: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"


class PaymentGateway(ABC):
    @abstractmethod
    async def create_intent(
        self,
        amount: int,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: Optional[str] = None,
    ) -> PaymentIntent:
        """
        Create a payment intent for `amount` minor units.

        Repeating a call with the same `idempotency_key` returns the intent
        the first call created instead of a new one.

        Returns:
            The intent, including the client secret the frontend needs
        """
        ...

    @abstractmethod
    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        """Fetch the current state of an intent from the processor."""
        ...
