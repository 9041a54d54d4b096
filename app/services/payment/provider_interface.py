# app/services/payment/provider_interface.py
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any
from dataclasses import dataclass, field
from enum import Enum
from datetime import datetime


class WebhookEventType(str, Enum):
    """Provider events this service understands."""
    PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
    PAYMENT_INTENT_FAILED = "payment_intent.failed"
    CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
    UNKNOWN = "unknown"


@dataclass
class CreatePaymentIntentParams:
    """Parameters for charging a customer for a booking."""
    booking_id: str
    amount: int  # minor units
    currency: str
    description: str
    idempotency_key: str
    requires_host_approval: bool = False
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass
class PaymentIntentResult:
    intent_id: str
    client_secret: Optional[str]
    status: str
    provider_metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class WebhookEvent:
    """A verified provider event in provider-neutral form."""
    event_id: str
    event_type: WebhookEventType
    provider_event_type: str
    data: Dict[str, Any]
    created_at: datetime
    livemode: bool
    raw_payload: Dict[str, Any]


class PaymentProviderInterface(ABC):
    """Operations the booking flow needs from a payment provider."""

    @property
    @abstractmethod
    def code(self) -> str:
        ...

    @abstractmethod
    def get_publishable_key(self) -> Optional[str]:
        ...

    @abstractmethod
    async def create_payment_intent(
        self, params: CreatePaymentIntentParams
    ) -> PaymentIntentResult:
        ...

    @abstractmethod
    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        ...

    @abstractmethod
    def parse_webhook_event(self, payload: bytes) -> WebhookEvent:
        ...
