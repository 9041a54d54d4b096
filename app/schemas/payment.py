# app/schemas/payment.py
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel


class WebhookEventStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    processed = "processed"
    failed = "failed"
    skipped = "skipped"


class PaymentConfirmedEvent(BaseModel):
    """A payment for a booking that the processor reports as captured."""

    booking_id: str
    amount: int  # minor units
    currency: str
    payment_reference: str
    requires_host_approval: bool = False
    livemode: bool = False


class WebhookEventCreate(BaseModel):
    provider_code: str
    provider_event_id: str
    provider_event_type: str
    payload: Dict[str, Any]
    signature_verified: bool = False
    ip_address: Optional[str] = None


class WebhookEventUpdate(BaseModel):
    status: Optional[WebhookEventStatus] = None
    processed_at: Optional[datetime] = None
    processing_error: Optional[str] = None
    retry_count: Optional[int] = None
    next_retry_at: Optional[datetime] = None
    related_booking_id: Optional[str] = None


class TransactionCreate(BaseModel):
    booking_id: str
    user_auth_id: str
    partner_auth_id: str
    amount_minor: int
    currency: str
    external_reference: str
    livemode: bool = False
