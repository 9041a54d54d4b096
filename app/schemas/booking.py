# app/schemas/booking.py
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from app.core.config import settings


class BookingStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    rejected = "rejected"
    expired = "expired"
    cancelled = "cancelled"
    checkedin = "checkedin"
    checkedout = "checkedout"
    completed = "completed"
    noshow = "noshow"


# Statuses whose guests hold a place in the area
OCCUPYING_STATUSES = (BookingStatus.confirmed.value, BookingStatus.checkedin.value)


class BookingRequest(BaseModel):
    area_id: str
    start_at: datetime
    booking_hours: int
    guest_count: int = Field(default=1, ge=1)

    @field_validator("booking_hours")
    @classmethod
    def _hours_in_range(cls, v: int) -> int:
        if not settings.MIN_BOOKING_HOURS <= v <= settings.MAX_BOOKING_HOURS:
            raise ValueError(
                f"booking_hours must be between {settings.MIN_BOOKING_HOURS} "
                f"and {settings.MAX_BOOKING_HOURS}"
            )
        return v

    @field_validator("start_at")
    @classmethod
    def _aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            raise ValueError("start_at must include a timezone offset")
        return v


class BookingQuote(BaseModel):
    area_id: str
    price: Decimal
    price_minor: int
    currency: str
    matched_condition: Optional[str] = None
    branch: str
    billed_units: Optional[int] = None


class Booking(BaseModel):
    id: str
    space_id: str
    area_id: str
    user_auth_id: str
    status: BookingStatus
    start_at: datetime
    end_at: datetime
    booking_hours: int
    guest_count: int
    expires_at: datetime
    price_minor: int
    currency: str
    area_max_capacity: Optional[int] = None
    requires_host_approval: bool
    price_rule_id: Optional[str] = None
    price_rule_name: Optional[str] = None
    price_rule_version: Optional[int] = None
    price_rule_branch: Optional[str] = None
    price_rule_condition: Optional[str] = None
    paid_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingDetail(Booking):
    price_rule_snapshot: Optional[Dict[str, Any]] = None


class BookingCheckout(BaseModel):
    booking: Booking
    client_secret: Optional[str] = None
    publishable_key: Optional[str] = None


class SweepResult(BaseModel):
    expired: int
    auto_confirmed: int
    routed_to_review: int
    capacity_warnings: int
