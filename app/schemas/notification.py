# app/schemas/notification.py
from enum import Enum

from pydantic import BaseModel


class NotificationKind(str, Enum):
    booking_confirmed = "booking_confirmed"
    booking_received = "booking_received"
    booking_review = "booking_review"
    booking_rejected = "booking_rejected"
    capacity_warning = "capacity_warning"


class NotificationCreate(BaseModel):
    booking_id: str
    user_auth_id: str
    kind: NotificationKind
    title: str
    body: str
