# app/models/payment_webhook_event.py
from sqlalchemy import Column, String, Boolean, DateTime, Integer, Text, ForeignKey, UniqueConstraint, func, false
from app.db.base_class import Base, JSONType
import uuid

MAX_WEBHOOK_RETRIES = 5


class PaymentWebhookEvent(Base):
    __tablename__ = "payment_webhook_events"

    id = Column(String, primary_key=True, default=lambda: f"whe_{uuid.uuid4().hex[:12]}")

    provider_code = Column(String(50), nullable=False)
    provider_event_id = Column(String(255), nullable=False)
    provider_event_type = Column(String(100), nullable=False)

    # Values: 'pending', 'processing', 'processed', 'failed', 'skipped'
    status = Column(String(50), nullable=False, default="pending", server_default="pending")

    payload = Column(JSONType, nullable=False)
    signature_verified = Column(Boolean, nullable=False, default=False, server_default=false())

    processed_at = Column(DateTime(timezone=True), nullable=True)
    processing_error = Column(Text, nullable=True)
    retry_count = Column(Integer, nullable=False, default=0, server_default="0")
    next_retry_at = Column(DateTime(timezone=True), nullable=True)

    related_booking_id = Column(String, ForeignKey("bookings.id"), nullable=True)

    received_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    ip_address = Column(String(45), nullable=True)

    __table_args__ = (
        UniqueConstraint("provider_code", "provider_event_id", name="uq_webhook_provider_event"),
    )
