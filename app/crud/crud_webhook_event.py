# app/crud/crud_webhook_event.py
from typing import Optional
from datetime import timedelta
from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.payment_webhook_event import PaymentWebhookEvent, MAX_WEBHOOK_RETRIES
from app.schemas.payment import WebhookEventCreate, WebhookEventUpdate
from app.utils.time import utcnow


class CRUDWebhookEvent(CRUDBase[PaymentWebhookEvent, WebhookEventCreate, WebhookEventUpdate]):
    """Bookkeeping for inbound payment provider webhook deliveries."""

    def get_by_provider_event_id(
        self, db: Session, *, provider_code: str, provider_event_id: str
    ) -> Optional[PaymentWebhookEvent]:
        return (
            db.query(self.model)
            .filter(
                self.model.provider_code == provider_code,
                self.model.provider_event_id == provider_event_id,
            )
            .first()
        )

    def is_already_processed(
        self, db: Session, *, provider_code: str, provider_event_id: str
    ) -> bool:
        event = self.get_by_provider_event_id(
            db, provider_code=provider_code, provider_event_id=provider_event_id
        )
        return event is not None and event.status in ("processed", "skipped")

    def upsert_event(
        self, db: Session, *, obj_in: WebhookEventCreate
    ) -> PaymentWebhookEvent:
        """Store a delivery, refreshing the payload on redelivery."""
        existing = self.get_by_provider_event_id(
            db,
            provider_code=obj_in.provider_code,
            provider_event_id=obj_in.provider_event_id,
        )
        if existing:
            existing.payload = obj_in.payload
            existing.signature_verified = obj_in.signature_verified
            existing.ip_address = obj_in.ip_address
            db.add(existing)
            db.commit()
            db.refresh(existing)
            return existing

        return self.create(db, obj_in=obj_in)

    def _set_status(
        self, db: Session, event: PaymentWebhookEvent, **values
    ) -> PaymentWebhookEvent:
        return self.update(db, db_obj=event, obj_in=values)

    def mark_processing(self, db: Session, *, event_id: str) -> Optional[PaymentWebhookEvent]:
        event = self.get(db, id=event_id)
        if not event:
            return None
        return self._set_status(db, event, status="processing")

    def mark_processed(
        self, db: Session, *, event_id: str, related_booking_id: Optional[str] = None
    ) -> Optional[PaymentWebhookEvent]:
        event = self.get(db, id=event_id)
        if not event:
            return None
        values = {"status": "processed", "processed_at": utcnow(), "processing_error": None}
        if related_booking_id:
            values["related_booking_id"] = related_booking_id
        return self._set_status(db, event, **values)

    def mark_skipped(
        self, db: Session, *, event_id: str, reason: str
    ) -> Optional[PaymentWebhookEvent]:
        event = self.get(db, id=event_id)
        if not event:
            return None
        return self._set_status(
            db, event, status="skipped", processing_error=reason, processed_at=utcnow()
        )

    def mark_failed(
        self, db: Session, *, event_id: str, error: str
    ) -> Optional[PaymentWebhookEvent]:
        """Mark an event as failed and schedule the next retry."""
        event = self.get(db, id=event_id)
        if not event:
            return None

        retry_count = (event.retry_count or 0) + 1
        values = {"status": "failed", "processing_error": error, "retry_count": retry_count}

        # Exponential backoff: 1m, 5m, 25m, 2h, 10h
        if retry_count < MAX_WEBHOOK_RETRIES:
            delay = 60 * (5 ** (retry_count - 1))
            values["next_retry_at"] = utcnow() + timedelta(seconds=delay)

        return self._set_status(db, event, **values)


webhook_event = CRUDWebhookEvent(PaymentWebhookEvent)
