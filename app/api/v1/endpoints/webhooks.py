# app/api/v1/endpoints/webhooks.py
"""
Webhook endpoints for payment providers.

Stripe calls these when a booking payment is captured. Responses:
- 200 for anything that needs no redelivery: confirmed, routed to host
  review, already handled, unknown booking, ignored event type
- 400 for an invalid signature or payload
- 503 when processing failed in a retryable way or took too long; Stripe
  redelivers and the handler is idempotent

SECURITY NOTES:
- Always verify webhook signatures
- Process events idempotently
- Log all events for audit purposes
"""
import asyncio
import functools
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import sessionmaker

from app import crud
from app.api import deps
from app.core.config import settings
from app.core.errors import AppError, PaymentProviderError
from app.schemas.payment import PaymentConfirmedEvent, WebhookEventCreate
from app.services.booking.confirmation import (
    BookingConfirmationService,
    ConfirmationOutcome,
)
from app.services.payment.provider_factory import get_payment_provider
from app.services.payment.provider_interface import WebhookEvent, WebhookEventType

logger = logging.getLogger(__name__)

router = APIRouter()

PAYMENT_EVENT_TYPES = (
    WebhookEventType.PAYMENT_INTENT_SUCCEEDED,
    WebhookEventType.CHECKOUT_SESSION_COMPLETED,
)


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None, alias="Stripe-Signature"),
    session_factory: sessionmaker = Depends(deps.get_session_factory),
):
    """
    Handle Stripe webhook events.

    This endpoint:
    1. Verifies the webhook signature
    2. Stores the event for audit
    3. Runs the capacity guard for payment events
    4. Returns 200 once nothing is left to retry
    """
    body = await request.body()

    if not stripe_signature:
        logger.warning("Webhook received without Stripe-Signature header")
        raise HTTPException(status_code=400, detail="Missing signature")

    client_ip = request.client.host if request.client else None

    provider = get_payment_provider("stripe")
    if not provider.verify_webhook_signature(body, stripe_signature):
        logger.warning(f"Invalid webhook signature from {client_ip}")
        raise HTTPException(status_code=400, detail="Invalid signature")

    try:
        event = provider.parse_webhook_event(body)
    except PaymentProviderError:
        raise HTTPException(status_code=400, detail="Invalid payload")

    # The worker thread keeps its own session so a timed-out request cannot
    # close it under a transaction that is still running.
    loop = asyncio.get_running_loop()
    try:
        return await asyncio.wait_for(
            loop.run_in_executor(
                None,
                functools.partial(handle_payment_event, session_factory, event, client_ip),
            ),
            timeout=settings.WEBHOOK_PROCESSING_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        logger.error(
            f"Processing of webhook event {event.event_id} exceeded "
            f"{settings.WEBHOOK_PROCESSING_TIMEOUT_SECONDS}s, asking for redelivery"
        )
        raise HTTPException(status_code=503, detail="Processing timed out, retry later")


def handle_payment_event(
    session_factory: sessionmaker, event: WebhookEvent, client_ip: Optional[str]
) -> dict:
    """Record a verified event and apply it. Runs in a worker thread."""
    db = session_factory()
    try:
        if crud.webhook_event.is_already_processed(
            db, provider_code="stripe", provider_event_id=event.event_id
        ):
            logger.info(f"Event {event.event_id} already processed, skipping")
            return {"status": "already_processed", "event_id": event.event_id}

        record = crud.webhook_event.upsert_event(
            db,
            obj_in=WebhookEventCreate(
                provider_code="stripe",
                provider_event_id=event.event_id,
                provider_event_type=event.provider_event_type,
                payload=event.raw_payload,
                signature_verified=True,
                ip_address=client_ip,
            ),
        )
        crud.webhook_event.mark_processing(db, event_id=record.id)

        skip_reason = _skip_reason(event)
        if skip_reason:
            logger.info(f"Skipping event {event.event_id}: {skip_reason}")
            crud.webhook_event.mark_skipped(db, event_id=record.id, reason=skip_reason)
            return {"status": "ignored", "event_id": event.event_id}

        payment = PaymentConfirmedEvent(
            booking_id=event.data["bookingId"],
            amount=event.data["amount"],
            currency=event.data["currency"],
            payment_reference=event.data["paymentReference"],
            requires_host_approval=event.data["requiresHostApproval"],
            livemode=event.livemode,
        )

        try:
            result = BookingConfirmationService(db).confirm_payment(payment)
        except AppError as e:
            crud.webhook_event.mark_failed(db, event_id=record.id, error=e.message)
            raise

        crud.webhook_event.mark_processed(
            db,
            event_id=record.id,
            related_booking_id=(
                result.booking_id if result.outcome != ConfirmationOutcome.NOT_FOUND else None
            ),
        )
        return {
            "status": result.outcome.value,
            "event_id": event.event_id,
            "booking_id": result.booking_id,
        }
    finally:
        db.close()


def _skip_reason(event: WebhookEvent) -> Optional[str]:
    if event.event_type not in PAYMENT_EVENT_TYPES:
        return f"unhandled event type {event.provider_event_type}"
    if not event.data.get("bookingId"):
        return "no booking_id in metadata"
    if (
        event.event_type == WebhookEventType.CHECKOUT_SESSION_COMPLETED
        and event.data.get("paymentStatus") != "paid"
    ):
        return f"checkout session payment status {event.data.get('paymentStatus')}"
    if event.data.get("amount") is None or not event.data.get("paymentReference"):
        return "payment amount or reference missing"
    return None
