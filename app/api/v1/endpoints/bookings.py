# app/api/v1/endpoints/bookings.py
import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from app import crud
from app.api import deps
from app.core.errors import BookingNotFoundError
from app.core.limiter import limiter
from app.schemas.booking import (
    Booking,
    BookingCheckout,
    BookingDetail,
    BookingQuote,
    BookingRequest,
)
from app.schemas.payment import PaymentConfirmedEvent
from app.schemas.token import TokenPayload
from app.services.booking.booking_service import BookingService
from app.services.booking.confirmation import BookingConfirmationService
from app.services.payment.provider_factory import get_payment_provider
from app.services.payment.provider_interface import CreatePaymentIntentParams

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/quote", response_model=BookingQuote)
@limiter.limit("30/minute")
def quote_booking(
    request: Request,  # Required for rate limiter
    booking_in: BookingRequest,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """Price a prospective booking without creating it."""
    priced = BookingService(db).quote(booking_in)
    result = priced.result
    return BookingQuote(
        area_id=priced.area.id,
        price=result.price,
        price_minor=result.price_minor,
        currency=priced.area.currency,
        matched_condition=result.matched_condition,
        branch=result.branch.value,
        billed_units=result.billed_units,
    )


@router.post("", response_model=BookingCheckout, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def create_booking(
    request: Request,  # Required for rate limiter
    booking_in: BookingRequest,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """
    Create a pending booking and start its payment.

    The booking stays pending until the payment provider confirms the
    payment through the webhook. Bookings priced at zero skip payment and go
    straight through the capacity check.
    """
    service = BookingService(db)
    booking = service.create_pending_booking(booking_in, user_auth_id=current_user.sub)

    if booking.price_minor == 0:
        BookingConfirmationService(db).confirm_payment(
            PaymentConfirmedEvent(
                booking_id=booking.id,
                amount=0,
                currency=booking.currency,
                payment_reference=f"free_{booking.id}",
            )
        )
        db.refresh(booking)
        return BookingCheckout(booking=Booking.model_validate(booking))

    provider = get_payment_provider()
    intent = await provider.create_payment_intent(
        CreatePaymentIntentParams(
            booking_id=booking.id,
            amount=booking.price_minor,
            currency=booking.currency,
            description=f"Booking {booking.id}",
            idempotency_key=f"booking_{booking.id}",
            requires_host_approval=booking.requires_host_approval,
            metadata={"area_id": booking.area_id, "user_auth_id": booking.user_auth_id},
        )
    )
    booking = service.attach_payment_reference(booking, intent.intent_id)

    return BookingCheckout(
        booking=Booking.model_validate(booking),
        client_secret=intent.client_secret,
        publishable_key=provider.get_publishable_key(),
    )


@router.get("/{booking_id}", response_model=BookingDetail)
def get_booking(
    booking_id: str,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    booking = crud.booking.get(db, id=booking_id)
    if booking is None or current_user.sub not in (booking.user_auth_id, booking.partner_auth_id):
        raise BookingNotFoundError(booking_id)
    return booking
