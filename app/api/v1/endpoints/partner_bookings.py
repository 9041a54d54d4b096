# app/api/v1/endpoints/partner_bookings.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app import crud
from app.api import deps
from app.schemas.booking import Booking
from app.schemas.token import TokenPayload
from app.services.booking.confirmation import BookingConfirmationService

router = APIRouter()


@router.get("/review", response_model=List[Booking])
def list_bookings_awaiting_review(
    limit: int = 100,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """Paid bookings of the partner's spaces still waiting for a decision."""
    return crud.booking.get_multi_pending_review(
        db, partner_auth_id=current_user.sub, limit=limit
    )


@router.post("/{booking_id}/approve", response_model=Booking)
def approve_booking(
    booking_id: str,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    return BookingConfirmationService(db).approve(booking_id, partner_auth_id=current_user.sub)


@router.post("/{booking_id}/reject", response_model=Booking)
def reject_booking(
    booking_id: str,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    return BookingConfirmationService(db).reject(booking_id, partner_auth_id=current_user.sub)
