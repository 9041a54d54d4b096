# app/background_tasks/booking_tasks.py
"""
Background tasks for pending bookings.

One sweep:
1. Expires pending bookings that already started, or were not paid before
   their payment deadline
2. Re-runs the capacity guard for paid bookings still pending after the
   grace period (a webhook that failed, or capacity freed since review)
3. Warns partners about pending bookings starting soon that no longer fit
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.schemas.booking import SweepResult
from app.services.booking.confirmation import BookingConfirmationService
from app.utils.time import utcnow

logger = logging.getLogger(__name__)


def run_booking_sweep(db: Optional[Session] = None) -> SweepResult:
    """
    Run every sweep step once. Each step fails on its own: an error is
    logged and the remaining steps still run.
    """
    owns_session = db is None
    db = db or SessionLocal()
    service = BookingConfirmationService(db)
    now = utcnow()
    result = SweepResult(expired=0, auto_confirmed=0, routed_to_review=0, capacity_warnings=0)

    try:
        try:
            result.expired = service.expire_stale(now)
        except Exception as e:
            db.rollback()
            logger.error(f"Error expiring stale bookings: {e}")

        try:
            result.auto_confirmed, result.routed_to_review = service.auto_confirm_paid(now)
        except Exception as e:
            db.rollback()
            logger.error(f"Error auto-confirming paid bookings: {e}")

        try:
            result.capacity_warnings = service.warn_capacity(now)
        except Exception as e:
            db.rollback()
            logger.error(f"Error sending capacity warnings: {e}")

        if any(result.model_dump().values()):
            logger.info(
                f"Booking sweep: expired={result.expired} auto_confirmed={result.auto_confirmed} "
                f"review={result.routed_to_review} warnings={result.capacity_warnings}"
            )
        return result

    finally:
        if owns_session:
            db.close()
