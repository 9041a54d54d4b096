# app/services/booking/confirmation.py
"""
Booking confirmation and capacity guard.

This module owns every status change of a booking after it is created:
payment confirmation, host approval or rejection, expiry. Each decision runs
in one transaction that first locks the area row and then the booking row,
so two payments for the same area are decided one after the other and a
booking is never confirmed on a stale occupancy count.

Decision on a captured payment for a pending booking:
- booking needs host approval          -> stays pending, review notifications
- area has no capacity limit           -> confirmed
- guest_count alone exceeds capacity   -> stays pending, review notifications
- occupancy + guest_count <= capacity  -> confirmed
- otherwise                            -> stays pending, review notifications

Confirmation writes the status, the ledger row, the partner wallet credit
and two notifications together; a failure rolls all of them back and is
reported as retryable so the payment provider redelivers.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app import crud
from app.core.config import settings
from app.core.errors import (
    AppError,
    BookingNotFoundError,
    BookingPersistenceError,
    BookingStateError,
    ForbiddenError,
    OccupancyQueryError,
)
from app.crud.crud_booking import Occupancy
from app.models.area import Area
from app.models.booking import Booking
from app.schemas.notification import NotificationCreate, NotificationKind
from app.schemas.payment import PaymentConfirmedEvent, TransactionCreate
from app.utils.kafka_helpers import publish_booking_event
from app.utils.time import ensure_utc, utcnow

logger = logging.getLogger(__name__)


class ConfirmationOutcome(str, Enum):
    CONFIRMED = "confirmed"
    REVIEW_REQUIRED = "review_required"
    ALREADY_PROCESSED = "already_processed"
    NOT_FOUND = "not_found"
    PAYMENT_MISMATCH = "payment_mismatch"


class ReviewReason(str, Enum):
    host_approval = "host_approval"
    guest_count_exceeds_capacity = "guest_count_exceeds_capacity"
    capacity_exceeded = "capacity_exceeded"


@dataclass
class ConfirmationResult:
    outcome: ConfirmationOutcome
    booking_id: str
    reason: Optional[str] = None
    occupancy: Optional[int] = None
    notifications_created: int = 0


class BookingConfirmationService:
    """Single writer of booking status transitions after creation."""

    def __init__(self, db: Session):
        self.db = db
        self._pending_events: List[Tuple[str, Dict[str, Any]]] = []

    # ------------------------------------------------------------------
    # Payment confirmation
    # ------------------------------------------------------------------

    def confirm_payment(self, event: PaymentConfirmedEvent) -> ConfirmationResult:
        """
        Decide the fate of a pending booking whose payment was captured.

        Safe to call any number of times for the same payment: once the
        booking has left ``pending`` later calls return ALREADY_PROCESSED
        without writing anything.

        Raises OccupancyQueryError or BookingPersistenceError (both
        retryable) after rolling back; the booking is then still pending.
        """
        try:
            result = self._decide(event)
            self.db.commit()
        except OccupancyQueryError:
            self._abort()
            raise
        except SQLAlchemyError as e:
            self._abort()
            logger.error(f"Confirmation of booking {event.booking_id} rolled back: {e}")
            raise BookingPersistenceError(
                f"Could not persist decision for booking {event.booking_id}"
            ) from e

        self._publish_pending_events()
        logger.info(
            f"Payment {event.payment_reference} for booking {event.booking_id}: "
            f"{result.outcome.value}" + (f" ({result.reason})" if result.reason else "")
        )
        return result

    def _decide(self, event: PaymentConfirmedEvent) -> ConfirmationResult:
        booking, area = self._lock_booking(event.booking_id)
        if booking is None:
            logger.warning(
                f"Payment {event.payment_reference} references unknown booking {event.booking_id}"
            )
            return ConfirmationResult(ConfirmationOutcome.NOT_FOUND, event.booking_id)

        if not booking.is_pending:
            logger.info(f"Booking {booking.id} already {booking.status}, nothing to do")
            return ConfirmationResult(ConfirmationOutcome.ALREADY_PROCESSED, booking.id)

        mismatch = self._payment_mismatch(booking, event)
        if mismatch:
            logger.error(
                f"Payment {event.payment_reference} does not match booking {booking.id}: {mismatch}"
            )
            return ConfirmationResult(
                ConfirmationOutcome.PAYMENT_MISMATCH, booking.id, reason=mismatch
            )

        self._record_payment(booking, event)

        reason, occupancy = self._review_reason(booking, event.requires_host_approval)
        if reason is None:
            created = self._confirm(booking, area)
            if created is not None:
                return ConfirmationResult(
                    ConfirmationOutcome.CONFIRMED,
                    booking.id,
                    occupancy=occupancy,
                    notifications_created=created,
                )
            return ConfirmationResult(ConfirmationOutcome.ALREADY_PROCESSED, booking.id)

        created = self._route_to_review(booking, area, reason)
        return ConfirmationResult(
            ConfirmationOutcome.REVIEW_REQUIRED,
            booking.id,
            reason=reason.value,
            occupancy=occupancy,
            notifications_created=created,
        )

    def _lock_booking(self, booking_id: str) -> Tuple[Optional[Booking], Optional[Area]]:
        # Area first, then booking: every writer takes the locks in this order.
        current = crud.booking.get(self.db, id=booking_id)
        if current is None:
            return None, None
        area = crud.area.get_for_update(self.db, area_id=current.area_id)
        booking = crud.booking.get_for_update(self.db, booking_id=booking_id)
        return booking, area

    @staticmethod
    def _payment_mismatch(booking: Booking, event: PaymentConfirmedEvent) -> Optional[str]:
        if event.currency.upper() != booking.currency.upper():
            return f"currency {event.currency} != {booking.currency}"
        if event.amount < booking.price_minor:
            return f"amount {event.amount} < {booking.price_minor}"
        if booking.payment_reference and booking.payment_reference != event.payment_reference:
            return f"reference {event.payment_reference} != {booking.payment_reference}"
        return None

    def _record_payment(self, booking: Booking, event: PaymentConfirmedEvent) -> None:
        _, created = crud.transaction.record_charge(
            self.db,
            obj_in=TransactionCreate(
                booking_id=booking.id,
                user_auth_id=booking.user_auth_id,
                partner_auth_id=booking.partner_auth_id,
                amount_minor=event.amount,
                currency=event.currency.upper(),
                external_reference=event.payment_reference,
                livemode=event.livemode,
            ),
        )
        if not created:
            logger.info(f"Payment {event.payment_reference} already in the ledger")
        if booking.paid_at is None:
            booking.paid_at = utcnow()
        if booking.payment_reference is None:
            booking.payment_reference = event.payment_reference
        self.db.flush()

    def _review_reason(
        self, booking: Booking, approval_requested: bool = False
    ) -> Tuple[Optional[ReviewReason], Optional[int]]:
        if approval_requested or booking.requires_host_approval:
            return ReviewReason.host_approval, None

        capacity = booking.area_max_capacity
        if capacity is None:
            return None, None
        if booking.guest_count > capacity:
            return ReviewReason.guest_count_exceeds_capacity, None

        occupancy = self.count_occupancy(booking)
        if occupancy.guests + booking.guest_count > capacity:
            return ReviewReason.capacity_exceeded, occupancy.guests
        return None, occupancy.guests

    def count_occupancy(self, booking: Booking) -> Occupancy:
        """Guests of other occupying bookings overlapping this booking's window."""
        try:
            return crud.booking.get_overlapping_occupancy(
                self.db,
                area_id=booking.area_id,
                window_start=booking.start_at,
                window_end=booking.end_at,
                exclude_booking_id=booking.id,
            )
        except SQLAlchemyError as e:
            logger.error(
                f"Occupancy for booking {booking.id} in area {booking.area_id} "
                f"could not be computed: {e}"
            )
            raise OccupancyQueryError(
                f"Occupancy query failed for booking {booking.id}",
                details={"area_id": booking.area_id},
            ) from e

    def _confirm(self, booking: Booking, area: Optional[Area]) -> Optional[int]:
        """Move to confirmed. Returns notifications created, or None if the booking moved on."""
        confirmed = crud.booking.transition_status(
            self.db,
            booking_id=booking.id,
            from_status="pending",
            to_status="confirmed",
            values={"confirmed_at": utcnow()},
        )
        if not confirmed:
            logger.info(f"Booking {booking.id} left pending concurrently, not confirming")
            return None

        crud.wallet.credit(
            self.db,
            owner_auth_id=booking.partner_auth_id,
            amount_minor=booking.price_minor,
            currency=booking.currency,
        )

        where = self._describe(booking, area)
        created = 0
        created += self._notify(
            booking,
            booking.user_auth_id,
            NotificationKind.booking_confirmed,
            "Booking confirmed",
            f"Your booking for {where} is confirmed.",
        )
        created += self._notify(
            booking,
            booking.partner_auth_id,
            NotificationKind.booking_received,
            "New booking received",
            f"{booking.guest_count} guest(s) booked {where}.",
        )
        self._queue_event("booking.confirmed", booking)
        return created

    def _route_to_review(
        self, booking: Booking, area: Optional[Area], reason: ReviewReason
    ) -> int:
        where = self._describe(booking, area)
        created = 0
        if self._notify(
            booking,
            booking.user_auth_id,
            NotificationKind.booking_review,
            "Booking under review",
            f"Your payment for {where} was received. The host will review your booking shortly.",
        ):
            created += 1
        if self._notify(
            booking,
            booking.partner_auth_id,
            NotificationKind.booking_review,
            "Booking needs your review",
            f"A paid booking for {where} needs your approval ({reason.value.replace('_', ' ')}).",
        ):
            created += 1
        if created:
            self._queue_event("booking.review_required", booking, reason=reason.value)
        return created

    # ------------------------------------------------------------------
    # Host review
    # ------------------------------------------------------------------

    def approve(self, booking_id: str, partner_auth_id: str) -> Booking:
        """Host override: confirm a paid booking that is waiting for review."""

        def _approve(booking: Booking, area: Optional[Area]) -> None:
            if not booking.is_paid:
                raise BookingStateError(booking.id, "unpaid", "approve")
            if self._confirm(booking, area) is None:
                raise BookingStateError(booking.id, booking.status, "approve")

        return self._resolve(booking_id, partner_auth_id, "approve", _approve)

    def reject(self, booking_id: str, partner_auth_id: str) -> Booking:
        """Host declines a pending booking."""

        def _reject(booking: Booking, area: Optional[Area]) -> None:
            if not crud.booking.transition_status(
                self.db, booking_id=booking.id, from_status="pending", to_status="rejected"
            ):
                raise BookingStateError(booking.id, booking.status, "reject")
            self._notify(
                booking,
                booking.user_auth_id,
                NotificationKind.booking_rejected,
                "Booking declined",
                f"The host declined your booking for {self._describe(booking, area)}.",
            )
            self._queue_event("booking.rejected", booking)

        return self._resolve(booking_id, partner_auth_id, "reject", _reject)

    def _resolve(self, booking_id: str, partner_auth_id: str, action: str, apply) -> Booking:
        try:
            booking, area = self._lock_booking(booking_id)
            if booking is None:
                raise BookingNotFoundError(booking_id)
            if booking.partner_auth_id != partner_auth_id:
                raise ForbiddenError("Not allowed to manage this booking")
            if not booking.is_pending:
                raise BookingStateError(booking.id, booking.status, action)
            apply(booking, area)
            self.db.commit()
        except AppError:
            self._abort()
            raise
        except SQLAlchemyError as e:
            self._abort()
            logger.error(f"Could not {action} booking {booking_id}: {e}")
            raise BookingPersistenceError(f"Could not {action} booking {booking_id}") from e

        self._publish_pending_events()
        self.db.refresh(booking)
        logger.info(f"Booking {booking_id} {action}d by partner {partner_auth_id}")
        return booking

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    def expire_stale(self, now: Optional[datetime] = None) -> int:
        """Expire pending bookings that started already or were never paid in time."""
        now = now or utcnow()
        booking_ids = crud.booking.get_expirable_ids(self.db, now=now)
        self.db.commit()

        expired = 0
        for booking_id in booking_ids:
            try:
                if self._expire_one(booking_id, now):
                    expired += 1
                self.db.commit()
            except SQLAlchemyError as e:
                self._abort()
                logger.error(f"Could not expire booking {booking_id}: {e}")

        self._publish_pending_events()
        return expired

    def _expire_one(self, booking_id: str, now: datetime) -> bool:
        booking, _ = self._lock_booking(booking_id)
        if booking is None or not booking.is_pending:
            return False

        started = ensure_utc(booking.start_at) <= now
        unpaid_past_deadline = booking.paid_at is None and ensure_utc(booking.expires_at) <= now
        if not (started or unpaid_past_deadline):
            return False

        if not crud.booking.transition_status(
            self.db, booking_id=booking.id, from_status="pending", to_status="expired"
        ):
            return False
        self._queue_event(
            "booking.expired", booking, reason="started" if started else "unpaid"
        )
        return True

    def auto_confirm_paid(self, now: Optional[datetime] = None) -> Tuple[int, int]:
        """
        Re-run the guard for paid bookings still pending after the grace
        period. Returns (confirmed, newly routed to review).
        """
        now = now or utcnow()
        paid_before = now - timedelta(minutes=settings.PAID_PENDING_GRACE_MINUTES)
        candidates = [
            PaymentConfirmedEvent(
                booking_id=b.id,
                amount=b.price_minor,
                currency=b.currency,
                payment_reference=b.payment_reference,
            )
            for b in crud.booking.get_auto_confirmable(self.db, paid_before=paid_before, now=now)
        ]
        self.db.commit()

        confirmed = reviewed = 0
        for event in candidates:
            try:
                result = self.confirm_payment(event)
            except (OccupancyQueryError, BookingPersistenceError) as e:
                logger.error(f"Auto-confirm of booking {event.booking_id} failed: {e.message}")
                continue
            if result.outcome == ConfirmationOutcome.CONFIRMED:
                confirmed += 1
            elif (
                result.outcome == ConfirmationOutcome.REVIEW_REQUIRED
                and result.notifications_created
            ):
                # Bookings already waiting in review are not counted again
                reviewed += 1
        return confirmed, reviewed

    def warn_capacity(self, now: Optional[datetime] = None) -> int:
        """Tell partners about pending bookings about to start that no longer fit."""
        now = now or utcnow()
        window_end = now + timedelta(minutes=settings.CAPACITY_WARNING_WINDOW_MINUTES)
        created = 0
        try:
            for booking in crud.booking.get_pending_starting_between(
                self.db, start=now, end=window_end
            ):
                if booking.area_max_capacity is None:
                    continue
                occupancy = self.count_occupancy(booking)
                if occupancy.guests + booking.guest_count <= booking.area_max_capacity:
                    continue
                if self._notify(
                    booking,
                    booking.partner_auth_id,
                    NotificationKind.capacity_warning,
                    "Capacity warning",
                    f"A pending booking for {self._describe(booking, booking.area)} would exceed "
                    f"capacity ({occupancy.guests} + {booking.guest_count} > "
                    f"{booking.area_max_capacity}).",
                ):
                    created += 1
            self.db.commit()
        except SQLAlchemyError as e:
            self._abort()
            logger.error(f"Capacity warning pass rolled back: {e}")
            raise BookingPersistenceError("Capacity warning pass failed") from e
        except OccupancyQueryError:
            self._abort()
            raise
        return created

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _notify(
        self,
        booking: Booking,
        user_auth_id: str,
        kind: NotificationKind,
        title: str,
        body: str,
    ) -> bool:
        created = crud.notification.create_once(
            self.db,
            obj_in=NotificationCreate(
                booking_id=booking.id,
                user_auth_id=user_auth_id,
                kind=kind,
                title=title,
                body=body,
            ),
        )
        return created is not None

    @staticmethod
    def _describe(booking: Booking, area: Optional[Area]) -> str:
        start = ensure_utc(booking.start_at).strftime("%Y-%m-%d %H:%M UTC")
        name = area.name if area is not None else "your space"
        return f"{name} on {start}"

    def _queue_event(self, event_type: str, booking: Booking, **extra) -> None:
        self._pending_events.append(
            (
                event_type,
                {
                    "bookingId": booking.id,
                    "spaceId": booking.space_id,
                    "areaId": booking.area_id,
                    "userAuthId": booking.user_auth_id,
                    "partnerAuthId": booking.partner_auth_id,
                    "startAt": ensure_utc(booking.start_at).isoformat(),
                    "endAt": ensure_utc(booking.end_at).isoformat(),
                    "guestCount": booking.guest_count,
                    "priceMinor": booking.price_minor,
                    "currency": booking.currency,
                    **extra,
                },
            )
        )

    def _publish_pending_events(self) -> None:
        events, self._pending_events = self._pending_events, []
        for event_type, payload in events:
            publish_booking_event(event_type, payload)

    def _abort(self) -> None:
        self.db.rollback()
        self._pending_events.clear()
