# app/services/booking/booking_service.py
import logging
from dataclasses import dataclass
from datetime import timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app import crud
from app.core.config import settings
from app.core.errors import (
    AreaFullError,
    AreaNotFoundError,
    InvalidBookingError,
    OccupancyQueryError,
    PriceNotApplicableError,
    PricingRuleError,
)
from app.models.area import Area
from app.models.booking import Booking
from app.models.price_rule import PriceRule
from app.schemas.booking import BookingRequest
from app.services.pricing.evaluator import (
    BookingContext,
    EvaluationResult,
    evaluate_price_rule,
    require_price,
)
from app.utils.money import minor_exponent
from app.utils.time import ensure_utc, utcnow

logger = logging.getLogger(__name__)

# Lead-time units; a month counts as 30 days
ADVANCE_UNIT_DAYS = {"days": 1, "weeks": 7, "months": 30}


@dataclass
class PricedSelection:
    area: Area
    rule: PriceRule
    result: EvaluationResult


class BookingService:
    """
    Quotes and creates bookings.

    Creating a booking is the only write this class does to the status of a
    booking; every later transition belongs to BookingConfirmationService.
    """

    def __init__(self, db: Session):
        self.db = db

    def quote(self, request: BookingRequest) -> PricedSelection:
        """
        Price a selection with the area's active rule.

        Raises:
            AreaNotFoundError: unknown or unpublished area
            PriceNotApplicableError: no active rule, or the rule yields no price
            PricingRuleError: the active rule is malformed
        """
        area = crud.area.get(self.db, id=request.area_id)
        if area is None or not area.space.is_published:
            raise AreaNotFoundError(request.area_id)

        rule = area.price_rule
        if rule is None:
            raise PriceNotApplicableError(f"Area {area.id} has no active price rule")

        context = BookingContext(
            booking_hours=request.booking_hours,
            start_at=self._local_time(area, request),
            guest_count=request.guest_count,
        )
        try:
            result = evaluate_price_rule(
                rule.definition, context, minor_exponent=minor_exponent(area.currency)
            )
        except PricingRuleError as e:
            logger.error(
                f"Price rule {rule.id} (v{rule.version}) of area {area.id} is malformed: "
                f"{e.message} {e.details}"
            )
            raise

        return PricedSelection(area=area, rule=rule, result=require_price(result))

    def create_pending_booking(self, request: BookingRequest, user_auth_id: str) -> Booking:
        """
        Insert a pending booking carrying a snapshot of its price and rule.

        The area's booking policy is applied first: bookings inside the
        advance-booking lead time are refused, and when the window is already
        full the booking is either refused (AreaFullError) or marked for host
        approval, depending on ``request_approval_at_capacity``. The payment
        webhook re-checks capacity under lock; this check only keeps customers
        from paying for a window that is visibly full.
        """
        start_at = ensure_utc(request.start_at)
        now = utcnow()
        if start_at <= now:
            raise InvalidBookingError("Booking must start in the future")

        priced = self.quote(request)
        area, rule, result = priced.area, priced.rule, priced.result
        end_at = start_at + timedelta(hours=request.booking_hours)

        self._check_advance_booking(area, start_at, now)
        requires_host_approval = not area.automatic_booking_enabled
        if not requires_host_approval and self._window_is_full(area, request, start_at, end_at):
            requires_host_approval = True

        booking = crud.booking.create_pending(
            self.db,
            values={
                "space_id": area.space_id,
                "area_id": area.id,
                "user_auth_id": user_auth_id,
                "partner_auth_id": area.space.partner_auth_id,
                "start_at": start_at,
                "end_at": end_at,
                "booking_hours": request.booking_hours,
                "guest_count": request.guest_count,
                "expires_at": now + timedelta(minutes=settings.BOOKING_PAYMENT_WINDOW_MINUTES),
                "price_minor": result.price_minor,
                "currency": area.currency,
                "area_max_capacity": area.max_capacity,
                "requires_host_approval": requires_host_approval,
                "price_rule_id": rule.id,
                "price_rule_name": rule.name,
                "price_rule_version": rule.version,
                "price_rule_snapshot": rule.definition,
                "price_rule_branch": result.branch.value,
                "price_rule_condition": result.matched_condition,
            },
        )
        logger.info(
            f"Booking {booking.id} created for area {area.id}: {booking.price_minor} "
            f"{booking.currency} via {result.branch.value}"
        )
        return booking

    @staticmethod
    def _check_advance_booking(area: Area, start_at, now) -> None:
        if not (area.advance_booking_enabled and area.advance_booking_value):
            return
        days_per_unit = ADVANCE_UNIT_DAYS.get(area.advance_booking_unit, 0)
        lead = timedelta(days=area.advance_booking_value * days_per_unit)
        if start_at < now + lead:
            raise InvalidBookingError("Please book further in advance for this area")

    def _window_is_full(self, area: Area, request: BookingRequest, start_at, end_at) -> bool:
        """
        True when the booking would overflow the window and the area takes
        overflow requests; raises AreaFullError when it does not.
        """
        if area.max_capacity is None:
            return False
        try:
            occupancy = crud.booking.get_overlapping_occupancy(
                self.db, area_id=area.id, window_start=start_at, window_end=end_at
            )
        except SQLAlchemyError as e:
            logger.error(f"Occupancy for new booking in area {area.id} could not be computed: {e}")
            raise OccupancyQueryError(
                f"Occupancy query failed for area {area.id}", details={"area_id": area.id}
            ) from e

        if occupancy.guests + request.guest_count <= area.max_capacity:
            return False
        if not area.request_approval_at_capacity:
            logger.info(
                f"Refused booking in full area {area.id}: {occupancy.guests} + "
                f"{request.guest_count} > {area.max_capacity}"
            )
            raise AreaFullError(area.id, occupancy.guests, area.max_capacity)
        logger.info(f"Area {area.id} is full for the window; booking needs host approval")
        return True

    def attach_payment_reference(self, booking: Booking, payment_reference: str) -> Booking:
        booking.payment_reference = payment_reference
        self.db.add(booking)
        self.db.commit()
        self.db.refresh(booking)
        return booking

    @staticmethod
    def _local_time(area: Area, request: BookingRequest):
        try:
            zone = ZoneInfo(area.space.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"Space {area.space_id} has unknown timezone {area.space.timezone!r}, using UTC")
            zone = ZoneInfo("UTC")
        return ensure_utc(request.start_at).astimezone(zone)
