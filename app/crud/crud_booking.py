# app/crud/crud_booking.py
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional, Sequence

from pydantic import BaseModel
from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.booking import Booking
from app.schemas.booking import OCCUPYING_STATUSES
from app.utils.time import ensure_utc


class Occupancy(NamedTuple):
    bookings: int
    guests: int


class CRUDBooking(CRUDBase[Booking, BaseModel, BaseModel]):
    def create_pending(self, db: Session, *, values: Dict[str, Any]) -> Booking:
        db_obj = Booking(status="pending", **values)
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def get_for_update(self, db: Session, *, booking_id: str) -> Optional[Booking]:
        """Re-read a booking from the database and lock its row."""
        return (
            db.query(self.model)
            .filter(self.model.id == booking_id)
            .populate_existing()
            .with_for_update()
            .first()
        )

    def get_overlapping_occupancy(
        self,
        db: Session,
        *,
        area_id: str,
        window_start: datetime,
        window_end: datetime,
        statuses: Sequence[str] = OCCUPYING_STATUSES,
        include_paid_pending: bool = True,
        exclude_booking_id: Optional[str] = None,
    ) -> Occupancy:
        """
        Count other bookings in an area whose window intersects
        [window_start, window_end), and the guests they hold.

        Windows are half-open: a booking ending at 14:00 does not overlap one
        starting at 14:00. With ``include_paid_pending`` a pending booking
        counts once its payment has been recorded.
        """
        occupying = self.model.status.in_(list(statuses))
        if include_paid_pending:
            occupying = or_(
                occupying,
                and_(self.model.status == "pending", self.model.paid_at.isnot(None)),
            )

        query = db.query(
            func.count(self.model.id),
            func.coalesce(func.sum(self.model.guest_count), 0),
        ).filter(
            self.model.area_id == area_id,
            occupying,
            self.model.start_at < ensure_utc(window_end),
            self.model.end_at > ensure_utc(window_start),
        )
        if exclude_booking_id:
            query = query.filter(self.model.id != exclude_booking_id)

        count, guests = query.one()
        return Occupancy(bookings=int(count), guests=int(guests))

    def transition_status(
        self,
        db: Session,
        *,
        booking_id: str,
        from_status: str,
        to_status: str,
        values: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Compare-and-set a status change. Returns False when the booking was
        no longer in ``from_status``. Caller commits.
        """
        changes = {"status": to_status, **(values or {})}
        updated = (
            db.query(self.model)
            .filter(self.model.id == booking_id, self.model.status == from_status)
            .update(changes, synchronize_session="fetch")
        )
        return updated == 1

    def get_multi_pending_review(
        self, db: Session, *, partner_auth_id: str, limit: int = 100
    ) -> List[Booking]:
        """Paid bookings still waiting on a host decision."""
        return (
            db.query(self.model)
            .filter(
                self.model.partner_auth_id == partner_auth_id,
                self.model.status == "pending",
                self.model.paid_at.isnot(None),
            )
            .order_by(self.model.start_at)
            .limit(limit)
            .all()
        )

    def get_expirable_ids(
        self, db: Session, *, now: datetime, limit: int = 500
    ) -> List[str]:
        """Pending bookings already started, or unpaid past their deadline."""
        now = ensure_utc(now)
        rows = (
            db.query(self.model.id)
            .filter(
                self.model.status == "pending",
                or_(
                    self.model.start_at <= now,
                    and_(self.model.paid_at.is_(None), self.model.expires_at <= now),
                ),
            )
            .limit(limit)
            .all()
        )
        return [row.id for row in rows]

    def get_auto_confirmable(
        self, db: Session, *, paid_before: datetime, now: datetime, limit: int = 100
    ) -> List[Booking]:
        """Paid pending bookings past the grace period that need no host approval."""
        return (
            db.query(self.model)
            .filter(
                self.model.status == "pending",
                self.model.paid_at.isnot(None),
                self.model.paid_at <= ensure_utc(paid_before),
                self.model.requires_host_approval.is_(False),
                self.model.start_at > ensure_utc(now),
                self.model.payment_reference.isnot(None),
            )
            .order_by(self.model.paid_at)
            .limit(limit)
            .all()
        )

    def get_pending_starting_between(
        self, db: Session, *, start: datetime, end: datetime, limit: int = 200
    ) -> List[Booking]:
        return (
            db.query(self.model)
            .filter(
                self.model.status == "pending",
                self.model.start_at >= ensure_utc(start),
                self.model.start_at < ensure_utc(end),
            )
            .limit(limit)
            .all()
        )


booking = CRUDBooking(Booking)
