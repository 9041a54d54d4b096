# app/models/booking.py
from sqlalchemy import (
    Column,
    String,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
    CheckConstraint,
    Index,
    func,
    false,
)
from sqlalchemy.orm import relationship
from app.db.base_class import Base, JSONType
import uuid


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String, primary_key=True, default=lambda: f"bkg_{uuid.uuid4().hex[:12]}")
    space_id = Column(String, ForeignKey("spaces.id"), nullable=False)
    area_id = Column(String, ForeignKey("areas.id"), nullable=False)
    user_auth_id = Column(String, nullable=False, index=True)
    partner_auth_id = Column(String, nullable=False, index=True)

    # Values: 'pending', 'confirmed', 'rejected', 'expired', 'cancelled',
    # 'checkedin', 'checkedout', 'completed', 'noshow'
    status = Column(String(50), nullable=False, default="pending", server_default="pending")

    # Occupancy window [start_at, end_at)
    start_at = Column(DateTime(timezone=True), nullable=False)
    end_at = Column(DateTime(timezone=True), nullable=False)
    booking_hours = Column(Integer, nullable=False)
    guest_count = Column(Integer, nullable=False, default=1)

    # Payment deadline for the pending booking
    expires_at = Column(DateTime(timezone=True), nullable=False)

    # Money snapshot in minor units
    price_minor = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False)

    # Capacity and policy snapshots taken when the booking was placed
    area_max_capacity = Column(Integer, nullable=True)
    requires_host_approval = Column(Boolean, nullable=False, default=False, server_default=false())

    # Price rule snapshot
    price_rule_id = Column(String, ForeignKey("price_rules.id"), nullable=True)
    price_rule_name = Column(String(255), nullable=True)
    price_rule_version = Column(Integer, nullable=True)
    price_rule_snapshot = Column(JSONType, nullable=True)
    price_rule_branch = Column(String(20), nullable=True)
    price_rule_condition = Column(String(100), nullable=True)

    # Payment
    payment_reference = Column(String(255), nullable=True, index=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("guest_count > 0", name="booking_guest_count_positive"),
        CheckConstraint("booking_hours > 0", name="booking_hours_positive"),
        CheckConstraint("end_at > start_at", name="booking_window_valid"),
        CheckConstraint("price_minor >= 0", name="booking_price_non_negative"),
        Index("ix_bookings_area_window", "area_id", "start_at", "end_at"),
    )

    area = relationship("Area")
    space = relationship("Space")

    @property
    def is_pending(self) -> bool:
        return self.status == "pending"

    @property
    def is_paid(self) -> bool:
        return self.paid_at is not None
