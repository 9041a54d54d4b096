# app/models/area.py
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, CheckConstraint, func, true, false
from sqlalchemy.orm import relationship
from app.db.base_class import Base
import uuid


class Area(Base):
    """
    A bookable unit inside a space (a meeting room, a hot-desk zone).

    The area row is the lock target that serializes capacity decisions for
    every booking placed against it.
    """

    __tablename__ = "areas"

    id = Column(String, primary_key=True, default=lambda: f"area_{uuid.uuid4().hex[:12]}")
    space_id = Column(String, ForeignKey("spaces.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)

    # NULL means unlimited
    max_capacity = Column(Integer, nullable=True)

    # When false every booking in the area waits for the host's approval
    automatic_booking_enabled = Column(Boolean, nullable=False, default=True, server_default=true())
    # When the window is full: true sends new bookings to host review, false refuses them
    request_approval_at_capacity = Column(Boolean, nullable=False, default=False, server_default=false())

    # Minimum lead time between booking and start, e.g. 2 "days"
    advance_booking_enabled = Column(Boolean, nullable=False, default=False, server_default=false())
    advance_booking_value = Column(Integer, nullable=True)
    advance_booking_unit = Column(String(10), nullable=True)

    price_rule_id = Column(String, ForeignKey("price_rules.id", ondelete="SET NULL"), nullable=True)
    currency = Column(String(3), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("max_capacity IS NULL OR max_capacity > 0", name="area_capacity_positive"),
        CheckConstraint(
            "advance_booking_unit IS NULL OR advance_booking_unit IN ('days', 'weeks', 'months')",
            name="area_advance_booking_unit",
        ),
    )

    space = relationship("Space", back_populates="areas")
    price_rule = relationship("PriceRule")
