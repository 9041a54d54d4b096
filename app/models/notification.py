# app/models/notification.py
from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey, UniqueConstraint, func, false
from app.db.base_class import Base
import uuid


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String, primary_key=True, default=lambda: f"ntf_{uuid.uuid4().hex[:12]}")
    booking_id = Column(String, ForeignKey("bookings.id"), nullable=False, index=True)
    user_auth_id = Column(String, nullable=False, index=True)

    # Values: 'booking_confirmed', 'booking_received', 'booking_review',
    # 'booking_rejected', 'capacity_warning'
    kind = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False, server_default=false())

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        # At most one notification of each kind per booking and recipient
        UniqueConstraint("booking_id", "user_auth_id", "kind", name="uq_notification_booking_user_kind"),
    )
