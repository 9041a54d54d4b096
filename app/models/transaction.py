# app/models/transaction.py
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, func, false
from app.db.base_class import Base
import uuid


class Transaction(Base):
    """Ledger row for money received against a booking."""

    __tablename__ = "transactions"

    id = Column(String, primary_key=True, default=lambda: f"txn_{uuid.uuid4().hex[:12]}")
    booking_id = Column(String, ForeignKey("bookings.id"), nullable=False, index=True)
    user_auth_id = Column(String, nullable=False)
    partner_auth_id = Column(String, nullable=False)

    amount_minor = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False)

    # Values: 'charge'
    kind = Column(String(50), nullable=False, default="charge", server_default="charge")
    # Values: 'succeeded'
    status = Column(String(50), nullable=False, default="succeeded", server_default="succeeded")

    # Provider payment reference; one ledger row per payment
    external_reference = Column(String(255), nullable=False, unique=True)
    livemode = Column(Boolean, nullable=False, default=False, server_default=false())

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
