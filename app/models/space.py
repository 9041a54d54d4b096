# app/models/space.py
from sqlalchemy import Column, String, Boolean, DateTime, func, true
from sqlalchemy.orm import relationship
from app.db.base_class import Base
import uuid


class Space(Base):
    __tablename__ = "spaces"

    id = Column(String, primary_key=True, default=lambda: f"spc_{uuid.uuid4().hex[:12]}")
    name = Column(String(255), nullable=False)
    partner_auth_id = Column(String, nullable=False, index=True)

    # IANA zone the space operates in; pricing conditions read local time.
    timezone = Column(String(64), nullable=False, default="UTC", server_default="UTC")
    is_published = Column(Boolean, nullable=False, default=True, server_default=true())

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    areas = relationship("Area", back_populates="space")
    price_rules = relationship("PriceRule", back_populates="space")
