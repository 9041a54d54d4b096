# app/models/price_rule.py
from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from app.db.base_class import Base, JSONType
import uuid


class PriceRule(Base):
    __tablename__ = "price_rules"

    id = Column(String, primary_key=True, default=lambda: f"prr_{uuid.uuid4().hex[:12]}")
    space_id = Column(String, ForeignKey("spaces.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # Bumped when a rule already used to price a booking is edited; the
    # previous row is kept untouched. A version has at most one successor.
    version = Column(Integer, nullable=False, default=1, server_default="1")
    previous_version_id = Column(String, ForeignKey("price_rules.id"), nullable=True, unique=True)

    definition = Column(JSONType, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    space = relationship("Space", back_populates="price_rules")
