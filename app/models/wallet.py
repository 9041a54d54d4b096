# app/models/wallet.py
from sqlalchemy import Column, String, Integer, DateTime, func
from app.db.base_class import Base
import uuid


class Wallet(Base):
    __tablename__ = "wallets"

    id = Column(String, primary_key=True, default=lambda: f"wal_{uuid.uuid4().hex[:12]}")
    owner_auth_id = Column(String, nullable=False, unique=True)
    balance_minor = Column(Integer, nullable=False, default=0, server_default="0")
    currency = Column(String(3), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
