"""Wallet model - a tracked on-chain wallet."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid


class Wallet(Base):
    """An on-chain wallet whose trades are tracked.

    ``tracking_start`` marks when trade history for this wallet begins.
    Inventory acquired before it is treated as pre-history by the lot
    matcher.
    """

    __tablename__ = "wallets"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    address = Column(String, nullable=False, unique=True)
    label = Column(String, nullable=True)
    tracking_start = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    trades = relationship("Trade", back_populates="wallet")
    closed_lots = relationship("ClosedLot", back_populates="wallet")
    open_positions = relationship("OpenPosition", back_populates="wallet")
