"""OpenPosition model - residual buy inventory per wallet and token."""

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid


class OpenPosition(Base):
    """Unmatched buy inventory left after FIFO matching.

    One row per (wallet, token); the token has no row once it is fully sold.
    """

    __tablename__ = "open_positions"
    __table_args__ = (
        UniqueConstraint("wallet_id", "token_id", name="uix_open_position_wallet_token"),
        CheckConstraint("remaining_quantity > 0", name="ck_open_position_quantity_positive"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    wallet_id = Column(String(36), ForeignKey("wallets.id"), nullable=False, index=True)
    token_id = Column(String(36), ForeignKey("tokens.id"), nullable=False, index=True)
    remaining_quantity = Column(Numeric(38, 12), nullable=False)
    average_cost = Column(Numeric(38, 12), nullable=False)
    total_cost = Column(Numeric(38, 12), nullable=False)
    opened_at = Column(DateTime, nullable=False)
    last_trade_at = Column(DateTime, nullable=True)
    buy_count = Column(Integer, nullable=False, default=0)
    sell_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    wallet = relationship("Wallet", back_populates="open_positions")
    token = relationship("Token")
