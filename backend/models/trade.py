"""Trade model - a valued buy/sell event for a wallet and token."""

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid


class Trade(Base):
    """A trade already valued in the common base currency.

    Written by the ingestion pipeline and treated as immutable here.
    ``sequence_hint`` is the ingestion sequence and breaks timestamp ties.
    """

    __tablename__ = "trades"
    __table_args__ = (
        UniqueConstraint("wallet_id", "signature", name="uix_trade_wallet_signature"),
        CheckConstraint(
            "side IN ('buy', 'sell', 'add', 'remove', 'void')",
            name="ck_trade_side_valid",
        ),
        Index("ix_trades_wallet_token_timestamp", "wallet_id", "token_id", "timestamp"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    wallet_id = Column(String(36), ForeignKey("wallets.id"), nullable=False, index=True)
    token_id = Column(String(36), ForeignKey("tokens.id"), nullable=False, index=True)
    side = Column(String, nullable=False)  # "buy" / "sell" / "add" / "remove" / "void"
    quantity = Column(Numeric(38, 12), nullable=False)
    unit_cost = Column(Numeric(38, 12), nullable=False)  # base currency per token
    base_price_usd = Column(Numeric(38, 12), nullable=True)  # USD per base unit at trade time
    timestamp = Column(DateTime, nullable=False)
    sequence_hint = Column(Integer, nullable=False, default=0)
    signature = Column(String, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    wallet = relationship("Wallet", back_populates="trades")
    token = relationship("Token", back_populates="trades")
