"""Token model - master list of traded tokens."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid


class Token(Base):
    """A token identified by its mint address."""

    __tablename__ = "tokens"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    mint_address = Column(String, nullable=False, unique=True)
    symbol = Column(String, nullable=True)
    name = Column(String, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    trades = relationship("Trade", back_populates="token")
