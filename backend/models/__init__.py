"""SQLAlchemy ORM models."""

from .closed_lot import ClosedLot
from .open_position import OpenPosition
from .token import Token
from .trade import Trade
from .wallet import Wallet
from .utils import generate_uuid

__all__ = ["ClosedLot", "OpenPosition", "Token", "Trade", "Wallet", "generate_uuid"]
