"""Exceptions raised by the position engine.

Failures are contained at the smallest unit that can absorb them: a bad
trade becomes a diagnostic, a failed lookup nulls a field, a failed token
is reported in the wallet result, and only scope-level failures propagate.
"""


class PositionError(Exception):
    """Base exception for lot matching and position persistence errors."""

    pass


class TradeInputError(PositionError):
    """A trade cannot be matched (bad side, quantity, or cost).

    The matcher converts these into diagnostics and skips the trade.
    """

    def __init__(self, trade_id: str, reason: str):
        self.trade_id = trade_id
        self.reason = reason
        super().__init__(f"Trade {trade_id}: {reason}")


class PersistenceConflict(PositionError):
    """A scoped replace of closed lots or open positions failed.

    The savepoint has been rolled back; the scope's previous rows are intact
    and the caller may retry the scope.
    """

    def __init__(self, wallet_id: str, token_id: str | None = None, message: str = ""):
        self.wallet_id = wallet_id
        self.token_id = token_id
        scope = f"wallet {wallet_id}" + (f" token {token_id}" if token_id else "")
        super().__init__(f"Failed to replace positions for {scope}" + (f": {message}" if message else ""))


class ScopeTimeout(PositionError):
    """A wallet recompute exceeded its time bound."""

    def __init__(self, wallet_id: str, timeout_seconds: float):
        self.wallet_id = wallet_id
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Recompute for wallet {wallet_id} exceeded {timeout_seconds}s"
        )
