"""Persistence of matcher output.

Closed lots and open positions are owned by the recompute run for their
(wallet, token) scope. Every write is a delete-then-insert inside a
savepoint, so a failed scope keeps its previous rows and never touches
other tokens.
"""

import logging
from dataclasses import asdict
from decimal import Decimal
from typing import Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import settings
from models import ClosedLot, OpenPosition
from services.exceptions import PersistenceConflict
from services.lot_matching_service import ClosedLotRecord, OpenPositionRecord

logger = logging.getLogger(__name__)


def _check_scope(records, wallet_id: str, token_id: str | None, kind: str) -> None:
    for record in records:
        if record.wallet_id != wallet_id or (token_id is not None and record.token_id != token_id):
            raise ValueError(
                f"{kind} for wallet {record.wallet_id} token {record.token_id} "
                f"is outside scope wallet {wallet_id} token {token_id}"
            )


class PositionStoreService:
    """Scoped replace and read access for closed lots and open positions."""

    @staticmethod
    def replace_closed_lots(
        db: Session,
        wallet_id: str,
        lots: Iterable[ClosedLotRecord],
        token_id: str | None = None,
        from_sequence: int | None = None,
    ) -> int:
        """Replace a scope's closed lots.

        Scope is the wallet, narrowed to one token when ``token_id`` is
        given, and further to lots with ``sequence_number >= from_sequence``.

        Returns:
            Number of lots inserted.

        Raises:
            ValueError: A lot lies outside the scope, or from_sequence was
                given without token_id.
            PersistenceConflict: The database rejected the replace; the
                savepoint was rolled back.
        """
        lots = list(lots)
        if from_sequence is not None and token_id is None:
            raise ValueError("from_sequence requires token_id")
        _check_scope(lots, wallet_id, token_id, "Closed lot")
        if from_sequence is not None:
            for lot in lots:
                if lot.sequence_number < from_sequence:
                    raise ValueError(
                        f"Closed lot sequence {lot.sequence_number} precedes from_sequence {from_sequence}"
                    )

        try:
            with db.begin_nested():
                count = PositionStoreService._write_closed_lots(
                    db, wallet_id, lots, token_id, from_sequence
                )
        except SQLAlchemyError as e:
            logger.error("Closed lot replace failed for wallet %s token %s: %s", wallet_id, token_id, e)
            raise PersistenceConflict(wallet_id, token_id, str(e)) from e
        return count

    @staticmethod
    def replace_open_positions(
        db: Session,
        wallet_id: str,
        positions: Iterable[OpenPositionRecord],
        token_id: str | None = None,
    ) -> int:
        """Replace a scope's open positions.

        An empty ``positions`` deletes the scope's rows, which is how a
        fully closed wallet or token is recorded.

        Raises:
            ValueError: A position lies outside the scope.
            PersistenceConflict: The database rejected the replace.
        """
        positions = list(positions)
        _check_scope(positions, wallet_id, token_id, "Open position")

        try:
            with db.begin_nested():
                count = PositionStoreService._write_open_positions(db, wallet_id, positions, token_id)
        except SQLAlchemyError as e:
            logger.error("Open position replace failed for wallet %s token %s: %s", wallet_id, token_id, e)
            raise PersistenceConflict(wallet_id, token_id, str(e)) from e
        return count

    @staticmethod
    def replace_token_scope(
        db: Session,
        wallet_id: str,
        token_id: str,
        lots: Iterable[ClosedLotRecord],
        positions: Iterable[OpenPositionRecord],
    ) -> tuple[int, int]:
        """Replace one token's closed lots and open position together.

        Both tables change in a single savepoint, so readers never see
        new lots next to a stale open position.

        Returns:
            (closed lots inserted, open positions inserted)
        """
        lots = list(lots)
        positions = list(positions)
        _check_scope(lots, wallet_id, token_id, "Closed lot")
        _check_scope(positions, wallet_id, token_id, "Open position")

        try:
            with db.begin_nested():
                lot_count = PositionStoreService._write_closed_lots(db, wallet_id, lots, token_id, None)
                position_count = PositionStoreService._write_open_positions(
                    db, wallet_id, positions, token_id
                )
        except SQLAlchemyError as e:
            logger.error("Position replace failed for wallet %s token %s: %s", wallet_id, token_id, e)
            raise PersistenceConflict(wallet_id, token_id, str(e)) from e
        return lot_count, position_count

    @staticmethod
    def _write_closed_lots(db, wallet_id, lots, token_id, from_sequence) -> int:
        query = db.query(ClosedLot).filter(ClosedLot.wallet_id == wallet_id)
        if token_id is not None:
            query = query.filter(ClosedLot.token_id == token_id)
        if from_sequence is not None:
            query = query.filter(ClosedLot.sequence_number >= from_sequence)
        deleted = query.delete(synchronize_session="fetch")

        db.add_all([ClosedLot(**asdict(lot)) for lot in lots])
        db.flush()
        logger.debug(
            "Replaced closed lots for wallet %s token %s: %d deleted, %d inserted",
            wallet_id, token_id, deleted, len(lots),
        )
        return len(lots)

    @staticmethod
    def _write_open_positions(db, wallet_id, positions, token_id) -> int:
        query = db.query(OpenPosition).filter(OpenPosition.wallet_id == wallet_id)
        if token_id is not None:
            query = query.filter(OpenPosition.token_id == token_id)
        deleted = query.delete(synchronize_session="fetch")

        dust = settings.DUST_EPSILON
        rows = [
            OpenPosition(**asdict(position))
            for position in positions
            if Decimal(position.remaining_quantity) > dust
        ]
        db.add_all(rows)
        db.flush()
        logger.debug(
            "Replaced open positions for wallet %s token %s: %d deleted, %d inserted",
            wallet_id, token_id, deleted, len(rows),
        )
        return len(rows)

    # --- Reads ---

    @staticmethod
    def get_closed_lots(
        db: Session, wallet_id: str, token_id: str | None = None
    ) -> list[ClosedLot]:
        """Return stored closed lots ordered by token, then sequence number."""
        query = db.query(ClosedLot).filter(ClosedLot.wallet_id == wallet_id)
        if token_id is not None:
            query = query.filter(ClosedLot.token_id == token_id)
        return query.order_by(ClosedLot.token_id, ClosedLot.sequence_number).all()

    @staticmethod
    def get_open_positions(
        db: Session, wallet_id: str, token_id: str | None = None
    ) -> list[OpenPosition]:
        """Return stored open positions ordered by token."""
        query = db.query(OpenPosition).filter(OpenPosition.wallet_id == wallet_id)
        if token_id is not None:
            query = query.filter(OpenPosition.token_id == token_id)
        return query.order_by(OpenPosition.token_id).all()
