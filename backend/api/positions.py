"""Wallet position API endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from api.helpers import get_or_404
from database import get_db
from models import Token, Wallet
from schemas.position import (
    ClosedLotResponse,
    OpenPositionResponse,
    RecomputeResponse,
    TokenErrorResponse,
    TradeDiagnosticResponse,
)
from services.exceptions import ScopeTimeout
from services.position_service import PositionService
from services.position_store_service import PositionStoreService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/wallets", tags=["positions"])

# Shared across requests; holds the market data cache
_position_service: Optional[PositionService] = None

# Dependency injection for testing
_position_service_override: Optional[PositionService] = None


def get_position_service() -> PositionService:
    """Get the shared PositionService instance, allowing for test overrides."""
    global _position_service
    if _position_service_override is not None:
        return _position_service_override
    if _position_service is None:
        _position_service = PositionService()
    return _position_service


def close_position_service() -> None:
    """Close the shared PositionService; the next request builds a new one."""
    global _position_service
    if _position_service is not None:
        _position_service.close()
        _position_service = None


def set_position_service_override(service: Optional[PositionService]) -> None:
    """Set a PositionService override for testing."""
    global _position_service_override
    _position_service_override = service


@router.post("/{wallet_id}/positions/recompute", response_model=RecomputeResponse)
def recompute_positions(
    wallet_id: str,
    token_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    service: PositionService = Depends(get_position_service),
):
    """Rebuild closed lots and open positions from the wallet's trades.

    Pass ``token_id`` to limit the rebuild to one token. Tokens that fail
    keep their previous rows and are listed in ``token_errors``.
    """
    get_or_404(db, Wallet, wallet_id, "Wallet not found")
    if token_id is not None:
        get_or_404(db, Token, token_id, "Token not found")

    try:
        result = service.recompute_positions(db, wallet_id, token_id)
    except ScopeTimeout as e:
        db.rollback()
        logger.warning("Recompute timed out for wallet %s", wallet_id)
        raise HTTPException(status_code=504, detail=str(e))
    db.commit()

    return RecomputeResponse(
        wallet_id=result.wallet_id,
        token_id=result.token_id,
        closed_lot_count=len(result.closed_lots),
        open_position_count=len(result.open_positions),
        diagnostics=[
            TradeDiagnosticResponse(trade_id=d.trade_id, token_id=d.token_id, reason=d.reason)
            for d in result.diagnostics
        ],
        token_errors=[
            TokenErrorResponse(token_id=e.token_id, error=e.error) for e in result.token_errors
        ],
        error_count=result.error_count,
    )


@router.get("/{wallet_id}/closed-lots", response_model=list[ClosedLotResponse])
def get_closed_lots(
    wallet_id: str,
    token_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    """Get stored closed lots for a wallet, ordered by token and sequence."""
    get_or_404(db, Wallet, wallet_id, "Wallet not found")
    return PositionStoreService.get_closed_lots(db, wallet_id, token_id)


@router.get("/{wallet_id}/open-positions", response_model=list[OpenPositionResponse])
def get_open_positions(
    wallet_id: str,
    db: Session = Depends(get_db),
):
    """Get stored open positions for a wallet."""
    get_or_404(db, Wallet, wallet_id, "Wallet not found")
    return PositionStoreService.get_open_positions(db, wallet_id)
