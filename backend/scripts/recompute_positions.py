#!/usr/bin/env python
"""Recompute closed lots and open positions from stored trades.

Runs the batch recompute used by scheduled jobs. Each wallet is committed
on its own; a failing wallet is rolled back and reported while the rest
continue.

Usage:
    python -m scripts.recompute_positions
    python -m scripts.recompute_positions --wallet <wallet_id>
    python -m scripts.recompute_positions --wallet <wallet_id> --token <token_id>
    python -m scripts.recompute_positions --delay 0
"""

import argparse
import sys

from database import get_session_local
from logging_config import setup_logging
from services.position_service import PositionService


def recompute_positions(
    wallet_ids: list[str] | None = None,
    token_id: str | None = None,
    delay_seconds: float | None = None,
    service: PositionService | None = None,
    session_factory=None,
) -> int:
    """Recompute the given wallets (default: all with trades).

    Returns:
        Process exit code: 0 when every wallet and token succeeded, 1 otherwise.
    """
    owns_service = service is None
    service = service or PositionService()
    SessionLocal = session_factory or get_session_local()
    db = SessionLocal()

    try:
        if token_id is not None:
            if not wallet_ids or len(wallet_ids) != 1:
                print("Error: --token requires exactly one --wallet")
                return 1
            result = service.recompute_positions(db, wallet_ids[0], token_id)
            db.commit()
            print(
                f"Wallet {result.wallet_id} token {token_id}: "
                f"{len(result.closed_lots)} closed lots, "
                f"{len(result.open_positions)} open positions, "
                f"{len(result.diagnostics)} skipped trades"
            )
            return 1 if result.error_count else 0

        batch = service.recompute_all_wallets(db, wallet_ids=wallet_ids, delay_seconds=delay_seconds)

        for result in batch.results:
            print(
                f"  {result.wallet_id}: {len(result.closed_lots)} closed lots, "
                f"{len(result.open_positions)} open positions, "
                f"{len(result.diagnostics)} skipped trades, {result.error_count} token errors"
            )
        for wallet_id, error in batch.wallet_errors.items():
            print(f"  {wallet_id}: FAILED ({error})")

        print("\nSummary:")
        print(f"  Wallets recomputed: {batch.wallets_processed}")
        print(f"  Wallets skipped (no trades): {len(batch.skipped_wallets)}")
        print(f"  Wallet errors: {len(batch.wallet_errors)}")
        print(f"  Token errors: {batch.token_error_count}")

        return 1 if batch.wallet_errors or batch.token_error_count else 0

    except Exception as e:
        db.rollback()
        print(f"Error: {e}")
        raise
    finally:
        db.close()
        if owns_service:
            service.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Recompute closed lots and open positions from stored trades"
    )
    parser.add_argument(
        "--wallet",
        action="append",
        dest="wallets",
        help="Wallet id to recompute (repeatable; default: all wallets with trades)",
    )
    parser.add_argument(
        "--token",
        help="Limit the recompute to one token (requires a single --wallet)",
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=None,
        help="Seconds to pause between wallets (default: BATCH_DELAY_SECONDS)",
    )
    args = parser.parse_args()

    setup_logging()
    sys.exit(recompute_positions(args.wallets, args.token, args.delay))
