from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session, aliased

from app.models.wallet_transaction import WalletTransaction
from app.services.wallet_service import CREDIT, EXPIRED
from app.services.wallet_store import add_transaction, utcnow, within_wallet_transaction


logger = logging.getLogger(__name__)


@dataclass
class ExpirySweepStats:
    processed: int = 0
    expired_transactions: int = 0
    expired_coins: int = 0
    skipped: int = 0
    failed: int = 0


def _find_expired_credits(db: Session, now: datetime):
    reversal = aliased(WalletTransaction)
    already_reversed = (
        db.query(reversal.id)
        .filter(reversal.transaction_type == EXPIRED)
        .filter(reversal.reference_id == WalletTransaction.id)
        .exists()
    )

    return (
        db.query(WalletTransaction.id, WalletTransaction.wallet_id, WalletTransaction.amount)
        .filter(WalletTransaction.transaction_type == CREDIT)
        .filter(WalletTransaction.expires_at.isnot(None))
        .filter(WalletTransaction.expires_at <= now)
        .filter(~already_reversed)
        .order_by(WalletTransaction.id.asc())
        .all()
    )


def _is_reversed(db: Session, credit_id: int) -> bool:
    return (
        db.query(WalletTransaction.id)
        .filter(WalletTransaction.transaction_type == EXPIRED)
        .filter(WalletTransaction.reference_id == credit_id)
        .first()
        is not None
    )


def run_expiry_sweep(db: Session, *, now: datetime | None = None) -> ExpirySweepStats:
    """
    Reverse every CREDIT lot whose expiry has passed, one unit of work per lot.

    Each reversal inserts an EXPIRED row pointing at the credit and takes the full
    credited amount off the balance, floored at 0. A lot that already has an
    EXPIRED row is skipped, so the sweep can be re-run safely. A failing lot is
    logged and counted; the sweep carries on with the next one.
    """
    now = now or utcnow()
    stats = ExpirySweepStats()

    candidates = _find_expired_credits(db, now)
    db.commit()

    for credit_id, wallet_id, amount in candidates:
        stats.processed += 1
        reversed_amount = None

        try:
            with within_wallet_transaction(db, wallet_id=wallet_id) as wallet:
                # a concurrent sweep may have reversed it since the scan
                if wallet is not None and not _is_reversed(db, credit_id):
                    add_transaction(
                        db,
                        wallet,
                        amount=-amount,
                        transaction_type=EXPIRED,
                        reference_type=EXPIRED,
                        reference_id=credit_id,
                        description=f"Expired coins from transaction #{credit_id}",
                    )
                    wallet.balance = max(0, (wallet.balance or 0) - amount)
                    reversed_amount = amount
        except Exception:
            stats.failed += 1
            logger.exception(
                "coin expiry failed",
                extra={"transaction_id": credit_id, "wallet_id": wallet_id},
            )
            continue

        if reversed_amount is None:
            stats.skipped += 1
            continue

        stats.expired_transactions += 1
        stats.expired_coins += reversed_amount

    logger.info(
        "coin expiry sweep finished",
        extra={
            "processed": stats.processed,
            "expired_transactions": stats.expired_transactions,
            "expired_coins": stats.expired_coins,
            "skipped": stats.skipped,
            "failed": stats.failed,
        },
    )
    return stats


def process_expired_coins(db: Session, *, now: datetime | None = None) -> int:
    return run_expiry_sweep(db, now=now).expired_coins
