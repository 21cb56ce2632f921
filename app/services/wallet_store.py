from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.wallet import Wallet
from app.models.wallet_transaction import WalletTransaction
from app.services.errors import StorageFailure


logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    # Keep naive UTC timestamps to match DB column types/semantics.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _lock_wallet_by_user(db: Session, user_id: int) -> Wallet:
    wallet = (
        db.query(Wallet)
        .filter(Wallet.user_id == user_id)
        .populate_existing()
        .with_for_update()
        .first()
    )
    if wallet:
        return wallet

    # lazy creation; a concurrent creator may win the unique constraint
    try:
        with db.begin_nested():
            wallet = Wallet(
                user_id=user_id,
                balance=0,
                redeemed_balance=0,
                lifetime_earned=0,
                lifetime_redeemed=0,
            )
            db.add(wallet)
            db.flush()
    except IntegrityError:
        wallet = None

    if wallet is None:
        wallet = (
            db.query(Wallet)
            .filter(Wallet.user_id == user_id)
            .populate_existing()
            .with_for_update()
            .one()
        )
    else:
        logger.info("wallet created", extra={"user_id": user_id, "wallet_id": wallet.id})

    return wallet


def _lock_wallet_by_id(db: Session, wallet_id: int) -> Wallet | None:
    return (
        db.query(Wallet)
        .filter(Wallet.id == wallet_id)
        .populate_existing()
        .with_for_update()
        .first()
    )


@contextmanager
def within_wallet_transaction(
    db: Session,
    *,
    user_id: int | None = None,
    wallet_id: int | None = None,
) -> Iterator[Wallet | None]:
    """
    Atomic unit of work against one wallet.

    Locks the wallet row (creating it when addressed by user_id), yields it, and
    commits everything written to the session on exit. Any exception rolls the
    whole unit back; database errors surface as StorageFailure.

    Addressed by wallet_id, the yielded value is None when the wallet is gone.
    """
    if (user_id is None) == (wallet_id is None):
        raise ValueError("exactly one of user_id / wallet_id is required")

    try:
        if user_id is not None:
            wallet = _lock_wallet_by_user(db, user_id)
        else:
            wallet = _lock_wallet_by_id(db, wallet_id)

        yield wallet

        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(
            "wallet unit of work failed",
            extra={"user_id": user_id, "wallet_id": wallet_id},
        )
        raise StorageFailure("Wallet update could not be committed, please retry") from e
    except Exception:
        db.rollback()
        raise


def add_transaction(
    db: Session,
    wallet: Wallet,
    *,
    amount: int,
    transaction_type: str,
    reference_type: str | None = None,
    reference_id: int | None = None,
    description: str | None = None,
    expires_at: datetime | None = None,
) -> WalletTransaction:
    tx = WalletTransaction(
        wallet_id=wallet.id,
        amount=amount,
        transaction_type=transaction_type,
        reference_type=reference_type,
        reference_id=reference_id,
        description=description,
        expires_at=expires_at,
        created_at=utcnow(),
    )
    db.add(tx)
    db.flush()
    return tx


def find_wallet(db: Session, user_id: int) -> Wallet | None:
    return db.query(Wallet).filter(Wallet.user_id == user_id).first()


def get_or_create_wallet(db: Session, user_id: int) -> Wallet:
    with within_wallet_transaction(db, user_id=user_id) as wallet:
        pass
    return wallet


def list_transactions(db: Session, wallet_id: int, *, page: int = 1, limit: int = 10):
    page = max(1, page)
    limit = max(1, min(limit, 200))

    total = (
        db.query(func.count(WalletTransaction.id))
        .filter(WalletTransaction.wallet_id == wallet_id)
        .scalar()
    )

    rows = (
        db.query(WalletTransaction)
        .filter(WalletTransaction.wallet_id == wallet_id)
        .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return rows, int(total or 0)


def list_wallets(db: Session, *, page: int = 1, limit: int = 50):
    page = max(1, page)
    limit = max(1, min(limit, 200))

    total = db.query(func.count(Wallet.id)).scalar()
    rows = (
        db.query(Wallet)
        .order_by(Wallet.balance.desc(), Wallet.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, int(total or 0)
