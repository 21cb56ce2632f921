import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db import get_db
from app.deps.settings import get_settings_policy
from app.deps.user import require_admin
from app.schemas.wallet import (
    ExpirySweepOut,
    ManualAdjustmentRequest,
    WalletOut,
    WalletPage,
    WalletTransactionPage,
)
from app.schemas.wallet_settings import WalletSettingsOut, WalletSettingsUpdate
from app.services import wallet_service
from app.services.errors import InsufficientFunds
from app.services.expiry_service import run_expiry_sweep
from app.services.settings_service import SettingsPolicy
from app.services.wallet_store import list_wallets, within_wallet_transaction


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/wallet", tags=["admin-wallet"])


@router.put("/settings", response_model=WalletSettingsOut)
def update_wallet_settings(
    payload: WalletSettingsUpdate,
    admin_id: int = Depends(require_admin),
    policy: SettingsPolicy = Depends(get_settings_policy),
    db: Session = Depends(get_db),
):
    snapshot = policy.update(db, payload.model_dump(exclude_unset=True))
    logger.info("wallet settings changed by admin", extra={"admin_id": admin_id})
    return WalletSettingsOut.from_snapshot(snapshot)


@router.post("/adjust", response_model=WalletOut)
def adjust_wallet(
    payload: ManualAdjustmentRequest,
    admin_id: int = Depends(require_admin),
    db: Session = Depends(get_db),
):
    # deductions are guarded here, under the same wallet lock as the adjustment
    with within_wallet_transaction(db, user_id=payload.user_id) as wallet:
        if payload.amount < 0 and wallet.balance < abs(payload.amount):
            raise InsufficientFunds("Insufficient balance for deduction")

        wallet_service.apply_manual_adjustment(
            db,
            wallet,
            payload.amount,
            f"Admin adjustment: {payload.reason}",
        )

    logger.info(
        "wallet adjusted by admin",
        extra={"admin_id": admin_id, "user_id": payload.user_id, "amount": payload.amount},
    )
    return wallet


@router.post("/process-expired", response_model=ExpirySweepOut)
def process_expired_coins(
    admin_id: int = Depends(require_admin),
    db: Session = Depends(get_db),
):
    stats = run_expiry_sweep(db)
    return {
        "processed_count": stats.expired_coins,
        "expired_transactions": stats.expired_transactions,
        "failed": stats.failed,
        "message": f"Processed {stats.expired_coins} expired coins",
    }


@router.get("/users", response_model=WalletPage)
def list_user_wallets(
    page: int = 1,
    limit: int = 50,
    admin_id: int = Depends(require_admin),
    db: Session = Depends(get_db),
):
    wallets, total = list_wallets(db, page=page, limit=limit)
    return {"wallets": wallets, "total": total}


@router.get("/{user_id}", response_model=WalletOut)
def read_user_wallet(
    user_id: int,
    admin_id: int = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return wallet_service.get_wallet(db, user_id)


@router.get("/{user_id}/transactions", response_model=WalletTransactionPage)
def read_user_wallet_transactions(
    user_id: int,
    page: int = 1,
    limit: int = 10,
    admin_id: int = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return wallet_service.get_transactions(db, user_id, page=page, limit=limit)
