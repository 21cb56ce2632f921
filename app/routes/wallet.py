from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.db import get_db
from app.deps.settings import get_wallet_settings
from app.deps.user import get_current_user_id
from app.schemas.voucher import VoucherOut
from app.schemas.wallet import (
    RedeemOut,
    RedeemRequest,
    SpendRedeemedRequest,
    WalletOut,
    WalletTransactionPage,
)
from app.schemas.wallet_settings import WalletSettingsOut
from app.services import wallet_service
from app.services.settings_service import WalletSettingsSnapshot
from app.services.voucher_service import get_active_voucher, list_vouchers

router = APIRouter(prefix="/wallet", tags=["wallet"])


@router.get("", response_model=WalletOut)
def read_wallet(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return wallet_service.get_wallet(db, user_id)


@router.get("/transactions", response_model=WalletTransactionPage)
def read_wallet_transactions(
    page: int = 1,
    limit: int = 10,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return wallet_service.get_transactions(db, user_id, page=page, limit=limit)


@router.get("/settings", response_model=WalletSettingsOut)
def read_wallet_settings(settings: WalletSettingsSnapshot = Depends(get_wallet_settings)):
    return WalletSettingsOut.from_snapshot(settings)


@router.post("/redeem", response_model=RedeemOut)
def redeem_coins(
    payload: RedeemRequest,
    user_id: int = Depends(get_current_user_id),
    settings: WalletSettingsSnapshot = Depends(get_wallet_settings),
    db: Session = Depends(get_db),
):
    result = wallet_service.redeem(
        db,
        user_id,
        payload.amount,
        reference_type=payload.reference_type,
        reference_id=payload.reference_id,
        description=payload.description,
        order_value=payload.order_value,
        category=payload.category,
        settings=settings,
    )
    return {
        "wallet": result.wallet,
        "discount_amount": result.discount_amount,
        "voucher_code": result.voucher_code,
    }


@router.post("/spend-redeemed", response_model=WalletOut)
def spend_redeemed_coins(
    payload: SpendRedeemedRequest,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return wallet_service.spend_redeemed_at_checkout(
        db,
        user_id,
        payload.amount,
        payload.order_id,
        description=payload.description,
    )


@router.get("/voucher", response_model=VoucherOut)
def read_active_voucher(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    voucher = get_active_voucher(db, user_id)
    if not voucher:
        raise HTTPException(status_code=404, detail="No active wallet voucher found")
    return voucher


@router.get("/vouchers", response_model=list[VoucherOut])
def read_vouchers(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return list_vouchers(db, user_id)
