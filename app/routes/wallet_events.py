from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db import get_db
from app.deps.settings import get_wallet_settings
from app.schemas.wallet import CreditOut, CreditRequest, FirstPurchaseRequest, RefundRequest, WalletOut
from app.services import wallet_service
from app.services.settings_service import WalletSettingsSnapshot


# Called by the order/checkout subsystem, not by end users.
router = APIRouter(prefix="/internal/wallet", tags=["wallet-events"])


@router.post("/credit", response_model=CreditOut)
def credit_coins(
    payload: CreditRequest,
    settings: WalletSettingsSnapshot = Depends(get_wallet_settings),
    db: Session = Depends(get_db),
):
    wallet = wallet_service.credit(
        db,
        payload.user_id,
        payload.amount,
        payload.reference_type,
        reference_id=payload.reference_id,
        description=payload.description,
        settings=settings,
    )
    return {"credited": wallet is not None, "wallet": wallet}


@router.post("/first-purchase", response_model=CreditOut)
def first_purchase_reward(
    payload: FirstPurchaseRequest,
    settings: WalletSettingsSnapshot = Depends(get_wallet_settings),
    db: Session = Depends(get_db),
):
    wallet = wallet_service.first_purchase_reward(db, payload.user_id, payload.order_id, settings=settings)
    return {"credited": wallet is not None, "wallet": wallet}


@router.post("/refund", response_model=WalletOut)
def refund_coins(
    payload: RefundRequest,
    db: Session = Depends(get_db),
):
    return wallet_service.refund(
        db,
        payload.user_id,
        payload.amount,
        payload.reference_type,
        reference_id=payload.reference_id,
        description=payload.description,
    )
