from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP

from sqlalchemy.orm import Session

from app.models.voucher import Voucher
from app.models.wallet import Wallet
from app.models.wallet_transaction import WalletTransaction
from app.services.errors import InsufficientFunds, PolicyViolation, WalletValidationError
from app.services.settings_service import WalletSettingsSnapshot
from app.services.voucher_service import issue_voucher
from app.services.wallet_store import (
    add_transaction,
    get_or_create_wallet,
    list_transactions,
    utcnow,
    within_wallet_transaction,
)


logger = logging.getLogger(__name__)


CREDIT = "CREDIT"
DEBIT = "DEBIT"
REFUND = "REFUND"
EXPIRED = "EXPIRED"
REDEEMED_SPENT = "REDEEMED_SPENT"
MANUAL_ADJUSTMENT = "MANUAL_ADJUSTMENT"

FIRST_PURCHASE = "FIRST_PURCHASE"


@dataclass
class RedemptionResult:
    wallet: Wallet
    discount_amount: Decimal
    voucher_code: str
    voucher: Voucher


def _require_positive(amount, name: str = "amount") -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise WalletValidationError(f"{name} must be an integer")
    if amount <= 0:
        raise WalletValidationError(f"{name} must be a positive number")
    return amount


def _to_decimal(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def coins_to_currency(amount: int, settings: WalletSettingsSnapshot) -> Decimal:
    return (Decimal(amount) * settings.coin_to_currency_ratio).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


# ============================================================
# READS
# ============================================================
def get_wallet(db: Session, user_id: int) -> Wallet:
    return get_or_create_wallet(db, user_id)


def get_transactions(db: Session, user_id: int, *, page: int = 1, limit: int = 10) -> dict:
    wallet = get_or_create_wallet(db, user_id)
    rows, total = list_transactions(db, wallet.id, page=page, limit=limit)
    return {"transactions": rows, "total": total}


# ============================================================
# CREDIT (earn events)
# ============================================================
def _apply_credit(
    db: Session,
    wallet: Wallet,
    *,
    amount: int,
    reference_type: str,
    reference_id: int | None,
    description: str | None,
    settings: WalletSettingsSnapshot,
    now: datetime,
) -> WalletTransaction:
    expires_at = now + timedelta(days=settings.coin_expiry_days)

    tx = add_transaction(
        db,
        wallet,
        amount=amount,
        transaction_type=CREDIT,
        reference_type=reference_type,
        reference_id=reference_id,
        description=description,
        expires_at=expires_at,
    )

    wallet.balance = (wallet.balance or 0) + amount
    wallet.lifetime_earned = (wallet.lifetime_earned or 0) + amount

    return tx


def credit(
    db: Session,
    user_id: int,
    amount: int,
    reference_type: str,
    reference_id: int | None = None,
    description: str | None = None,
    *,
    settings: WalletSettingsSnapshot,
    now: datetime | None = None,
) -> Wallet | None:
    """
    Add expiring coins to a wallet. Returns None (nothing credited) while the
    wallet feature is disabled.
    """
    amount = _require_positive(amount)

    if not settings.is_enabled:
        logger.info("credit skipped: wallet feature disabled", extra={"user_id": user_id, "amount": amount})
        return None

    now = now or utcnow()

    with within_wallet_transaction(db, user_id=user_id) as wallet:
        _apply_credit(
            db,
            wallet,
            amount=amount,
            reference_type=reference_type,
            reference_id=reference_id,
            description=description,
            settings=settings,
            now=now,
        )
        wallet_id = wallet.id

    logger.info(
        "coins credited",
        extra={"user_id": user_id, "wallet_id": wallet_id, "amount": amount, "reference_type": reference_type},
    )
    return wallet


def first_purchase_reward(
    db: Session,
    user_id: int,
    order_id: int | None,
    *,
    settings: WalletSettingsSnapshot,
    now: datetime | None = None,
) -> Wallet | None:
    """
    Credit the first-purchase bonus once per wallet. Returns None when nothing
    was credited (already rewarded, feature disabled, or bonus set to 0).
    """
    if not settings.is_enabled or settings.first_purchase_coins <= 0:
        return None

    now = now or utcnow()
    credited = False

    # the lookup runs under the wallet lock so two first orders cannot both pay out
    with within_wallet_transaction(db, user_id=user_id) as wallet:
        already_rewarded = (
            db.query(WalletTransaction.id)
            .filter(WalletTransaction.wallet_id == wallet.id)
            .filter(WalletTransaction.reference_type == FIRST_PURCHASE)
            .first()
        )
        if not already_rewarded:
            _apply_credit(
                db,
                wallet,
                amount=settings.first_purchase_coins,
                reference_type=FIRST_PURCHASE,
                reference_id=order_id,
                description="First purchase reward",
                settings=settings,
                now=now,
            )
            credited = True
        wallet_id = wallet.id

    if not credited:
        logger.info("first purchase reward already granted", extra={"user_id": user_id, "order_id": order_id})
        return None

    logger.info(
        "first purchase reward granted",
        extra={"user_id": user_id, "wallet_id": wallet_id, "order_id": order_id, "amount": settings.first_purchase_coins},
    )
    return wallet


# ============================================================
# REFUND (cancelled / returned orders)
# ============================================================
def refund(
    db: Session,
    user_id: int,
    amount: int,
    reference_type: str,
    reference_id: int | None = None,
    description: str | None = None,
) -> Wallet:
    amount = _require_positive(amount)

    with within_wallet_transaction(db, user_id=user_id) as wallet:
        add_transaction(
            db,
            wallet,
            amount=amount,
            transaction_type=REFUND,
            reference_type=reference_type,
            reference_id=reference_id,
            description=description,
        )
        wallet.balance = (wallet.balance or 0) + amount
        wallet_id = wallet.id

    logger.info(
        "coins refunded",
        extra={"user_id": user_id, "wallet_id": wallet_id, "amount": amount, "reference_id": reference_id},
    )
    return wallet


# ============================================================
# REDEEM (coins -> voucher)
# ============================================================
def _check_order_rules(amount: int, order_value, category: str | None, settings: WalletSettingsSnapshot) -> None:
    order_value = _to_decimal(order_value)

    if order_value < settings.min_cart_value:
        raise PolicyViolation(f"Order value must be at least {settings.min_cart_value} to use coins")

    if not settings.is_category_eligible(category):
        raise PolicyViolation("Coins cannot be used for this product category")

    discount = Decimal(amount) * settings.coin_to_currency_ratio
    max_discount = order_value * settings.max_usage_percentage / Decimal(100)
    if discount > max_discount:
        max_coins = 0
        if settings.coin_to_currency_ratio > 0:
            max_coins = int((max_discount / settings.coin_to_currency_ratio).to_integral_value(rounding=ROUND_DOWN))
        raise PolicyViolation(
            f"You can use a maximum of {max_coins} coins "
            f"({settings.max_usage_percentage}% of order value) for this order"
        )


def redeem(
    db: Session,
    user_id: int,
    amount: int,
    reference_type: str | None = None,
    reference_id: int | None = None,
    description: str | None = None,
    order_value=None,
    category: str | None = None,
    *,
    settings: WalletSettingsSnapshot,
) -> RedemptionResult:
    """
    Move ``amount`` coins from the spendable balance into the redeemed pool and
    mint a voucher worth their currency value.

    Checks, in order: feature enabled, balance, per-redemption limit, then (when
    an order value is given) minimum cart value, category and usage cap.
    """
    amount = _require_positive(amount)

    if not settings.is_enabled:
        raise PolicyViolation("Wallet system is currently disabled")

    reference_type = reference_type or "REDEMPTION"

    with within_wallet_transaction(db, user_id=user_id) as wallet:
        if amount > wallet.balance:
            raise InsufficientFunds("Insufficient balance")

        if amount > settings.max_redeemable_coins:
            raise PolicyViolation(f"Cannot redeem more than {settings.max_redeemable_coins} coins at once")

        if order_value is not None:
            _check_order_rules(amount, order_value, category, settings)

        add_transaction(
            db,
            wallet,
            amount=-amount,
            transaction_type=DEBIT,
            reference_type=reference_type,
            reference_id=reference_id,
            description=description,
        )

        wallet.balance = wallet.balance - amount
        wallet.redeemed_balance = (wallet.redeemed_balance or 0) + amount

        discount_amount = coins_to_currency(amount, settings)
        voucher = issue_voucher(db, user_id=user_id, discount_amount=discount_amount)
        wallet_id = wallet.id
        voucher_id = voucher.id
        voucher_code = voucher.code

    logger.info(
        "coins redeemed",
        extra={
            "user_id": user_id,
            "wallet_id": wallet_id,
            "amount": amount,
            "discount_amount": str(discount_amount),
            "voucher_id": voucher_id,
        },
    )
    return RedemptionResult(
        wallet=wallet,
        discount_amount=discount_amount,
        voucher_code=voucher_code,
        voucher=voucher,
    )


# ============================================================
# MANUAL ADJUSTMENT (admin)
# ============================================================
def apply_manual_adjustment(db: Session, wallet: Wallet, amount: int, description: str) -> WalletTransaction:
    """
    Adjust a wallet already locked by the caller's unit of work.

    Negative amounts are not checked against the balance here; callers guard
    deductions (the wallets CHECK constraint still refuses a negative balance).
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise WalletValidationError("Adjustment amount must be an integer")
    if amount == 0:
        raise WalletValidationError("Adjustment amount cannot be zero")

    tx = add_transaction(
        db,
        wallet,
        amount=amount,
        transaction_type=MANUAL_ADJUSTMENT,
        reference_type="MANUAL",
        description=description,
    )

    wallet.balance = (wallet.balance or 0) + amount
    if amount > 0:
        wallet.lifetime_earned = (wallet.lifetime_earned or 0) + amount
    else:
        wallet.lifetime_redeemed = (wallet.lifetime_redeemed or 0) - amount

    return tx


def manual_adjustment(db: Session, user_id: int, amount: int, description: str) -> Wallet:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount == 0:
        raise WalletValidationError("Adjustment amount cannot be zero")

    with within_wallet_transaction(db, user_id=user_id) as wallet:
        apply_manual_adjustment(db, wallet, amount, description)
        wallet_id = wallet.id

    logger.info("wallet manually adjusted", extra={"user_id": user_id, "wallet_id": wallet_id, "amount": amount})
    return wallet


# ============================================================
# SPEND REDEEMED COINS (checkout)
# ============================================================
def spend_redeemed_at_checkout(
    db: Session,
    user_id: int,
    amount: int,
    order_id: int,
    description: str | None = None,
) -> Wallet:
    amount = _require_positive(amount)

    with within_wallet_transaction(db, user_id=user_id) as wallet:
        if amount > (wallet.redeemed_balance or 0):
            raise InsufficientFunds("Not enough redeemed coins")

        wallet.redeemed_balance = wallet.redeemed_balance - amount
        # coins count as redeemed once spent at checkout, not when moved to the redeemed pool
        wallet.lifetime_redeemed = (wallet.lifetime_redeemed or 0) + amount

        add_transaction(
            db,
            wallet,
            amount=-amount,
            transaction_type=REDEEMED_SPENT,
            reference_type="ORDER",
            reference_id=order_id,
            description=description or "Spent redeemed coins at checkout",
        )
        wallet_id = wallet.id

    logger.info(
        "redeemed coins spent",
        extra={"user_id": user_id, "wallet_id": wallet_id, "amount": amount, "order_id": order_id},
    )
    return wallet
