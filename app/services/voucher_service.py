import logging
import secrets
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy.orm import Session

from app.models.voucher import Voucher
from app.services.errors import StorageFailure
from app.services.wallet_store import utcnow


logger = logging.getLogger(__name__)

VOUCHER_CODE_PREFIX = "WALLET-"
MAX_CODE_ATTEMPTS = 5


def generate_voucher_code() -> str:
    return VOUCHER_CODE_PREFIX + secrets.token_hex(6).upper()


def _code_exists(db: Session, code: str) -> bool:
    return db.query(Voucher.id).filter(Voucher.code == code).first() is not None


def voucher_value(discount_amount: Decimal) -> int:
    return int(Decimal(discount_amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ============================================================
# ISSUE VOUCHER (inside the redemption unit of work)
# ============================================================
def issue_voucher(db: Session, *, user_id: int, discount_amount: Decimal, code_factory=generate_voucher_code) -> Voucher:
    """
    Mint a single-use voucher worth ``discount_amount`` for ``user_id``.

    Only flushes; the caller's unit of work commits it together with the ledger
    update. The unique index on vouchers.code backs the collision check.
    """
    code = None
    for _ in range(MAX_CODE_ATTEMPTS):
        candidate = code_factory()
        if not _code_exists(db, candidate):
            code = candidate
            break

    if code is None:
        raise StorageFailure("Could not allocate a unique voucher code, please retry")

    value = voucher_value(discount_amount)
    voucher = Voucher(
        code=code,
        initial_value=value,
        current_balance=value,
        issued_to=user_id,
        is_active=True,
        expiry_date=None,
        created_at=utcnow(),
        last_used=None,
    )
    db.add(voucher)
    db.flush()

    logger.info("voucher issued", extra={"user_id": user_id, "voucher_id": voucher.id, "value": value})
    return voucher


def get_active_voucher(db: Session, user_id: int):
    return (
        db.query(Voucher)
        .filter(Voucher.issued_to == user_id, Voucher.is_active.is_(True))
        .order_by(Voucher.created_at.desc(), Voucher.id.desc())
        .first()
    )


def list_vouchers(db: Session, user_id: int):
    return (
        db.query(Voucher)
        .filter(Voucher.issued_to == user_id)
        .order_by(Voucher.created_at.desc(), Voucher.id.desc())
        .all()
    )
