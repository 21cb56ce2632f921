from sqlalchemy import CheckConstraint, Column, Integer, TIMESTAMP
from sqlalchemy.sql import func
from app.db import Base


class Wallet(Base):
    __tablename__ = "wallets"

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_wallets_balance_non_negative"),
        CheckConstraint("redeemed_balance >= 0", name="ck_wallets_redeemed_balance_non_negative"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    # owner key from the surrounding application (users table lives there)
    user_id = Column(Integer, nullable=False, unique=True, index=True)

    # spendable coins
    balance = Column(Integer, nullable=False, default=0)
    # coins converted into vouchers, not yet consumed at checkout
    redeemed_balance = Column(Integer, nullable=False, default=0)

    lifetime_earned = Column(Integer, nullable=False, default=0)
    lifetime_redeemed = Column(Integer, nullable=False, default=0)

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())
