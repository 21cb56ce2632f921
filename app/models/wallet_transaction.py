from sqlalchemy import Column, Index, Integer, String, Text, TIMESTAMP, ForeignKey, text
from sqlalchemy.sql import func
from app.db import Base


class WalletTransaction(Base):
    __tablename__ = "wallet_transactions"

    __table_args__ = (
        Index("ix_wallet_transactions_wallet_created", "wallet_id", "created_at"),
        Index("ix_wallet_transactions_type_expires", "transaction_type", "expires_at"),
        # one EXPIRED row per reversed CREDIT row
        Index(
            "uq_wallet_transactions_expired_reference",
            "reference_id",
            unique=True,
            postgresql_where=text("transaction_type = 'EXPIRED'"),
            sqlite_where=text("transaction_type = 'EXPIRED'"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    wallet_id = Column(Integer, ForeignKey("wallets.id", ondelete="CASCADE"), nullable=False)

    # signed: positive adds coins, negative removes them
    amount = Column(Integer, nullable=False)
    transaction_type = Column(String(20), nullable=False)
    # CREDIT / DEBIT / REFUND / EXPIRED / REDEEMED_SPENT / MANUAL_ADJUSTMENT

    reference_type = Column(String(50))  # FIRST_PURCHASE / ORDER / CART / MANUAL / EXPIRED ...
    reference_id = Column(Integer, nullable=True)

    description = Column(Text)

    # only set on CREDIT rows
    expires_at = Column(TIMESTAMP, nullable=True)

    created_at = Column(TIMESTAMP, server_default=func.now())
