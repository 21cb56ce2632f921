"""create wallet tables

Revision ID: 5e1b7c2a9d40
Revises:
Create Date: 2026-10-12

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "5e1b7c2a9d40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not inspector.has_table("wallet_settings"):
        op.create_table(
            "wallet_settings",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
            sa.Column("first_purchase_coins", sa.Integer(), server_default="3000", nullable=False),
            sa.Column("coin_to_currency_ratio", sa.Numeric(10, 2), server_default="1.00", nullable=False),
            sa.Column("min_order_value", sa.Numeric(12, 2), server_default="500.00", nullable=False),
            sa.Column("max_redeemable_coins", sa.Integer(), server_default="200", nullable=False),
            sa.Column("coin_expiry_days", sa.Integer(), server_default="90", nullable=False),
            sa.Column("max_usage_percentage", sa.Numeric(5, 2), server_default="20.00", nullable=False),
            sa.Column("min_cart_value", sa.Numeric(12, 2), server_default="0.00", nullable=False),
            sa.Column("applicable_categories", sa.Text(), nullable=True),
            sa.Column("is_enabled", sa.Boolean(), server_default=sa.true(), nullable=False),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.text("now()"), nullable=True),
            sa.Column("updated_at", sa.TIMESTAMP(), server_default=sa.text("now()"), nullable=True),
        )

    if not inspector.has_table("wallets"):
        op.create_table(
            "wallets",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("balance", sa.Integer(), server_default="0", nullable=False),
            sa.Column("redeemed_balance", sa.Integer(), server_default="0", nullable=False),
            sa.Column("lifetime_earned", sa.Integer(), server_default="0", nullable=False),
            sa.Column("lifetime_redeemed", sa.Integer(), server_default="0", nullable=False),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.text("now()"), nullable=True),
            sa.Column("updated_at", sa.TIMESTAMP(), server_default=sa.text("now()"), nullable=True),
            sa.CheckConstraint("balance >= 0", name="ck_wallets_balance_non_negative"),
            sa.CheckConstraint("redeemed_balance >= 0", name="ck_wallets_redeemed_balance_non_negative"),
        )

    existing_indexes = {ix["name"] for ix in inspector.get_indexes("wallets")}
    if "ix_wallets_user_id" not in existing_indexes:
        op.create_index("ix_wallets_user_id", "wallets", ["user_id"], unique=True)

    if not inspector.has_table("wallet_transactions"):
        op.create_table(
            "wallet_transactions",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
            sa.Column("wallet_id", sa.Integer(), sa.ForeignKey("wallets.id", ondelete="CASCADE"), nullable=False),
            sa.Column("amount", sa.Integer(), nullable=False),
            sa.Column("transaction_type", sa.String(length=20), nullable=False),
            sa.Column("reference_type", sa.String(length=50), nullable=True),
            sa.Column("reference_id", sa.Integer(), nullable=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("expires_at", sa.TIMESTAMP(), nullable=True),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.text("now()"), nullable=True),
        )

    existing_indexes = {ix["name"] for ix in inspector.get_indexes("wallet_transactions")}
    if "ix_wallet_transactions_wallet_created" not in existing_indexes:
        op.create_index(
            "ix_wallet_transactions_wallet_created",
            "wallet_transactions",
            ["wallet_id", "created_at"],
        )
    if "ix_wallet_transactions_type_expires" not in existing_indexes:
        op.create_index(
            "ix_wallet_transactions_type_expires",
            "wallet_transactions",
            ["transaction_type", "expires_at"],
        )
    if "uq_wallet_transactions_expired_reference" not in existing_indexes:
        op.create_index(
            "uq_wallet_transactions_expired_reference",
            "wallet_transactions",
            ["reference_id"],
            unique=True,
            postgresql_where=sa.text("transaction_type = 'EXPIRED'"),
        )


def downgrade() -> None:
    """Downgrade schema."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if inspector.has_table("wallet_transactions"):
        op.drop_table("wallet_transactions")

    if inspector.has_table("wallets"):
        existing_indexes = {ix["name"] for ix in inspector.get_indexes("wallets")}
        if "ix_wallets_user_id" in existing_indexes:
            op.drop_index("ix_wallets_user_id", table_name="wallets")
        op.drop_table("wallets")

    if inspector.has_table("wallet_settings"):
        op.drop_table("wallet_settings")
