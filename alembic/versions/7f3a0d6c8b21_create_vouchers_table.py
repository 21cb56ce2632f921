from alembic import op
import sqlalchemy as sa


revision = "7f3a0d6c8b21"
down_revision = "5e1b7c2a9d40"
branch_labels = None
depends_on = None


def _table_exists(bind, table_name: str) -> bool:
    insp = sa.inspect(bind)
    return table_name in insp.get_table_names()


def upgrade() -> None:
    bind = op.get_bind()

    if not _table_exists(bind, "vouchers"):
        op.create_table(
            "vouchers",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
            sa.Column("code", sa.String(length=32), nullable=False),
            sa.Column("initial_value", sa.Integer(), nullable=False),
            sa.Column("current_balance", sa.Integer(), nullable=False),
            sa.Column("issued_to", sa.Integer(), nullable=False),
            sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
            sa.Column("expiry_date", sa.TIMESTAMP(), nullable=True),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.text("now()"), nullable=True),
            sa.Column("last_used", sa.TIMESTAMP(), nullable=True),
            sa.UniqueConstraint("code", name="uq_vouchers_code"),
        )

    insp = sa.inspect(bind)
    indexes = {ix["name"] for ix in insp.get_indexes("vouchers")} if _table_exists(bind, "vouchers") else set()
    if "ix_vouchers_issued_to" not in indexes:
        op.create_index("ix_vouchers_issued_to", "vouchers", ["issued_to"])


def downgrade() -> None:
    bind = op.get_bind()

    if _table_exists(bind, "vouchers"):
        insp = sa.inspect(bind)
        indexes = {ix["name"] for ix in insp.get_indexes("vouchers")}
        if "ix_vouchers_issued_to" in indexes:
            op.drop_index("ix_vouchers_issued_to", table_name="vouchers")

        op.drop_table("vouchers")
