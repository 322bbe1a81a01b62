"""create_vouchers_tables

Revision ID: b7c1e2d3f4a5
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "b7c1e2d3f4a5"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "vouchers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("discount_type", sa.String(length=10), nullable=False),
        sa.Column("discount_value", sa.Integer(), nullable=False),
        sa.Column("max_discount_amount", sa.Integer(), nullable=True),
        sa.Column("minimum_order_value", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("usage_limit", sa.Integer(), nullable=False),
        sa.Column("used_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("applicable_user_groups", sa.JSON(), nullable=True),
        sa.Column("applicable_products", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_vouchers_id"), "vouchers", ["id"], unique=False)
    op.create_index(op.f("ix_vouchers_code"), "vouchers", ["code"], unique=True)
    op.create_index(op.f("ix_vouchers_start_date"), "vouchers", ["start_date"], unique=False)
    op.create_index(op.f("ix_vouchers_end_date"), "vouchers", ["end_date"], unique=False)
    op.create_index(op.f("ix_vouchers_is_active"), "vouchers", ["is_active"], unique=False)

    op.create_table(
        "voucher_redemptions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("voucher_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        sa.Column("order_value", sa.Integer(), nullable=False),
        sa.Column("discount_amount", sa.Integer(), nullable=False),
        sa.Column("final_amount", sa.Integer(), nullable=False),
        sa.Column("redeemed_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=True),
        sa.ForeignKeyConstraint(["voucher_id"], ["vouchers.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_voucher_redemptions_id"), "voucher_redemptions", ["id"], unique=False)
    op.create_index(op.f("ix_voucher_redemptions_voucher_id"), "voucher_redemptions", ["voucher_id"], unique=False)
    op.create_index(op.f("ix_voucher_redemptions_user_id"), "voucher_redemptions", ["user_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_voucher_redemptions_user_id"), table_name="voucher_redemptions")
    op.drop_index(op.f("ix_voucher_redemptions_voucher_id"), table_name="voucher_redemptions")
    op.drop_index(op.f("ix_voucher_redemptions_id"), table_name="voucher_redemptions")
    op.drop_table("voucher_redemptions")
    op.drop_index(op.f("ix_vouchers_is_active"), table_name="vouchers")
    op.drop_index(op.f("ix_vouchers_end_date"), table_name="vouchers")
    op.drop_index(op.f("ix_vouchers_start_date"), table_name="vouchers")
    op.drop_index(op.f("ix_vouchers_code"), table_name="vouchers")
    op.drop_index(op.f("ix_vouchers_id"), table_name="vouchers")
    op.drop_table("vouchers")
