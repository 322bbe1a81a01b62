"""unique_redemption_per_user

Revision ID: c4d8e9f0a1b2
Revises: b7c1e2d3f4a5
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op


revision: str = "c4d8e9f0a1b2"
down_revision: Union[str, Sequence[str], None] = "b7c1e2d3f4a5"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_index(
        "uq_voucher_redemptions_voucher_user",
        "voucher_redemptions",
        ["voucher_id", "user_id"],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index("uq_voucher_redemptions_voucher_user", table_name="voucher_redemptions")
