"""Create accounts table.

Revision ID: a0c1d2e3f4a5
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "a0c1d2e3f4a5"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _has_table(table: str) -> bool:
    bind = op.get_bind()
    return sa.inspect(bind).has_table(table)


INDEXED_COLUMNS = ("name", "is_active", "account_class", "email_verified", "deleted_at")


def upgrade() -> None:
    if _has_table("accounts"):
        return

    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("account_class", sa.String(16), nullable=False, server_default="panel"),
        sa.Column("reset_token", sa.String(255), nullable=True),
        sa.Column("reset_token_issued_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("verification_token", sa.String(255), nullable=True),
        sa.Column("verification_token_issued_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("provider", sa.String(50), nullable=True),
        sa.Column("provider_id", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("updated_by", sa.Integer(), nullable=True),
        sa.Column("deleted_by", sa.Integer(), nullable=True),
        sa.CheckConstraint("account_class IN ('dashboard', 'panel')", name="ck_accounts_account_class"),
        sa.UniqueConstraint("email", name="uq_accounts_email"),
        sa.UniqueConstraint("reset_token", name="uq_accounts_reset_token"),
        sa.UniqueConstraint("verification_token", name="uq_accounts_verification_token"),
        sa.UniqueConstraint("provider", "provider_id", name="uq_accounts_provider"),
    )
    for col in INDEXED_COLUMNS:
        op.create_index(f"ix_accounts_{col}", "accounts", [col])
    op.create_index("uq_accounts_email_lower", "accounts", [sa.text("lower(email)")], unique=True)


def downgrade() -> None:
    if not _has_table("accounts"):
        return
    op.drop_index("uq_accounts_email_lower", table_name="accounts")
    for col in INDEXED_COLUMNS:
        op.drop_index(f"ix_accounts_{col}", table_name="accounts")
    op.drop_table("accounts")
