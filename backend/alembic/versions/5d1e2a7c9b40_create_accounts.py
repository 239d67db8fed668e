"""create accounts

Revision ID: 5d1e2a7c9b40
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "5d1e2a7c9b40"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("email_normalized", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("role", sa.String(length=32), nullable=False, server_default="User"),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("verification_code", sa.String(length=16), nullable=True),
        sa.Column("verification_code_expires", sa.DateTime(timezone=True), nullable=True),
        sa.Column("password_reset_token", sa.String(length=128), nullable=True),
        sa.Column("password_reset_expires", sa.DateTime(timezone=True), nullable=True),
        sa.Column("oauth_provider", sa.String(length=32), nullable=True),
        sa.Column("oauth_subject", sa.String(length=255), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("oauth_provider", "oauth_subject", name="uq_accounts_external_identity"),
        sa.CheckConstraint(
            "(verification_code IS NULL) = (verification_code_expires IS NULL)",
            name="ck_accounts_verification_pair",
        ),
        sa.CheckConstraint(
            "(password_reset_token IS NULL) = (password_reset_expires IS NULL)",
            name="ck_accounts_reset_pair",
        ),
        sa.CheckConstraint(
            "(oauth_provider IS NULL) = (oauth_subject IS NULL)",
            name="ck_accounts_external_identity_pair",
        ),
    )
    op.create_index("ix_accounts_id", "accounts", ["id"], unique=False)
    op.create_index("ix_accounts_email_normalized", "accounts", ["email_normalized"], unique=True)
    op.create_index("ix_accounts_password_reset_token", "accounts", ["password_reset_token"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_accounts_password_reset_token", table_name="accounts")
    op.drop_index("ix_accounts_email_normalized", table_name="accounts")
    op.drop_index("ix_accounts_id", table_name="accounts")
    op.drop_table("accounts")
