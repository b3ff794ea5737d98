"""initial schema

Revision ID: 202602210001
Revises:
Create Date: 2026-02-21 00:00:01
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "202602210001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=150), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("refresh_token", sa.String(length=128), nullable=True),
        sa.Column("refresh_token_expires_at", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
        sa.UniqueConstraint("refresh_token"),
        sa.CheckConstraint(
            "(refresh_token IS NULL AND refresh_token_expires_at IS NULL) OR "
            "(refresh_token IS NOT NULL AND refresh_token_expires_at IS NOT NULL)",
            name="chk_refresh_token_pair",
        ),
    )
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_refresh_token", "users", ["refresh_token"])


def downgrade() -> None:
    op.drop_index("ix_users_refresh_token", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
