"""create user_cookie_consent table

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2024-09-02 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "a1b2c3d4e5f6"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "user_cookie_consent",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("consent_data", sa.JSON(), nullable=False),
        sa.Column(
            "consent_date",
            sa.DateTime(),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("expiration_date", sa.DateTime(), nullable=False),
        # IPv6 addresses can be up to 39 chars; 45 allows for mapped IPv4 addresses
        sa.Column("ip", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.String(255), nullable=True),
        sa.Column("uuid", sa.String(36), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
    )
    op.create_index("uuid_idx", "user_cookie_consent", ["uuid"])
    op.create_index("idx_cookie_consent_date", "user_cookie_consent", ["consent_date"])


def downgrade() -> None:
    op.drop_index("idx_cookie_consent_date", table_name="user_cookie_consent")
    op.drop_index("uuid_idx", table_name="user_cookie_consent")
    op.drop_table("user_cookie_consent")
