"""Create consent log and consent option tables

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "a1b2c3d4e5f6"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # Create consent_logs table (append-only audit trail)
    op.create_table(
        "consent_logs",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), autoincrement=True, nullable=False),
        sa.Column("consent_id", sa.String(length=36), nullable=False),
        sa.Column("ip_hash", sa.String(length=64), nullable=False),
        sa.Column("categories", sa.Text(), nullable=False),
        sa.Column("policy_version", sa.String(length=20), nullable=False),
        sa.Column("action_type", sa.String(length=20), nullable=False),
        sa.Column("user_agent", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_consent_logs_consent_id", "consent_logs", ["consent_id"], unique=False)
    op.create_index("idx_consent_logs_ip_hash", "consent_logs", ["ip_hash"], unique=False)
    op.create_index("idx_consent_logs_created_at", "consent_logs", ["created_at"], unique=False)

    # Create consent_options table (JSON-encoded overrides)
    op.create_table(
        "consent_options",
        sa.Column("key", sa.String(length=100), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("key"),
    )


def downgrade() -> None:
    op.drop_table("consent_options")

    op.drop_index("idx_consent_logs_created_at", table_name="consent_logs")
    op.drop_index("idx_consent_logs_ip_hash", table_name="consent_logs")
    op.drop_index("idx_consent_logs_consent_id", table_name="consent_logs")
    op.drop_table("consent_logs")
