"""Create the decisions table.

Revision ID: 0001_decisions
Revises: 
Create Date: 2025-11-02 00:00:00.000000

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_decisions"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create the keyed decision table with its listing indexes."""
    op.create_table(
        "decisions",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("created_at", sa.String(length=32), nullable=False),
        sa.Column("updated_at", sa.String(length=32), nullable=False),
        sa.Column("prompt_version", sa.String(length=32), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
    )
    op.create_index("ix_decisions_created_at_id", "decisions", ["created_at", "id"])
    op.create_index("ix_decisions_updated_at", "decisions", ["updated_at"])


def downgrade() -> None:
    """Drop the decisions table."""
    op.drop_index("ix_decisions_updated_at", table_name="decisions")
    op.drop_index("ix_decisions_created_at_id", table_name="decisions")
    op.drop_table("decisions")
