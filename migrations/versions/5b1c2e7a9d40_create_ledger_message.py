"""create ledger_message

Revision ID: 5b1c2e7a9d40
Revises:
Create Date: 2026-10-19 09:12:44.318201

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5b1c2e7a9d40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the shared message table."""
    op.create_table(
        "ledger_message",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("sender", sa.String(length=255), nullable=False),
        sa.Column("receiver", sa.String(length=255), nullable=True),
        sa.Column("group_id", sa.String(length=255), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("timestamp", sa.BigInteger(), nullable=False),
        sa.Column("read_by", sa.JSON(), nullable=False),
        sa.Column("content_hash", sa.String(length=128), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_ledger_message_group_id", "ledger_message", ["group_id"])
    op.create_index(
        "ix_ledger_message_sender_receiver", "ledger_message", ["sender", "receiver"]
    )


def downgrade() -> None:
    """Drop the shared message table."""
    op.drop_index("ix_ledger_message_sender_receiver", table_name="ledger_message")
    op.drop_index("ix_ledger_message_group_id", table_name="ledger_message")
    op.drop_table("ledger_message")
