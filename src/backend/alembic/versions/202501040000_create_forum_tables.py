"""Create threads and replies tables

Revision ID: 202501040000
Revises: 
Create Date: 2025-01-04 00:00:00.000000

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "202501040000"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "threads",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_threads_created_at", "threads", ["created_at"], unique=False)

    op.create_table(
        "replies",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("thread_id", sa.Integer(), sa.ForeignKey("threads.id"), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_replies_thread_id_created_at", "replies", ["thread_id", "created_at"], unique=False
    )


def downgrade() -> None:
    op.drop_index("ix_replies_thread_id_created_at", table_name="replies")
    op.drop_table("replies")
    op.drop_index("ix_threads_created_at", table_name="threads")
    op.drop_table("threads")
