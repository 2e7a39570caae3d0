"""create comment table

Revision ID: 5b1e7c2a9d40
Revises:
Create Date: 2026-10-17 09:12:41.518204

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5b1e7c2a9d40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the table shared by pending actions and published comments."""
    op.create_table(
        "comment",
        sa.Column("id", sa.CHAR(length=36), nullable=False),
        sa.Column("correlation_token", sa.CHAR(length=36), nullable=True),
        sa.Column("token_issued_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("owner_id", sa.Text(), nullable=True),
        sa.Column("owner_name", sa.Text(), nullable=False),
        sa.Column("owner_profile_url", sa.Text(), nullable=False),
        sa.Column("owner_avatar_url", sa.Text(), nullable=False),
        sa.Column("target_post_id", sa.Text(), nullable=True),
        sa.Column("target_comment_id", sa.CHAR(length=36), nullable=True),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "edited_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column("deadline", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("correlation_token"),
    )
    op.create_index("ix_comment_owner_id", "comment", ["owner_id"])
    op.create_index("ix_comment_target_post_id", "comment", ["target_post_id"])
    op.create_index("ix_comment_deadline", "comment", ["deadline"])


def downgrade() -> None:
    """Drop the comment table."""
    op.drop_index("ix_comment_deadline", table_name="comment")
    op.drop_index("ix_comment_target_post_id", table_name="comment")
    op.drop_index("ix_comment_owner_id", table_name="comment")
    op.drop_table("comment")
