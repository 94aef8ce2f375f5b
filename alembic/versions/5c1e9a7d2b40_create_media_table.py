"""create_media_table

Revision ID: 5c1e9a7d2b40
Revises:
Create Date: 2026-09-02 10:14:51.402117

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5c1e9a7d2b40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "media",
        sa.Column("media_id", sa.String(), nullable=False),
        sa.Column("storage_id", sa.String(), nullable=False),
        sa.Column("filename", sa.String(), nullable=False),
        sa.Column("media_type", sa.String(), nullable=False),
        sa.Column("duration", sa.Float(), nullable=True),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column(
            "has_thumbnails", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(), server_default=sa.text("(CURRENT_TIMESTAMP)")
        ),
        sa.Column(
            "updated_at", sa.DateTime(), server_default=sa.text("(CURRENT_TIMESTAMP)")
        ),
        sa.PrimaryKeyConstraint("media_id"),
    )
    op.create_index("ix_media_storage_id", "media", ["storage_id"], unique=True)
    op.create_index("ix_media_media_type", "media", ["media_type"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_media_media_type", table_name="media")
    op.drop_index("ix_media_storage_id", table_name="media")
    op.drop_table("media")
