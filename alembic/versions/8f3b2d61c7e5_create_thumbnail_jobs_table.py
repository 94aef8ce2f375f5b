"""create_thumbnail_jobs_table

Revision ID: 8f3b2d61c7e5
Revises: 5c1e9a7d2b40
Create Date: 2026-09-04 16:42:08.915530

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "8f3b2d61c7e5"
down_revision: str | Sequence[str] | None = "5c1e9a7d2b40"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "thumbnail_jobs",
        sa.Column("job_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("args", sa.JSON(), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_retries", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("checkpoint", sa.JSON(), nullable=True),
        sa.Column(
            "recovery_attempts", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("progress", sa.Float(), nullable=False, server_default="0"),
        sa.Column(
            "last_processed_index", sa.Integer(), nullable=False, server_default="-1"
        ),
        sa.Column("processed_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "stop_requested", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("queue_job_id", sa.String(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(), server_default=sa.text("(CURRENT_TIMESTAMP)")
        ),
        sa.Column(
            "updated_at", sa.DateTime(), server_default=sa.text("(CURRENT_TIMESTAMP)")
        ),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("job_id"),
    )

    # Reconciler scans active jobs by status
    op.create_index("ix_thumbnail_jobs_status", "thumbnail_jobs", ["status"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_thumbnail_jobs_status", table_name="thumbnail_jobs")
    op.drop_table("thumbnail_jobs")
