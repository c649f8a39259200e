"""create queue_items and jobs tables

Revision ID: 3b7c1e9d2a41
Revises:
Create Date: 2026-10-19 09:12:40.318264

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3b7c1e9d2a41"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _record_columns() -> list[sa.Column]:
    """Columns shared by queue items and jobs."""
    return [
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column("work_type", sa.Text, nullable=False, comment="Work type discriminator"),
        sa.Column(
            "payload",
            sa.JSON,
            nullable=False,
            comment="Work-type-specific data for the processor",
        ),
        sa.Column(
            "attempts",
            sa.SmallInteger,
            nullable=False,
            server_default="0",
            comment="Processing attempts made",
        ),
        sa.Column(
            "max_attempts",
            sa.SmallInteger,
            nullable=False,
            comment="Attempts after which failure is final",
        ),
        # Claim coordination
        sa.Column("claim_token", sa.Text, nullable=True, comment="Token of the current claim"),
        sa.Column(
            "last_attempt_at",
            sa.TIMESTAMP(timezone=True),
            nullable=True,
            comment="When the item was last claimed",
        ),
        sa.Column("error_message", sa.Text, nullable=True, comment="Last failure or skip reason"),
        sa.Column(
            "idempotency_key",
            sa.Text,
            nullable=True,
            comment="Producer-supplied deduplication key",
        ),
        # Timestamps
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "completed_at",
            sa.TIMESTAMP(timezone=True),
            nullable=True,
            comment="When a terminal state was reached",
        ),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "queue_items",
        *_record_columns(),
        sa.Column(
            "status",
            sa.Text,
            nullable=False,
            server_default="PENDING",
            comment="PENDING|PROCESSING|SENT|SKIPPED|FAILED",
        ),
        sa.CheckConstraint(
            "status IN ('PENDING', 'PROCESSING', 'SENT', 'SKIPPED', 'FAILED')",
            name="queue_items_status_check",
        ),
        sa.CheckConstraint("max_attempts >= 1", name="queue_items_max_attempts_check"),
        sa.UniqueConstraint(
            "work_type", "idempotency_key", name="uq_queue_items_idempotency_key"
        ),
    )
    op.create_index(
        "ix_queue_items_claim", "queue_items", ["work_type", "status", "created_at"]
    )

    op.create_table(
        "jobs",
        *_record_columns(),
        sa.Column(
            "status",
            sa.Text,
            nullable=False,
            server_default="queued",
            comment="queued|processing|done|failed|canceled",
        ),
        sa.Column(
            "progress",
            sa.Integer,
            nullable=False,
            server_default="0",
            comment="Progress percentage 0-100",
        ),
        sa.Column("result", sa.JSON, nullable=True, comment="Generated asset description"),
        sa.Column("error_code", sa.Text, nullable=True, comment="Structured error identifier"),
        sa.CheckConstraint(
            "status IN ('queued', 'processing', 'done', 'failed', 'canceled')",
            name="jobs_status_check",
        ),
        sa.CheckConstraint("progress BETWEEN 0 AND 100", name="jobs_progress_check"),
        sa.CheckConstraint("max_attempts >= 1", name="jobs_max_attempts_check"),
        sa.UniqueConstraint("work_type", "idempotency_key", name="uq_jobs_idempotency_key"),
    )
    op.create_index("ix_jobs_claim", "jobs", ["work_type", "status", "created_at"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_jobs_claim", table_name="jobs")
    op.drop_table("jobs")
    op.drop_index("ix_queue_items_claim", table_name="queue_items")
    op.drop_table("queue_items")
