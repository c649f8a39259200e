"""
Queue engine models: notification queue items and generation jobs.
"""

from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    TIMESTAMP,
    CheckConstraint,
    Index,
    Integer,
    SmallInteger,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from api.infra.database import Base


class QueueItemStatus(str, Enum):
    """Queue item status enumeration."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SENT = "SENT"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"


class JobStatus(str, Enum):
    """Job status enumeration."""

    QUEUED = "queued"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"
    CANCELED = "canceled"


QUEUE_ITEM_TERMINAL = frozenset(
    {QueueItemStatus.SENT, QueueItemStatus.SKIPPED, QueueItemStatus.FAILED}
)
JOB_TERMINAL = frozenset({JobStatus.DONE, JobStatus.FAILED, JobStatus.CANCELED})


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive timestamps; every stored timestamp is UTC."""
    return value if value.tzinfo else value.replace(tzinfo=UTC)


class QueueRecordMixin:
    """Columns shared by queue items and jobs."""

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    work_type: Mapped[str] = mapped_column(
        Text, nullable=False, comment="Work type discriminator"
    )
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        comment="Work-type-specific data for the processor",
    )
    attempts: Mapped[int] = mapped_column(
        SmallInteger, nullable=False, default=0, comment="Processing attempts made"
    )
    max_attempts: Mapped[int] = mapped_column(
        SmallInteger, nullable=False, comment="Attempts after which failure is final"
    )

    # Claim coordination
    claim_token: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Token of the current claim"
    )
    last_attempt_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True, comment="When the item was last claimed"
    )

    error_message: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Last failure or skip reason"
    )
    idempotency_key: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Producer-supplied deduplication key"
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True, comment="When a terminal state was reached"
    )

    def is_claim_stale(self, claim_timeout_s: int, now: datetime) -> bool:
        """Check if a PROCESSING claim outlived the claim timeout."""
        if self.claim_token is None or self.last_attempt_at is None:
            return False
        return as_utc(self.last_attempt_at) < now - timedelta(seconds=claim_timeout_s)

    def attempts_remaining(self) -> int:
        return max(0, self.max_attempts - self.attempts)


class QueueItem(QueueRecordMixin, Base):
    """
    One unit of notification work.

    Producers insert PENDING items; the dispatcher claims them and records
    SENT, SKIPPED or FAILED. Failed attempts go back to PENDING until
    max_attempts is reached.
    """

    __tablename__ = "queue_items"

    status: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=QueueItemStatus.PENDING.value,
        comment="PENDING|PROCESSING|SENT|SKIPPED|FAILED",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'PROCESSING', 'SENT', 'SKIPPED', 'FAILED')",
            name="queue_items_status_check",
        ),
        CheckConstraint("max_attempts >= 1", name="queue_items_max_attempts_check"),
        UniqueConstraint(
            "work_type", "idempotency_key", name="uq_queue_items_idempotency_key"
        ),
        Index("ix_queue_items_claim", "work_type", "status", "created_at"),
    )

    def is_terminal(self) -> bool:
        return QueueItemStatus(self.status) in QUEUE_ITEM_TERMINAL


class Job(QueueRecordMixin, Base):
    """
    Long-running generation job with observable progress.

    Progress only moves forward while the job is active, and result is only
    set once the job is done. Canceling flips status when the job is not
    terminal; in-flight provider calls are left to finish and their result
    is discarded.
    """

    __tablename__ = "jobs"

    status: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=JobStatus.QUEUED.value,
        comment="queued|processing|done|failed|canceled",
    )
    progress: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Progress percentage 0-100"
    )
    result: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True, comment="Generated asset description"
    )
    error_code: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Structured error identifier"
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('queued', 'processing', 'done', 'failed', 'canceled')",
            name="jobs_status_check",
        ),
        CheckConstraint("progress BETWEEN 0 AND 100", name="jobs_progress_check"),
        CheckConstraint("max_attempts >= 1", name="jobs_max_attempts_check"),
        UniqueConstraint("work_type", "idempotency_key", name="uq_jobs_idempotency_key"),
        Index("ix_jobs_claim", "work_type", "status", "created_at"),
    )

    def is_terminal(self) -> bool:
        return JobStatus(self.status) in JOB_TERMINAL
