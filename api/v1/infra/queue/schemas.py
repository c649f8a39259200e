"""
Queue engine Pydantic schemas.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class EnqueueRequest(BaseModel):
    """Schema for enqueueing a queue item or creating a job."""

    work_type: str = Field(..., min_length=1, description="Work type identifier")
    payload: dict[str, Any] = Field(
        default_factory=dict, description="Data handed to the processor"
    )
    max_attempts: int = Field(
        ..., ge=1, le=25, description="Attempts after which failure is final"
    )
    idempotency_key: str | None = Field(
        default=None,
        min_length=1,
        description="Producer key; repeated keys return the existing record",
    )


class EnqueueResponse(BaseModel):
    """Schema for enqueue responses."""

    id: UUID
    status: str
    deduplicated: bool = Field(
        default=False, description="Whether an existing record was returned"
    )


class QueueItemResponse(BaseModel):
    """Schema for queue item API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    work_type: str
    payload: dict[str, Any]
    status: str
    attempts: int
    max_attempts: int
    error_message: str | None = None
    idempotency_key: str | None = None
    created_at: datetime
    updated_at: datetime
    last_attempt_at: datetime | None = None
    completed_at: datetime | None = None


class QueueItemListResponse(BaseModel):
    """Schema for queue item listings."""

    items: list[QueueItemResponse]
    total: int
    limit: int
    offset: int


class JobResponse(QueueItemResponse):
    """Schema for full job records in operator listings."""

    progress: int
    result: dict[str, Any] | None = None
    error_code: str | None = None


class JobListResponse(BaseModel):
    """Schema for job listings."""

    items: list[JobResponse]
    total: int
    limit: int
    offset: int


class QueueStatsResponse(BaseModel):
    """Schema for queue statistics."""

    total: int
    by_status: dict[str, int]
    by_work_type: dict[str, int]
    queue_depth: int  # pending + processing
    stale_claims: int


class DispatchSummary(BaseModel):
    """Outcome counts of one dispatch run."""

    work_type: str
    processed: int = 0
    succeeded: int = 0
    skipped: int = 0
    retried: int = 0
    failed: int = 0
    discarded: int = Field(
        default=0, description="Results dropped because the claim was no longer held"
    )
    abandoned: int = Field(
        default=0, description="Abandoned claims failed before claiming"
    )


class PurgeResponse(BaseModel):
    deleted: int
    retention_days: int


class JobError(BaseModel):
    message: str
    code: str


class JobStatusResponse(BaseModel):
    """Projection of a job for status polling."""

    job_id: UUID
    work_type: str
    status: str
    progress: int
    attempts: int
    max_attempts: int
    result: dict[str, Any] | None = None
    error: JobError | None = None
    updated_at: datetime


class JobCancelRequest(BaseModel):
    job_id: UUID


class JobCancelResponse(BaseModel):
    job_id: UUID
    status: str
    previous_status: str
