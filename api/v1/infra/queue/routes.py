"""
Queue and job API endpoints.

Producers enqueue items and create jobs, schedulers hit the dispatch
triggers, and clients poll job status. Dispatch triggers are safe to call
repeatedly: each call processes at most one bounded batch.
"""

from dataclasses import asdict
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.config.settings import Settings, SettingsDep
from api.infra.database import get_session
from api.v1.core.exceptions import create_success_response
from api.v1.infra.queue.dispatcher import Dispatcher
from api.v1.infra.queue.jobs import JobDispatcher, JobStatusProjector
from api.v1.infra.queue.models import JobStatus, QueueItemStatus
from api.v1.infra.queue.schemas import (
    EnqueueRequest,
    EnqueueResponse,
    JobCancelRequest,
    JobListResponse,
    JobResponse,
    PurgeResponse,
    QueueItemListResponse,
    QueueItemResponse,
    QueueStatsResponse,
)
from api.v1.infra.queue.store import JobStore, QueueItemStore

queue_router = APIRouter(prefix="/queue", tags=["queue"])
jobs_router = APIRouter(prefix="/jobs", tags=["jobs"])


# Queue items


@queue_router.post("/items", response_model=dict, status_code=201)
async def enqueue_item(
    request: EnqueueRequest,
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Enqueue a queue item."""
    store = QueueItemStore(settings)
    result = await store.enqueue(
        session,
        request.work_type,
        request.payload,
        request.max_attempts,
        request.idempotency_key,
    )
    message = "Item already enqueued" if result.deduplicated else "Item enqueued"
    response = EnqueueResponse(**asdict(result))
    return create_success_response(data=response.model_dump(mode="json"), message=message)


@queue_router.get("/items", response_model=dict)
async def list_items(
    work_type: str | None = Query(default=None, description="Filter by work type"),
    status: list[QueueItemStatus] | None = Query(
        default=None, description="Filter by status"
    ),
    limit: int = Query(default=50, ge=1, le=500, description="Maximum results"),
    offset: int = Query(default=0, ge=0, description="Results offset"),
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """List queue items, newest first."""
    store = QueueItemStore(settings)
    items, total = await store.list_records(
        session,
        work_type=work_type,
        statuses=[s.value for s in status] if status else None,
        limit=limit,
        offset=offset,
    )

    response_data = QueueItemListResponse(
        items=[QueueItemResponse.model_validate(item) for item in items],
        total=total,
        limit=limit,
        offset=offset,
    )
    return create_success_response(data=response_data.model_dump(mode="json"))


@queue_router.get("/items/{item_id}", response_model=dict)
async def get_item(
    item_id: UUID,
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Get a queue item by ID."""
    item = await QueueItemStore(settings).get(session, item_id)
    return create_success_response(
        data=QueueItemResponse.model_validate(item).model_dump(mode="json")
    )


@queue_router.post("/items/{item_id}/requeue", response_model=dict)
async def requeue_item(
    item_id: UUID,
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Send a failed queue item back to PENDING with a fresh attempt budget."""
    item = await QueueItemStore(settings).requeue(session, item_id)
    return create_success_response(
        data=QueueItemResponse.model_validate(item).model_dump(mode="json"),
        message="Item requeued",
    )


@queue_router.api_route("/dispatch/{work_type}", methods=["GET", "POST"], response_model=dict)
async def dispatch_items(
    work_type: str,
    limit: int | None = Query(default=None, ge=1, description="Items to claim"),
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Run one dispatch for a work type."""
    summary = await Dispatcher(settings).dispatch(session, work_type, limit)
    return create_success_response(data=summary.model_dump())


@queue_router.get("/stats", response_model=dict)
async def get_queue_stats(
    work_type: str | None = Query(default=None, description="Limit to one work type"),
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Queue item counts by status and work type."""
    stats = await QueueItemStore(settings).stats(session, work_type)
    return create_success_response(data=QueueStatsResponse(**asdict(stats)).model_dump())


@queue_router.post("/maintenance/purge", response_model=dict)
async def purge_terminal(
    older_than_days: int | None = Query(
        default=None, ge=1, description="Retention window, defaults to settings"
    ),
    include_jobs: bool = Query(default=False, description="Also purge terminal jobs"),
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Delete terminal records older than the retention window."""
    deleted = await QueueItemStore(settings).purge(session, older_than_days)
    if include_jobs:
        deleted += await JobStore(settings).purge(session, older_than_days)

    response = PurgeResponse(
        deleted=deleted,
        retention_days=older_than_days or settings.queue_retention_days,
    )
    return create_success_response(data=response.model_dump())


# Jobs


@jobs_router.post("", response_model=dict, status_code=201)
async def create_job(
    request: EnqueueRequest,
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Create a QUEUED job."""
    result = await JobStore(settings).create(
        session,
        request.work_type,
        request.payload,
        request.max_attempts,
        request.idempotency_key,
    )
    return create_success_response(
        data=EnqueueResponse(**asdict(result)).model_dump(mode="json")
    )


@jobs_router.get("", response_model=dict)
async def list_jobs(
    work_type: str | None = Query(default=None, description="Filter by work type"),
    status: list[JobStatus] | None = Query(default=None, description="Filter by status"),
    limit: int = Query(default=50, ge=1, le=500, description="Maximum results"),
    offset: int = Query(default=0, ge=0, description="Results offset"),
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """List jobs, newest first."""
    jobs, total = await JobStore(settings).list_records(
        session,
        work_type=work_type,
        statuses=[s.value for s in status] if status else None,
        limit=limit,
        offset=offset,
    )

    response_data = JobListResponse(
        items=[JobResponse.model_validate(job) for job in jobs],
        total=total,
        limit=limit,
        offset=offset,
    )
    return create_success_response(data=response_data.model_dump(mode="json"))


@jobs_router.post("/cancel", response_model=dict)
async def cancel_job_by_body(
    request: JobCancelRequest,
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Cancel a job given {"job_id": ...}."""
    response = await JobStatusProjector(settings).cancel(session, request.job_id)
    return create_success_response(data=response.model_dump(mode="json"))


@jobs_router.api_route("/dispatch/{work_type}", methods=["GET", "POST"], response_model=dict)
async def dispatch_jobs(
    work_type: str,
    limit: int | None = Query(default=None, ge=1, description="Jobs to claim"),
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Run one job dispatch for a work type."""
    summary = await JobDispatcher(settings).dispatch(session, work_type, limit)
    return create_success_response(data=summary.model_dump())


@jobs_router.get("/{job_id}", response_model=dict)
async def get_job_status(
    job_id: UUID,
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Status projection polled by clients."""
    status = await JobStatusProjector(settings).get_status(session, job_id)
    return create_success_response(data=status.model_dump(mode="json"))


@jobs_router.post("/{job_id}/cancel", response_model=dict)
async def cancel_job(
    job_id: UUID,
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Cancel a queued or processing job."""
    response = await JobStatusProjector(settings).cancel(session, job_id)
    return create_success_response(data=response.model_dump(mode="json"))


@jobs_router.post("/{job_id}/requeue", response_model=dict)
async def requeue_job(
    job_id: UUID,
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Send a failed job back to queued with progress and attempts reset."""
    job = await JobStore(settings).requeue(session, job_id)
    return create_success_response(
        data=JobResponse.model_validate(job).model_dump(mode="json"),
        message="Job requeued",
    )
