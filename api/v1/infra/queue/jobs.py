"""
Long-running generation jobs: dispatching with progress, status projection
and cooperative cancellation.
"""

from collections.abc import Awaitable
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.config.logging import get_logger
from api.config.settings import Settings
from api.v1.core.registries import Registry, job_processor_registry
from api.v1.infra.queue.dispatcher import Dispatcher
from api.v1.infra.queue.models import Job, JobStatus
from api.v1.infra.queue.retry import JOB_RETRY, RetryPolicy
from api.v1.infra.queue.schemas import (
    DispatchSummary,
    JobCancelResponse,
    JobError,
    JobStatusResponse,
)
from api.v1.infra.queue.store import JobStore
from api.v1.infra.queue.types import Outcome, ProcessResult

logger = get_logger(__name__)


class JobDispatcher(Dispatcher):
    """
    Dispatcher for jobs.

    Processors get a progress callback. Every write, including progress, is
    guarded by the claim token, so once a cancel is recorded the in-flight
    provider call can finish but its result is dropped and the job stays
    CANCELED.
    """

    def __init__(
        self,
        settings: Settings,
        store: JobStore | None = None,
        registry: Registry | None = None,
        retry_policy: RetryPolicy = JOB_RETRY,
    ):
        super().__init__(
            settings,
            store=store or JobStore(settings),
            registry=registry if registry is not None else job_processor_registry,
            retry_policy=retry_policy,
        )

    def _invoke(self, processor: Any, item: Any, session: AsyncSession) -> Awaitable[Any]:
        job_id, claim_token = item.id, item.claim_token
        # A timeout can cancel a progress write mid-commit, so it never shares
        # the dispatch session
        progress_sessions = async_sessionmaker(bind=session.bind, expire_on_commit=False)

        async def report_progress(progress: int) -> None:
            async with progress_sessions() as progress_session:
                await self.store.report_progress(
                    progress_session, job_id, claim_token, progress
                )

        return processor.process(item.payload, report_progress)

    async def _record(
        self,
        session: AsyncSession,
        item: Any,
        result: ProcessResult,
        summary: DispatchSummary,
    ) -> bool:
        job_logger = logger.bind(job_id=str(item.id), attempt=item.attempts)

        if result.outcome == Outcome.SUCCESS:
            applied = await self.store.update_status(
                session,
                item.id,
                JobStatus.DONE.value,
                claim_token=item.claim_token,
                progress=100,
                result=result.result or {},
                error_message=None,
                error_code=None,
            )
            if applied:
                summary.succeeded += 1
                job_logger.info("Job done")
        elif result.outcome == Outcome.SKIP:
            applied = await self.store.update_status(
                session,
                item.id,
                JobStatus.FAILED.value,
                claim_token=item.claim_token,
                error_message=result.detail or "Job not applicable",
                error_code="NOT_APPLICABLE",
            )
            if applied:
                summary.skipped += 1
                job_logger.info("Job not applicable", reason=result.detail)
        else:
            reason = result.detail or "Provider reported failure"
            next_status = self.retry_policy.decide(item)
            retrying = next_status == self.retry_policy.retry_status
            applied = await self.store.update_status(
                session,
                item.id,
                next_status,
                claim_token=item.claim_token,
                error_message=reason,
                error_code="RETRY_SCHEDULED" if retrying else "PROVIDER_ERROR",
            )
            if applied and retrying:
                summary.retried += 1
                job_logger.warning("Job failed, will retry", error=reason)
            elif applied:
                summary.failed += 1
                job_logger.error("Job failed permanently", error=reason)

        if not applied:
            current = await self.store.get(session, item.id)
            if current.status == JobStatus.CANCELED.value:
                job_logger.info("Job canceled while processing, result discarded")
        return applied


class JobStatusProjector:
    """Read side of jobs for status polling, plus cancellation."""

    def __init__(self, settings: Settings, store: JobStore | None = None):
        self.settings = settings
        self.store = store or JobStore(settings)

    @staticmethod
    def project(job: Job) -> JobStatusResponse:
        """Build the polling view: result only when done, error only when failed."""
        error = None
        if job.status == JobStatus.FAILED.value:
            error = JobError(
                message=job.error_message or "Unknown error",
                code=job.error_code or "PROVIDER_ERROR",
            )

        return JobStatusResponse(
            job_id=job.id,
            work_type=job.work_type,
            status=job.status,
            progress=job.progress,
            attempts=job.attempts,
            max_attempts=job.max_attempts,
            result=job.result if job.status == JobStatus.DONE.value else None,
            error=error,
            updated_at=job.updated_at,
        )

    async def get_status(self, session: AsyncSession, job_id: UUID) -> JobStatusResponse:
        job = await self.store.get(session, job_id)
        return self.project(job)

    async def cancel(self, session: AsyncSession, job_id: UUID) -> JobCancelResponse:
        """
        Request cancellation.

        Raises NotFoundError for unknown jobs and JobAlreadyTerminalError when
        the job is already done, failed or canceled.
        """
        previous_status, status = await self.store.cancel(session, job_id)
        return JobCancelResponse(
            job_id=job_id, status=status, previous_status=previous_status
        )
