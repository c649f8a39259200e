"""
Durable stores for queue items and jobs.

Stores own persistence only. Every write is a single conditional statement,
so callers never read a row and write it back.
"""

import uuid
from datetime import timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import delete, desc, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from api.config.logging import get_logger
from api.config.settings import Settings
from api.v1.core.exceptions import (
    InvalidStateError,
    JobAlreadyTerminalError,
    NotFoundError,
    ValidationError,
)
from api.v1.infra.queue.claim import JOB_CLAIM, QUEUE_ITEM_CLAIM, ClaimSpec, ClaimStrategy
from api.v1.infra.queue.models import (
    JOB_TERMINAL,
    QUEUE_ITEM_TERMINAL,
    Job,
    JobStatus,
    QueueItem,
    QueueItemStatus,
)
from api.v1.infra.queue.types import Clock, EnqueueResult, RecordStats, utcnow

logger = get_logger(__name__)


class RecordStore:
    """Persistence shared by the queue item and job tables."""

    claim_spec: ClaimSpec
    status_enum: type
    terminal_statuses: frozenset
    record_name: str
    not_found_code: str
    requeue_resets: dict[str, Any] = {}

    def __init__(self, settings: Settings, clock: Clock = utcnow):
        self.settings = settings
        self.clock = clock
        self.claims = ClaimStrategy(
            self.claim_spec, settings.queue_claim_timeout_s, clock
        )

    @property
    def model(self) -> Any:
        return self.claim_spec.model

    def _terminal_values(self) -> set[str]:
        return {status.value for status in self.terminal_statuses}

    async def enqueue(
        self,
        session: AsyncSession,
        work_type: str,
        payload: dict[str, Any],
        max_attempts: int,
        idempotency_key: str | None = None,
    ) -> EnqueueResult:
        """
        Insert a new pending record.

        When idempotency_key was already used for this work type the existing
        record is returned with deduplicated=True and nothing is inserted.
        """
        if not work_type or not work_type.strip():
            raise ValidationError("work_type is required")
        if max_attempts < 1:
            raise ValidationError(
                "max_attempts must be at least 1", details={"max_attempts": max_attempts}
            )

        if idempotency_key:
            existing = await self._find_by_key(session, work_type, idempotency_key)
            if existing:
                logger.info(
                    f"{self.record_name.capitalize()} deduplicated",
                    id=str(existing.id),
                    work_type=work_type,
                    idempotency_key=idempotency_key,
                )
                return EnqueueResult(
                    id=existing.id, status=existing.status, deduplicated=True
                )

        now = self.clock()
        record = self.model(
            id=uuid.uuid4(),
            work_type=work_type,
            payload=payload,
            status=self.claim_spec.pending,
            attempts=0,
            max_attempts=max_attempts,
            idempotency_key=idempotency_key,
            created_at=now,
            updated_at=now,
        )

        try:
            session.add(record)
            await session.commit()
        except IntegrityError:
            await session.rollback()
            # Another producer inserted the same key between our check and insert
            if idempotency_key:
                existing = await self._find_by_key(session, work_type, idempotency_key)
                if existing:
                    return EnqueueResult(
                        id=existing.id, status=existing.status, deduplicated=True
                    )
            raise

        logger.info(
            f"{self.record_name.capitalize()} enqueued",
            id=str(record.id),
            work_type=work_type,
            max_attempts=max_attempts,
            idempotency_key=idempotency_key,
        )

        return EnqueueResult(id=record.id, status=record.status, deduplicated=False)

    async def _find_by_key(
        self, session: AsyncSession, work_type: str, idempotency_key: str
    ) -> Any | None:
        result = await session.execute(
            select(self.model)
            .where(
                self.model.work_type == work_type,
                self.model.idempotency_key == idempotency_key,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get(self, session: AsyncSession, record_id: UUID) -> Any:
        """Return the current durable state of a record."""
        record = await session.get(self.model, record_id, populate_existing=True)
        if record is None:
            raise NotFoundError(
                f"{self.record_name.capitalize()} not found",
                details={"id": str(record_id)},
                error_code=self.not_found_code,
            )
        return record

    async def _exists(self, session: AsyncSession, record_id: UUID) -> bool:
        result = await session.execute(
            select(self.model.id).where(self.model.id == record_id)
        )
        return result.scalar_one_or_none() is not None

    async def update_status(
        self,
        session: AsyncSession,
        record_id: UUID,
        status: str,
        *,
        claim_token: str | None = None,
        **fields: Any,
    ) -> bool:
        """
        Set a record's status along with extra column values.

        With claim_token the write only applies while the record is still
        PROCESSING under that token; a lost claim returns False and leaves
        the row untouched.
        """
        status = self.status_enum(status).value
        now = self.clock()

        values: dict[str, Any] = {"status": status, "updated_at": now, **fields}
        if status != self.claim_spec.processing:
            values["claim_token"] = None
        if status in self._terminal_values():
            values.setdefault("completed_at", now)

        conditions = [self.model.id == record_id]
        if claim_token is not None:
            conditions += [
                self.model.claim_token == claim_token,
                self.model.status == self.claim_spec.processing,
            ]

        result = await session.execute(
            update(self.model)
            .where(*conditions)
            .values(**values)
            .returning(self.model.id)
            .execution_options(synchronize_session=False)
        )
        updated = result.scalar_one_or_none()
        await session.commit()

        if updated is None:
            if not await self._exists(session, record_id):
                raise NotFoundError(
                    f"{self.record_name.capitalize()} not found",
                    details={"id": str(record_id)},
                    error_code=self.not_found_code,
                )
            logger.warning(
                "Claim no longer held, update discarded",
                id=str(record_id),
                status=status,
            )
            return False

        return True

    async def list_pending(
        self, session: AsyncSession, work_type: str, limit: int
    ) -> list[Any]:
        """Pending records of a work type, oldest first."""
        result = await session.execute(
            select(self.model)
            .where(
                self.model.work_type == work_type,
                self.model.status == self.claim_spec.pending,
            )
            .order_by(self.model.created_at, self.model.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_records(
        self,
        session: AsyncSession,
        work_type: str | None = None,
        statuses: list[str] | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Any], int]:
        """Records for operator listings, newest first, with the total count."""
        base_query = select(self.model)
        if work_type:
            base_query = base_query.where(self.model.work_type == work_type)
        if statuses:
            base_query = base_query.where(self.model.status.in_(statuses))

        count_query = select(func.count()).select_from(base_query.subquery())
        total = (await session.execute(count_query)).scalar() or 0

        result = await session.execute(
            base_query.order_by(desc(self.model.created_at)).offset(offset).limit(limit)
        )
        return list(result.scalars().all()), total

    # Claim strategy

    async def claim_batch(
        self, session: AsyncSession, work_type: str, limit: int
    ) -> list[Any]:
        return await self.claims.claim_batch(session, work_type, limit)

    async def fail_abandoned(self, session: AsyncSession, work_type: str) -> int:
        return await self.claims.fail_abandoned(session, work_type)

    # Operator maintenance

    async def requeue(self, session: AsyncSession, record_id: UUID) -> Any:
        """Manually send a FAILED record back to pending with a fresh attempt budget."""
        now = self.clock()
        result = await session.execute(
            update(self.model)
            .where(
                self.model.id == record_id,
                self.model.status == self.claim_spec.failed,
            )
            .values(
                status=self.claim_spec.pending,
                attempts=0,
                claim_token=None,
                error_message=None,
                completed_at=None,
                updated_at=now,
                **self.requeue_resets,
            )
            .returning(self.model.id)
            .execution_options(synchronize_session=False)
        )
        requeued = result.scalar_one_or_none()
        await session.commit()

        if requeued is None:
            record = await self.get(session, record_id)
            raise InvalidStateError(
                f"Only failed {self.record_name}s can be requeued",
                details={"id": str(record_id), "status": record.status},
                error_code="NOT_FAILED",
            )

        logger.info(f"{self.record_name.capitalize()} requeued", id=str(record_id))
        return await self.get(session, record_id)

    async def stats(
        self, session: AsyncSession, work_type: str | None = None
    ) -> RecordStats:
        """Counts by status and work type, optionally for one work type."""
        base_filter = self.model.work_type == work_type if work_type else True

        status_result = await session.execute(
            select(self.model.status, func.count(self.model.id))
            .where(base_filter)
            .group_by(self.model.status)
        )
        by_status = dict(status_result.all())

        type_result = await session.execute(
            select(self.model.work_type, func.count(self.model.id))
            .where(base_filter)
            .group_by(self.model.work_type)
        )
        by_work_type = dict(type_result.all())

        queue_depth = by_status.get(self.claim_spec.pending, 0) + by_status.get(
            self.claim_spec.processing, 0
        )

        return RecordStats(
            total=sum(by_status.values()),
            by_status=by_status,
            by_work_type=by_work_type,
            queue_depth=queue_depth,
            stale_claims=await self.claims.count_stale(session, work_type),
        )

    async def purge(
        self, session: AsyncSession, older_than_days: int | None = None
    ) -> int:
        """Delete terminal records last updated before the retention window."""
        retention_days = older_than_days or self.settings.queue_retention_days
        cutoff = self.clock() - timedelta(days=retention_days)

        result = await session.execute(
            delete(self.model)
            .where(
                self.model.status.in_(self._terminal_values()),
                self.model.updated_at < cutoff,
            )
            .execution_options(synchronize_session=False)
        )
        deleted_count = result.rowcount
        await session.commit()

        if deleted_count > 0:
            logger.info(
                f"Purged old {self.record_name}s",
                deleted_count=deleted_count,
                retention_days=retention_days,
            )

        return deleted_count


class QueueItemStore(RecordStore):
    """Store for notification queue items."""

    claim_spec = QUEUE_ITEM_CLAIM
    status_enum = QueueItemStatus
    terminal_statuses = QUEUE_ITEM_TERMINAL
    record_name = "queue item"
    not_found_code = "ITEM_NOT_FOUND"


class JobStore(RecordStore):
    """Store for long-running generation jobs."""

    claim_spec = JOB_CLAIM
    status_enum = JobStatus
    terminal_statuses = JOB_TERMINAL
    record_name = "job"
    not_found_code = "JOB_NOT_FOUND"
    requeue_resets = {"progress": 0, "result": None, "error_code": None}

    async def create(
        self,
        session: AsyncSession,
        work_type: str,
        payload: dict[str, Any],
        max_attempts: int,
        idempotency_key: str | None = None,
    ) -> EnqueueResult:
        """Create a QUEUED job."""
        return await self.enqueue(
            session, work_type, payload, max_attempts, idempotency_key
        )

    async def report_progress(
        self, session: AsyncSession, job_id: UUID, claim_token: str, progress: int
    ) -> bool:
        """
        Raise a running job's progress; never lowers it.

        Returns False when the claim is gone (canceled or reclaimed).
        """
        progress = max(0, min(100, int(progress)))
        result = await session.execute(
            update(Job)
            .where(
                Job.id == job_id,
                Job.claim_token == claim_token,
                Job.status == JobStatus.PROCESSING.value,
                Job.progress < progress,
            )
            .values(progress=progress, updated_at=self.clock())
            .returning(Job.id)
            .execution_options(synchronize_session=False)
        )
        updated = result.scalar_one_or_none()
        await session.commit()
        if updated is not None:
            return True

        current = await self.get(session, job_id)
        return (
            current.status == JobStatus.PROCESSING.value
            and current.claim_token == claim_token
        )

    async def cancel(self, session: AsyncSession, job_id: UUID) -> tuple[str, str]:
        """
        Mark a job CANCELED unless it is already terminal.

        Returns (previous_status, new_status). The status check and the
        write are one statement, so a concurrent completion cannot be
        overwritten.
        """
        now = self.clock()
        previous = await self.get(session, job_id)
        previous_status = previous.status

        result = await session.execute(
            update(Job)
            .where(
                Job.id == job_id,
                Job.status.in_([JobStatus.QUEUED.value, JobStatus.PROCESSING.value]),
            )
            .values(
                status=JobStatus.CANCELED.value,
                claim_token=None,
                completed_at=now,
                updated_at=now,
            )
            .returning(Job.id)
            .execution_options(synchronize_session=False)
        )
        canceled = result.scalar_one_or_none()
        await session.commit()

        if canceled is None:
            current = await self.get(session, job_id)
            raise JobAlreadyTerminalError(job_id, current.status)

        logger.info("Job canceled", job_id=str(job_id), previous_status=previous_status)
        return previous_status, JobStatus.CANCELED.value
