"""
Atomic claiming of queue items and jobs.

A claim is a single conditional UPDATE ... RETURNING over a FIFO candidate
subquery. Rows another dispatcher claimed first no longer match the
candidate predicate, so two overlapping dispatch runs never receive the same
row. PostgreSQL additionally skips rows locked by a concurrent claim instead
of waiting on them.
"""

import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from api.config.logging import get_logger
from api.v1.infra.queue.models import Job, JobStatus, QueueItem, QueueItemStatus
from api.v1.infra.queue.types import Clock, utcnow

logger = get_logger(__name__)


@dataclass(frozen=True)
class ClaimSpec:
    """Status vocabulary of one claimable table."""

    model: type
    pending: str
    processing: str
    failed: str
    abandoned_values: dict[str, Any] = field(default_factory=dict)


QUEUE_ITEM_CLAIM = ClaimSpec(
    model=QueueItem,
    pending=QueueItemStatus.PENDING.value,
    processing=QueueItemStatus.PROCESSING.value,
    failed=QueueItemStatus.FAILED.value,
)

JOB_CLAIM = ClaimSpec(
    model=Job,
    pending=JobStatus.QUEUED.value,
    processing=JobStatus.PROCESSING.value,
    failed=JobStatus.FAILED.value,
    abandoned_values={"error_code": "CLAIM_TIMEOUT"},
)


def new_claim_token() -> str:
    return uuid.uuid4().hex


class ClaimStrategy:
    """Claims FIFO batches and retires abandoned claims for one table."""

    def __init__(self, spec: ClaimSpec, claim_timeout_s: int, clock: Clock = utcnow):
        self.spec = spec
        self.claim_timeout_s = claim_timeout_s
        self.clock = clock

    def _stale_cutoff(self):
        return self.clock() - timedelta(seconds=self.claim_timeout_s)

    def _claimable(self, work_type: str, stale_cutoff):
        model = self.spec.model
        return and_(
            model.work_type == work_type,
            model.attempts < model.max_attempts,
            or_(
                model.status == self.spec.pending,
                and_(
                    model.status == self.spec.processing,
                    model.last_attempt_at < stale_cutoff,
                ),
            ),
        )

    async def claim_batch(
        self, session: AsyncSession, work_type: str, limit: int
    ) -> list[Any]:
        """
        Move up to limit claimable rows to PROCESSING in one statement.

        Each claimed row gets a fresh claim token, attempts + 1 and
        last_attempt_at = now. Rows are returned oldest first.
        """
        if limit <= 0:
            return []

        model = self.spec.model
        now = self.clock()
        claimable = self._claimable(work_type, now - timedelta(seconds=self.claim_timeout_s))
        token = new_claim_token()

        candidates = (
            select(model.id)
            .where(claimable)
            .order_by(model.created_at, model.id)
            .limit(limit)
        )
        if session.get_bind().dialect.name == "postgresql":
            candidates = candidates.with_for_update(skip_locked=True)

        # The outer predicate re-checks claimability so a row claimed by a
        # concurrent statement after the subquery ran is left alone
        claim = (
            update(model)
            .where(model.id.in_(candidates.scalar_subquery()), claimable)
            .values(
                status=self.spec.processing,
                claim_token=token,
                attempts=model.attempts + 1,
                last_attempt_at=now,
                updated_at=now,
            )
            .returning(model)
            .execution_options(synchronize_session=False, populate_existing=True)
        )

        result = await session.execute(claim)
        claimed = list(result.scalars().all())
        await session.commit()

        claimed.sort(key=lambda row: (row.created_at, row.id))

        if claimed:
            logger.info(
                "Claimed batch",
                table=model.__tablename__,
                work_type=work_type,
                claimed=len(claimed),
                ids=[str(row.id) for row in claimed],
            )

        return claimed

    async def fail_abandoned(self, session: AsyncSession, work_type: str) -> int:
        """
        Fail abandoned claims that have no attempts left.

        Abandoned claims with attempts remaining are picked up again by
        claim_batch instead.
        """
        model = self.spec.model
        now = self.clock()

        query = (
            update(model)
            .where(
                and_(
                    model.work_type == work_type,
                    model.status == self.spec.processing,
                    model.last_attempt_at < now - timedelta(seconds=self.claim_timeout_s),
                    model.attempts >= model.max_attempts,
                )
            )
            .values(
                status=self.spec.failed,
                claim_token=None,
                error_message=(
                    f"Processing claim abandoned for over {self.claim_timeout_s}s "
                    "with no attempts remaining"
                ),
                completed_at=now,
                updated_at=now,
                **self.spec.abandoned_values,
            )
            .returning(model.id)
            .execution_options(synchronize_session=False)
        )

        result = await session.execute(query)
        failed_ids = list(result.scalars().all())
        await session.commit()

        if failed_ids:
            logger.warning(
                "Failed abandoned claims",
                table=model.__tablename__,
                work_type=work_type,
                count=len(failed_ids),
                claim_timeout_s=self.claim_timeout_s,
            )

        return len(failed_ids)

    async def count_stale(self, session: AsyncSession, work_type: str | None = None) -> int:
        """Count PROCESSING rows whose claim outlived the timeout."""
        model = self.spec.model
        query = select(func.count(model.id)).where(
            model.status == self.spec.processing,
            model.last_attempt_at < self._stale_cutoff(),
        )
        if work_type:
            query = query.where(model.work_type == work_type)

        result = await session.execute(query)
        return result.scalar() or 0
