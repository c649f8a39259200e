"""
Batch dispatcher for queue items.

A dispatch run is triggered by a scheduler or an operator, claims one bounded
batch and drives each item through its processor sequentially, then returns.
There is no worker loop: how often runs happen is decided by whoever calls
the trigger.
"""

import asyncio
import uuid
from collections.abc import Awaitable
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from api.config.logging import bind_dispatch_context, clear_dispatch_context, get_logger
from api.config.settings import Settings
from api.v1.core.exceptions import NotFoundError
from api.v1.core.registries import Registry, processor_registry
from api.v1.infra.queue.models import QueueItemStatus
from api.v1.infra.queue.retry import QUEUE_ITEM_RETRY, RetryPolicy
from api.v1.infra.queue.schemas import DispatchSummary
from api.v1.infra.queue.store import QueueItemStore, RecordStore
from api.v1.infra.queue.types import Outcome, ProcessResult

logger = get_logger(__name__)


class Dispatcher:
    """Claims a batch of queue items and records each processor outcome."""

    def __init__(
        self,
        settings: Settings,
        store: RecordStore | None = None,
        registry: Registry | None = None,
        retry_policy: RetryPolicy = QUEUE_ITEM_RETRY,
    ):
        self.settings = settings
        self.store = store or QueueItemStore(settings)
        self.registry = registry if registry is not None else processor_registry
        self.retry_policy = retry_policy

    def batch_size(self, limit: int | None) -> int:
        """Requested batch size clamped to the configured ceiling."""
        if limit is None:
            limit = self.settings.queue_default_batch_size
        return max(0, min(limit, self.settings.queue_max_batch_size))

    async def dispatch(
        self, session: AsyncSession, work_type: str, limit: int | None = None
    ) -> DispatchSummary:
        """
        Run one dispatch for a work type.

        Calling this with nothing pending is a no-op that returns a summary
        with processed=0.
        """
        if not self.registry.has(work_type):
            raise NotFoundError(
                f"No processor registered for work type '{work_type}'",
                details={"work_type": work_type, "registered": self.registry.list()},
                error_code="UNKNOWN_WORK_TYPE",
            )
        processor = self.registry.get(work_type)

        bind_dispatch_context(work_type, uuid.uuid4().hex[:12])
        try:
            summary = DispatchSummary(work_type=work_type)
            summary.abandoned = await self.store.fail_abandoned(session, work_type)

            items = await self.store.claim_batch(
                session, work_type, self.batch_size(limit)
            )
            if not items:
                logger.info("Nothing to dispatch")
                return summary

            # Keep the claimed token and attempt count fixed while reads refresh the row
            for item in items:
                session.expunge(item)

            # Claim order is FIFO and processing keeps it
            for item in items:
                result = await self._run_processor(processor, item, session)
                summary.processed += 1
                applied = await self._record(session, item, result, summary)
                if not applied:
                    summary.discarded += 1

            logger.info("Dispatch completed", **summary.model_dump(exclude={"work_type"}))
            return summary
        finally:
            clear_dispatch_context()

    def _invoke(self, processor: Any, item: Any, session: AsyncSession) -> Awaitable[Any]:
        return processor.process(item.payload)

    async def _run_processor(
        self, processor: Any, item: Any, session: AsyncSession
    ) -> ProcessResult:
        """Call a processor, converting exceptions and timeouts to failures."""
        timeout_s = self.settings.queue_processor_timeout_s
        try:
            raw = await asyncio.wait_for(
                self._invoke(processor, item, session), timeout=timeout_s
            )
            return ProcessResult.coerce(raw)
        except asyncio.TimeoutError:
            result = ProcessResult.failure(f"Processor timed out after {timeout_s}s")
        except Exception as e:
            logger.warning(
                "Processor raised", exception=e.__class__.__name__, exc_info=True
            )
            result = ProcessResult.failure(str(e) or e.__class__.__name__)

        # The outcome write starts from a clean transaction
        await session.rollback()
        return result

    async def _record(
        self,
        session: AsyncSession,
        item: Any,
        result: ProcessResult,
        summary: DispatchSummary,
    ) -> bool:
        """Write the status that follows from a processor result."""
        item_logger = logger.bind(item_id=str(item.id), attempt=item.attempts)

        if result.outcome == Outcome.SUCCESS:
            applied = await self.store.update_status(
                session,
                item.id,
                QueueItemStatus.SENT.value,
                claim_token=item.claim_token,
                error_message=None,
            )
            if applied:
                summary.succeeded += 1
                item_logger.info("Item sent")
            return applied

        if result.outcome == Outcome.SKIP:
            reason = result.detail or "Skipped by processor"
            applied = await self.store.update_status(
                session,
                item.id,
                QueueItemStatus.SKIPPED.value,
                claim_token=item.claim_token,
                error_message=reason,
            )
            if applied:
                summary.skipped += 1
                item_logger.info("Item skipped", reason=reason)
            return applied

        reason = result.detail or "Processor reported failure"
        next_status = self.retry_policy.decide(item)
        applied = await self.store.update_status(
            session,
            item.id,
            next_status,
            claim_token=item.claim_token,
            error_message=reason,
        )
        if applied:
            if next_status == self.retry_policy.retry_status:
                summary.retried += 1
                item_logger.warning(
                    "Item failed, will retry",
                    error=reason,
                    attempts_remaining=item.attempts_remaining(),
                )
            else:
                summary.failed += 1
                item_logger.error("Item failed permanently", error=reason)
        return applied
