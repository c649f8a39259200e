"""
Count-bounded retry policy.

Retries are bounded by attempts, not elapsed time: how soon a retried item
runs again depends only on how often the dispatcher is triggered.
"""

from dataclasses import dataclass
from typing import Any

from api.v1.infra.queue.models import JobStatus, QueueItemStatus


@dataclass(frozen=True)
class RetryPolicy:
    """Decides the status a failed item moves to."""

    retry_status: str
    exhausted_status: str

    def decide(self, item: Any) -> str:
        """Return the retry status while attempts remain, the terminal status otherwise."""
        if item.attempts < item.max_attempts:
            return self.retry_status
        return self.exhausted_status

    def is_final(self, item: Any) -> bool:
        return self.decide(item) == self.exhausted_status


QUEUE_ITEM_RETRY = RetryPolicy(
    retry_status=QueueItemStatus.PENDING.value,
    exhausted_status=QueueItemStatus.FAILED.value,
)

JOB_RETRY = RetryPolicy(
    retry_status=JobStatus.QUEUED.value,
    exhausted_status=JobStatus.FAILED.value,
)
