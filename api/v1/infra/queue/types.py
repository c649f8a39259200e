"""
Shared types for the queue engine: processor outcomes, store results and
the clock.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


class Outcome(str, Enum):
    """What a processor reports back for one item."""

    SUCCESS = "success"
    SKIP = "skip"
    FAILURE = "failure"


@dataclass(frozen=True)
class ProcessResult:
    """Result of one processor call."""

    outcome: Outcome
    detail: str | None = None
    result: dict[str, Any] | None = None

    @classmethod
    def success(cls, result: dict[str, Any] | None = None) -> "ProcessResult":
        return cls(Outcome.SUCCESS, result=result)

    @classmethod
    def skip(cls, reason: str) -> "ProcessResult":
        return cls(Outcome.SKIP, detail=reason)

    @classmethod
    def failure(cls, reason: str) -> "ProcessResult":
        return cls(Outcome.FAILURE, detail=reason)

    @classmethod
    def coerce(cls, value: Any) -> "ProcessResult":
        """Accept a ProcessResult or the plain dict form of the processor contract."""
        if isinstance(value, ProcessResult):
            return value
        if isinstance(value, dict) and "outcome" in value:
            return cls(
                Outcome(value["outcome"]),
                detail=value.get("detail"),
                result=value.get("result"),
            )
        raise TypeError(
            f"Processor returned {type(value).__name__}, expected ProcessResult"
        )


@dataclass(frozen=True)
class EnqueueResult:
    """Record written (or found by idempotency key) by an enqueue."""

    id: UUID
    status: str
    deduplicated: bool = False


@dataclass(frozen=True)
class RecordStats:
    """Counts for one table, optionally narrowed to a work type."""

    total: int
    by_status: dict[str, int]
    by_work_type: dict[str, int]
    queue_depth: int
    stale_claims: int
