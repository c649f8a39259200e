from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from api.config.logging import get_logger
from api.config.settings import Settings, SettingsDep
from api.infra.database import get_session
from api.v1.core.exceptions import create_success_response
from api.v1.infra.queue.store import JobStore, QueueItemStore

logger = get_logger(__name__)

router = APIRouter()


class DatabaseHealth(BaseModel):
    """Database health status."""

    connected: bool
    response_time_ms: float | None = None
    error: str | None = None


class QueueHealth(BaseModel):
    """Backlog and abandoned claims for queue items and jobs."""

    queue_depth: int = 0
    stale_claims: int = 0
    job_queue_depth: int = 0
    stale_job_claims: int = 0


class HealthResponse(BaseModel):
    """Health response with database and queue status."""

    ok: bool
    version: str
    environment: str
    timestamp: str
    database: DatabaseHealth
    queue: QueueHealth | None = None


@router.get("/healthz", response_model=dict)
async def health_check(
    settings: Settings = SettingsDep, session: AsyncSession = Depends(get_session)
):
    """Health check endpoint with database and queue status."""

    timestamp = datetime.now(UTC).isoformat()

    db_health = await _check_database_health(session)

    # Queue figures are informational and never fail the health check
    queue_health = None
    if db_health.connected:
        try:
            queue_health = await _check_queue_health(session, settings)
        except Exception as e:
            logger.warning("Queue health check failed", error=str(e))
            await session.rollback()

    health = HealthResponse(
        ok=db_health.connected,
        version=settings.version,
        environment=settings.environment,
        timestamp=timestamp,
        database=db_health,
        queue=queue_health,
    )

    return create_success_response(data=health.model_dump())


async def _check_database_health(session: AsyncSession) -> DatabaseHealth:
    """Check database connectivity and response time."""
    start_time = datetime.now(UTC)

    try:
        await session.execute(text("SELECT 1"))

        end_time = datetime.now(UTC)
        response_time_ms = (end_time - start_time).total_seconds() * 1000

        return DatabaseHealth(
            connected=True, response_time_ms=round(response_time_ms, 2)
        )

    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        return DatabaseHealth(connected=False, error=str(e))


async def _check_queue_health(
    session: AsyncSession, settings: Settings
) -> QueueHealth:
    """Backlog and stale claim counts from both stores."""
    item_stats = await QueueItemStore(settings).stats(session)
    job_stats = await JobStore(settings).stats(session)

    return QueueHealth(
        queue_depth=item_stats.queue_depth,
        stale_claims=item_stats.stale_claims,
        job_queue_depth=job_stats.queue_depth,
        stale_job_claims=job_stats.stale_claims,
    )
