"""API Endpoint Wrappers - Type-safe API calls"""

from typing import Any

import httpx

from .base import APIClient, BackOfficeError
from ..utils.config_manager import config

__all__ = ["BackOfficeClient", "BackOfficeError"]


class BackOfficeClient:
    """High-level client with typed endpoint methods"""

    def __init__(
        self,
        base_url: str | None = None,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        # Use config values if not provided
        api_config = config.load_config().get("api", {})
        final_base_url = base_url or api_config.get("base_url", "http://localhost:8000")
        final_headers = headers or api_config.get("headers", {})

        self.api = APIClient(
            base_url=final_base_url,
            timeout=api_config.get("timeout", 30),
            headers=final_headers,
            transport=transport,
        )

    def __enter__(self):
        self.api.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.api.__exit__(exc_type, exc_val, exc_tb)

    # Health Check
    def health_check(self) -> dict[str, Any]:
        """Check API health status"""
        return self.api.get("/healthz")

    # Queue Endpoints
    def enqueue(
        self,
        work_type: str,
        payload: dict[str, Any],
        max_attempts: int,
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        """Enqueue a queue item"""
        body = {"work_type": work_type, "payload": payload, "max_attempts": max_attempts}
        if idempotency_key:
            body["idempotency_key"] = idempotency_key
        return self.api.post("/queue/items", json=body)

    def list_items(
        self,
        work_type: str | None = None,
        status: list[str] | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> dict[str, Any]:
        """List queue items with filters"""
        params: dict[str, Any] = {"limit": limit, "offset": offset}
        if work_type:
            params["work_type"] = work_type
        if status:
            params["status"] = status
        return self.api.get("/queue/items", params)

    def get_item(self, item_id: str) -> dict[str, Any]:
        """Get specific queue item by ID"""
        return self.api.get(f"/queue/items/{item_id}")

    def requeue(self, item_id: str) -> dict[str, Any]:
        """Requeue a failed queue item"""
        return self.api.post(f"/queue/items/{item_id}/requeue")

    def dispatch(self, work_type: str, limit: int | None = None) -> dict[str, Any]:
        """Trigger one dispatch for a work type"""
        params = {"limit": limit} if limit else None
        return self.api.post(f"/queue/dispatch/{work_type}", params=params)

    def stats(self, work_type: str | None = None) -> dict[str, Any]:
        """Get queue statistics"""
        params = {"work_type": work_type} if work_type else None
        return self.api.get("/queue/stats", params)

    def purge(
        self, older_than_days: int | None = None, include_jobs: bool = False
    ) -> dict[str, Any]:
        """Purge old terminal records"""
        params: dict[str, Any] = {"include_jobs": include_jobs}
        if older_than_days:
            params["older_than_days"] = older_than_days
        return self.api.post("/queue/maintenance/purge", params=params)

    # Job Endpoints
    def create_job(
        self,
        work_type: str,
        payload: dict[str, Any],
        max_attempts: int,
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        """Create a job"""
        body = {"work_type": work_type, "payload": payload, "max_attempts": max_attempts}
        if idempotency_key:
            body["idempotency_key"] = idempotency_key
        return self.api.post("/jobs", json=body)

    def get_job_status(self, job_id: str) -> dict[str, Any]:
        """Get a job's status projection"""
        return self.api.get(f"/jobs/{job_id}")

    def cancel_job(self, job_id: str) -> dict[str, Any]:
        """Request job cancellation"""
        return self.api.post(f"/jobs/{job_id}/cancel")

    def dispatch_jobs(self, work_type: str, limit: int | None = None) -> dict[str, Any]:
        """Trigger one job dispatch for a work type"""
        params = {"limit": limit} if limit else None
        return self.api.post(f"/jobs/dispatch/{work_type}", params=params)

    def list_jobs(
        self,
        work_type: str | None = None,
        status: list[str] | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> dict[str, Any]:
        """List jobs with filters"""
        params: dict[str, Any] = {"limit": limit, "offset": offset}
        if work_type:
            params["work_type"] = work_type
        if status:
            params["status"] = status
        return self.api.get("/jobs", params)

    def requeue_job(self, job_id: str) -> dict[str, Any]:
        """Requeue a failed job"""
        return self.api.post(f"/jobs/{job_id}/requeue")
