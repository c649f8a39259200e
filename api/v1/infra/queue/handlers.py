"""
Processors for the back office work types.

Notification processors deliver one queue item each; generation processors
run a job and report progress through the callback they are handed. All of
them take their configuration through the constructor.
"""

import uuid
from typing import Any

import httpx

from api.config.logging import get_logger
from api.config.settings import Settings
from api.v1.core.registries import ProgressCallback
from api.v1.infra.queue.types import ProcessResult

logger = get_logger(__name__)


def recipient_phone(payload: dict[str, Any]) -> str | None:
    """Normalized recipient phone from a notification payload, if any."""
    phone = payload.get("phone") or payload.get("recipient_phone")
    if not phone:
        return None
    digits = "".join(ch for ch in str(phone) if ch.isdigit())
    return digits or None


class LogNotificationProcessor:
    """
    Records notifications in the log instead of sending them.

    Payload expected:
    {
        "phone": "+55 11 99999-0000",
        "message": "text to deliver"
    }
    """

    def __init__(self, settings: Settings, work_type: str):
        self.settings = settings
        self.work_type = work_type

    async def process(self, payload: dict[str, Any]) -> ProcessResult:
        phone = recipient_phone(payload)
        if not phone:
            return ProcessResult.skip("Recipient has no phone number")

        logger.info(
            "Notification logged",
            work_type=self.work_type,
            phone_suffix=phone[-4:],
            message_length=len(str(payload.get("message", ""))),
        )
        return ProcessResult.success()


class WebhookNotificationProcessor:
    """
    Delivers notifications through the messaging gateway webhook.

    The gateway answers with {"success": bool, "skipped": bool, "error": str}.
    A skipped answer means the message can never be delivered (no phone on
    file); anything else that is not a 2xx success is a retryable failure.
    """

    def __init__(
        self,
        settings: Settings,
        work_type: str,
        client: httpx.AsyncClient | None = None,
    ):
        if not settings.delivery_webhook_url:
            raise ValueError("delivery_webhook_url is required for webhook delivery")
        self.settings = settings
        self.work_type = work_type
        self._client = client

    async def process(self, payload: dict[str, Any]) -> ProcessResult:
        phone = recipient_phone(payload)
        if not phone:
            return ProcessResult.skip("Recipient has no phone number")

        body = {"work_type": self.work_type, "phone": phone, "payload": payload}

        if self._client is not None:
            response = await self._post(self._client, body)
        else:
            async with httpx.AsyncClient(
                timeout=self.settings.delivery_timeout_s
            ) as client:
                response = await self._post(client, body)

        try:
            result = response.json()
        except ValueError:
            result = {}
        if not isinstance(result, dict):
            result = {}

        if response.is_success and result.get("success"):
            return ProcessResult.success()

        if result.get("skipped"):
            return ProcessResult.skip(result.get("error") or "Skipped by gateway")

        error = result.get("error") or f"Gateway returned HTTP {response.status_code}"
        logger.warning(
            "Gateway delivery failed",
            work_type=self.work_type,
            status_code=response.status_code,
            error=error,
        )
        return ProcessResult.failure(error)

    async def _post(
        self, client: httpx.AsyncClient, body: dict[str, Any]
    ) -> httpx.Response:
        return await client.post(
            self.settings.delivery_webhook_url,
            json=body,
            timeout=self.settings.delivery_timeout_s,
        )


class StubGenerationProcessor:
    """
    Offline stand-in for the marketing asset generation provider.

    Payload expected:
    {
        "prompt": "text prompt",
        "format": "png" | "mp4"  # optional
    }
    """

    steps = (10, 40, 70, 90)

    def __init__(self, settings: Settings, work_type: str, media_kind: str = "image"):
        self.settings = settings
        self.work_type = work_type
        self.media_kind = media_kind

    async def process(
        self, payload: dict[str, Any], progress: ProgressCallback
    ) -> ProcessResult:
        prompt = (payload.get("prompt") or "").strip()
        if not prompt:
            return ProcessResult.skip("No prompt provided")

        for step in self.steps:
            await progress(step)

        asset_id = uuid.uuid4().hex
        extension = payload.get("format") or ("mp4" if self.media_kind == "video" else "png")

        logger.info(
            "Stub asset generated",
            work_type=self.work_type,
            asset_id=asset_id,
            media_kind=self.media_kind,
        )

        return ProcessResult.success(
            {
                "assetId": asset_id,
                "mediaUrl": f"stub://{self.work_type}/{asset_id}.{extension}",
                "meta": {
                    "provider": self.settings.generation_provider.value,
                    "kind": self.media_kind,
                    "prompt": prompt,
                },
            }
        )
