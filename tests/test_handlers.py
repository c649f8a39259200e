import json

import httpx
import pytest

from api.config.settings import DeliveryChannel, Settings
from api.v1.core.registries import JobProcessorRegistry, ProcessorRegistry
from api.v1.infra.queue.handlers import (
    LogNotificationProcessor,
    StubGenerationProcessor,
    WebhookNotificationProcessor,
    recipient_phone,
)
from api.v1.infra.queue.registry_init import (
    GENERATION_WORK_TYPES,
    NOTIFICATION_WORK_TYPES,
    register_processors,
)
from api.v1.infra.queue.types import Outcome

GATEWAY_URL = "https://gateway.example.com/send"


@pytest.fixture
def webhook_settings():
    return Settings(
        _env_file=None,
        delivery_channel=DeliveryChannel.WEBHOOK,
        delivery_webhook_url=GATEWAY_URL,
    )


def gateway(status_code=200, body=None, seen=None):
    """httpx client whose transport answers like the messaging gateway."""

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(json.loads(request.content))
        return httpx.Response(status_code, json=body if body is not None else {})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.parametrize(
    "payload,expected",
    [
        ({"phone": "+55 (11) 99999-0000"}, "5511999990000"),
        ({"recipient_phone": "11 3333 4444"}, "1133334444"),
        ({"phone": ""}, None),
        ({"phone": "n/a"}, None),
        ({}, None),
    ],
)
def test_recipient_phone(payload, expected):
    assert recipient_phone(payload) == expected


async def test_log_processor_skips_without_phone(test_settings):
    processor = LogNotificationProcessor(test_settings, "cashback-whatsapp")

    result = await processor.process({"message": "R$ 10 cashback"})

    assert result.outcome == Outcome.SKIP
    assert result.detail == "Recipient has no phone number"


async def test_log_processor_succeeds_with_phone(test_settings):
    processor = LogNotificationProcessor(test_settings, "cashback-whatsapp")

    result = await processor.process({"phone": "+5511999990000", "message": "hi"})

    assert result.outcome == Outcome.SUCCESS


async def test_webhook_success(webhook_settings):
    seen = []
    async with gateway(body={"success": True}, seen=seen) as client:
        processor = WebhookNotificationProcessor(webhook_settings, "store-alert", client=client)
        result = await processor.process({"phone": "+55 11 99999-0000", "message": "hi"})

    assert result.outcome == Outcome.SUCCESS
    assert seen == [
        {
            "work_type": "store-alert",
            "phone": "5511999990000",
            "payload": {"phone": "+55 11 99999-0000", "message": "hi"},
        }
    ]


async def test_webhook_skipped_answer_is_a_skip(webhook_settings):
    async with gateway(body={"success": False, "skipped": True, "error": "Opted out"}) as client:
        processor = WebhookNotificationProcessor(webhook_settings, "store-alert", client=client)
        result = await processor.process({"phone": "5511999990000"})

    assert result.outcome == Outcome.SKIP
    assert result.detail == "Opted out"


async def test_webhook_server_error_is_a_failure(webhook_settings):
    async with gateway(status_code=502, body={}) as client:
        processor = WebhookNotificationProcessor(webhook_settings, "store-alert", client=client)
        result = await processor.process({"phone": "5511999990000"})

    assert result.outcome == Outcome.FAILURE
    assert result.detail == "Gateway returned HTTP 502"


async def test_webhook_unsuccessful_answer_is_a_failure(webhook_settings):
    async with gateway(body={"success": False, "error": "Template rejected"}) as client:
        processor = WebhookNotificationProcessor(webhook_settings, "store-alert", client=client)
        result = await processor.process({"phone": "5511999990000"})

    assert result.outcome == Outcome.FAILURE
    assert result.detail == "Template rejected"


async def test_webhook_skips_without_calling_gateway(webhook_settings):
    seen = []
    async with gateway(body={"success": True}, seen=seen) as client:
        processor = WebhookNotificationProcessor(webhook_settings, "store-alert", client=client)
        result = await processor.process({"message": "no phone"})

    assert result.outcome == Outcome.SKIP
    assert seen == []


def test_webhook_requires_url(test_settings):
    with pytest.raises(ValueError, match="delivery_webhook_url is required"):
        WebhookNotificationProcessor(test_settings, "store-alert")


async def test_stub_generation_reports_progress_and_asset(test_settings):
    processor = StubGenerationProcessor(test_settings, "marketing-video", "video")
    reported = []

    async def progress(value: int) -> None:
        reported.append(value)

    result = await processor.process({"prompt": "  Black Friday  "}, progress)

    assert result.outcome == Outcome.SUCCESS
    assert reported == [10, 40, 70, 90]
    asset = result.result
    assert asset["mediaUrl"] == f"stub://marketing-video/{asset['assetId']}.mp4"
    assert asset["meta"] == {"provider": "stub", "kind": "video", "prompt": "Black Friday"}


async def test_stub_generation_without_prompt_is_a_skip(test_settings):
    processor = StubGenerationProcessor(test_settings, "marketing-image")

    async def progress(value: int) -> None:
        raise AssertionError("no progress expected")

    result = await processor.process({"prompt": "   "}, progress)

    assert result.outcome == Outcome.SKIP
    assert result.detail == "No prompt provided"


def test_register_processors_with_log_delivery(test_settings):
    registry, job_registry = ProcessorRegistry(), JobProcessorRegistry()

    register_processors(test_settings, registry, job_registry)

    assert registry.list() == list(NOTIFICATION_WORK_TYPES)
    assert job_registry.list() == list(GENERATION_WORK_TYPES)
    assert all(
        isinstance(registry.get(work_type), LogNotificationProcessor)
        for work_type in NOTIFICATION_WORK_TYPES
    )
    assert job_registry.get("marketing-video").media_kind == "video"


def test_register_processors_with_webhook_delivery(webhook_settings):
    registry, job_registry = ProcessorRegistry(), JobProcessorRegistry()

    register_processors(webhook_settings, registry, job_registry)

    assert isinstance(registry.get("cashback-whatsapp"), WebhookNotificationProcessor)
