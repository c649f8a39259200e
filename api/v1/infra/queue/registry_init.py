"""
Processor registry initialization.

Registers the back office work types with the processor registries.
"""

from api.config.logging import get_logger
from api.config.settings import DeliveryChannel, Settings
from api.v1.core.registries import (
    JobProcessorRegistry,
    ProcessorRegistry,
    job_processor_registry,
    processor_registry,
)
from api.v1.infra.queue.handlers import (
    LogNotificationProcessor,
    StubGenerationProcessor,
    WebhookNotificationProcessor,
)

logger = get_logger(__name__)

NOTIFICATION_WORK_TYPES = (
    "cashback-whatsapp",
    "store-alert",
    "time-clock-notification",
)

GENERATION_WORK_TYPES = {
    "marketing-image": "image",
    "marketing-video": "video",
}


def register_processors(
    settings: Settings,
    registry: ProcessorRegistry | None = None,
    job_registry: JobProcessorRegistry | None = None,
) -> None:
    """Register notification and generation processors for the configured providers."""
    registry = registry if registry is not None else processor_registry
    job_registry = job_registry if job_registry is not None else job_processor_registry

    logger.info("Registering processors", delivery_channel=settings.delivery_channel.value)

    for work_type in NOTIFICATION_WORK_TYPES:
        if settings.delivery_channel == DeliveryChannel.WEBHOOK:
            registry.register(work_type, WebhookNotificationProcessor(settings, work_type))
        else:
            registry.register(work_type, LogNotificationProcessor(settings, work_type))

    for work_type, media_kind in GENERATION_WORK_TYPES.items():
        job_registry.register(
            work_type, StubGenerationProcessor(settings, work_type, media_kind)
        )

    logger.info(
        "Processors registered",
        processors=registry.list(),
        job_processors=job_registry.list(),
    )
