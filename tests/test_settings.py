from unittest.mock import patch

import pytest

from api.config.settings import (
    DeliveryChannel,
    GenerationProvider,
    Settings,
    get_settings,
)


def test_default_settings():
    """Test default settings values."""
    settings = Settings(_env_file=None)

    assert settings.app_name == "Back Office Queue"
    assert settings.version == "1.0.0"
    assert settings.environment == "development"
    assert settings.delivery_channel == DeliveryChannel.LOG
    assert settings.generation_provider == GenerationProvider.STUB
    assert settings.queue_default_batch_size == 10
    assert settings.queue_max_batch_size == 50
    assert settings.queue_claim_timeout_s == 300
    assert settings.queue_retention_days == 30


def test_production_validation_blocks_log_delivery():
    """Test that production environment blocks DELIVERY_CHANNEL=log."""
    with pytest.raises(ValueError, match="DELIVERY_CHANNEL=log is not allowed in production"):
        Settings(_env_file=None, environment="production", delivery_channel=DeliveryChannel.LOG)


def test_production_allows_webhook_delivery():
    settings = Settings(
        _env_file=None,
        environment="production",
        delivery_channel=DeliveryChannel.WEBHOOK,
        delivery_webhook_url="https://gateway.example.com/send",
    )

    assert settings.delivery_channel == DeliveryChannel.WEBHOOK


def test_webhook_delivery_requires_url():
    with pytest.raises(ValueError, match="DELIVERY_WEBHOOK_URL is required"):
        Settings(_env_file=None, delivery_channel=DeliveryChannel.WEBHOOK)


def test_default_batch_cannot_exceed_max():
    with pytest.raises(ValueError, match="cannot exceed QUEUE_MAX_BATCH_SIZE"):
        Settings(_env_file=None, queue_default_batch_size=80, queue_max_batch_size=50)


def test_claim_timeout_must_be_positive():
    with pytest.raises(ValueError):
        Settings(_env_file=None, queue_claim_timeout_s=0)


def test_settings_dependency_injection():
    """Test the get_settings dependency function."""
    settings = get_settings()
    assert isinstance(settings, Settings)


@patch.dict(
    "os.environ",
    {
        "DELIVERY_CHANNEL": "webhook",
        "DELIVERY_WEBHOOK_URL": "https://gateway.example.com/send",
        "ENVIRONMENT": "production",
        "QUEUE_CLAIM_TIMEOUT_S": "120",
    },
)
def test_env_var_loading():
    """Test that environment variables are loaded correctly."""
    settings = Settings(_env_file=None)
    assert settings.delivery_channel == DeliveryChannel.WEBHOOK
    assert settings.environment == "production"
    assert settings.queue_claim_timeout_s == 120
