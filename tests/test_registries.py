from typing import Any

import pytest

from api.v1.core.registries import (
    JobProcessorRegistry,
    ProcessorRegistry,
    Registry,
    job_processor_registry,
    processor_registry,
)
from api.v1.infra.queue.types import ProcessResult


class MockProcessor:
    async def process(self, payload: dict[str, Any]) -> ProcessResult:
        return ProcessResult.success()


class MockJobProcessor:
    async def process(self, payload: dict[str, Any], progress) -> ProcessResult:
        await progress(50)
        return ProcessResult.success({"assetId": "mock"})


def test_registry_basic_operations():
    """Test basic registry register, get, list operations."""
    registry = Registry[str]("Test")

    # Test empty registry
    assert registry.list() == []
    assert registry.has("test_impl") is False

    # Test register and get
    registry.register("test_impl", "test_value")
    assert registry.get("test_impl") == "test_value"
    assert registry.has("test_impl") is True
    assert registry.list() == ["test_impl"]

    # Test KeyError for missing implementation
    with pytest.raises(KeyError, match="No test implementation registered"):
        registry.get("nonexistent")


def test_registry_multiple_implementations():
    """Test registry with multiple implementations."""
    registry = Registry[str]("Test")

    registry.register("impl1", "value1")
    registry.register("impl2", "value2")
    registry.register("impl3", "value3")

    assert set(registry.list()) == {"impl1", "impl2", "impl3"}
    assert registry.get("impl2") == "value2"


def test_registry_overwrites_implementation():
    """Test that registering the same name overwrites previous implementation."""
    registry = Registry[str]("Test")

    registry.register("same_name", "first_value")
    registry.register("same_name", "second_value")

    assert registry.get("same_name") == "second_value"
    assert registry.list() == ["same_name"]  # Only one entry


def test_frozen_registry_rejects_registration():
    registry = Registry[str]("Test")
    registry.register("kept", "value")

    registry.freeze()

    assert registry.is_frozen() is True
    with pytest.raises(RuntimeError, match="registry is frozen"):
        registry.register("late", "value")
    assert registry.get("kept") == "value"


async def test_processor_registry_by_work_type():
    registry = ProcessorRegistry()
    processor = MockProcessor()
    registry.register("store-alert", processor)

    retrieved = registry.get("store-alert")

    assert retrieved is processor
    result = await retrieved.process({"phone": "123"})
    assert result.outcome == "success"

    with pytest.raises(KeyError, match="No processor implementation registered"):
        registry.get("cashback-whatsapp")


async def test_job_processor_registry_passes_progress():
    registry = JobProcessorRegistry()
    registry.register("marketing-image", MockJobProcessor())
    reported = []

    async def progress(value: int) -> None:
        reported.append(value)

    result = await registry.get("marketing-image").process({"prompt": "x"}, progress)

    assert reported == [50]
    assert result.result == {"assetId": "mock"}


def test_global_registries_are_distinct_singletons():
    assert isinstance(processor_registry, ProcessorRegistry)
    assert isinstance(job_processor_registry, JobProcessorRegistry)
    assert processor_registry is not job_processor_registry
