from collections.abc import Awaitable, Callable
from typing import Any, Generic, Protocol, TypeVar

# Base registry implementation
T = TypeVar("T")


class Registry(Generic[T]):
    """Generic registry for pluggable implementations."""

    def __init__(self, name: str):
        self.name = name
        self._implementations: dict[str, T] = {}
        self._frozen = False

    def register(self, name: str, implementation: T) -> None:
        """Register an implementation with a given name."""
        if self._frozen:
            raise RuntimeError(
                f"Cannot register '{name}' in {self.name.lower()} registry: "
                "registry is frozen in production mode"
            )
        self._implementations[name] = implementation

    def get(self, name: str) -> T:
        """Get an implementation by name."""
        if name not in self._implementations:
            raise KeyError(
                f"No {self.name.lower()} implementation registered with name: {name}"
            )
        return self._implementations[name]

    def has(self, name: str) -> bool:
        """Check whether an implementation is registered under name."""
        return name in self._implementations

    def list(self) -> list[str]:
        """List all registered implementation names."""
        return list(self._implementations.keys())

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        """Check if the registry is frozen."""
        return self._frozen


# Processor Registry - side effects for queue items
class Processor(Protocol):
    """Protocol for processors that deliver one queue item."""

    async def process(self, payload: dict[str, Any]) -> Any:
        """
        Perform the work described by payload.

        Returns a ProcessResult:
        {
            "outcome": "success" | "skip" | "failure",
            "detail": Optional[str]  # reason for skip/failure
        }
        Raising is treated as a failure carrying the exception message.
        """
        ...


class ProcessorRegistry(Registry[Processor]):
    """Registry for queue item processors keyed by work type."""

    def __init__(self):
        super().__init__("Processor")


# Job Processor Registry - long-running generation work
ProgressCallback = Callable[[int], Awaitable[None]]


class JobProcessor(Protocol):
    """Protocol for processors that run long jobs with observable progress."""

    async def process(
        self, payload: dict[str, Any], progress: ProgressCallback
    ) -> Any:
        """
        Run a job.

        Args:
            payload: Job-specific parameters
            progress: Awaitable callback accepting a 0-100 percentage

        Returns a ProcessResult; on success its ``result`` is stored on the job.
        """
        ...


class JobProcessorRegistry(Registry[JobProcessor]):
    """Registry for job processors keyed by work type."""

    def __init__(self):
        super().__init__("JobProcessor")


# Global registry instances (singletons)
processor_registry = ProcessorRegistry()
job_processor_registry = JobProcessorRegistry()
