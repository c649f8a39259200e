import logging
import sys
from typing import Any

import structlog

from .settings import Settings, settings as default_settings


def setup_logging(settings: Settings | None = None) -> None:
    """Configure structured logging with structlog."""
    settings = settings or default_settings
    level = getattr(logging, settings.log_level)

    # Route stdlib loggers (uvicorn, sqlalchemy) through the same stream
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            (
                structlog.processors.CallsiteParameterAdder(
                    parameters=[structlog.processors.CallsiteParameter.FUNC_NAME]
                )
                if settings.debug
                else structlog.processors.CallsiteParameterAdder(parameters=[])
            ),
            # Tracebacks are rendered by the console renderer in debug
            (
                structlog.dev.ConsoleRenderer()
                if settings.debug
                else structlog.processors.format_exc_info
            ),
            *([] if settings.debug else [structlog.processors.JSONRenderer()]),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.WriteLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def add_request_context(request_id: str, **context: Any) -> None:
    """Add request-specific context to all log messages."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, **context)


def bind_dispatch_context(work_type: str, run_id: str) -> None:
    """Tag every log line of one dispatch run with its work type and run id."""
    structlog.contextvars.bind_contextvars(work_type=work_type, dispatch_run=run_id)


def clear_dispatch_context() -> None:
    structlog.contextvars.unbind_contextvars("work_type", "dispatch_run")
