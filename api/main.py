from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from api.config.logging import setup_logging
from api.config.settings import Settings, settings as default_settings
from api.v1.core.exceptions import (
    BackOfficeException,
    RequestContextMiddleware,
    back_office_exception_handler,
    general_exception_handler,
    http_exception_handler,
)
from api.v1.core.registries import job_processor_registry, processor_registry
from api.v1.healthz import router as health_router
from api.v1.infra.queue.registry_init import register_processors
from api.v1.infra.queue.routes import jobs_router, queue_router


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or default_settings

    # Initialize structured logging
    setup_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Durable work queue and job status engine for back office automations",
        version=settings.version,
        debug=settings.debug,
        # All endpoints are under the /v1 prefix
        openapi_url="/v1/openapi.json" if settings.debug else None,
        docs_url="/v1/docs" if settings.debug else None,
        redoc_url="/v1/redoc" if settings.debug else None,
    )

    # Add middleware
    app.add_middleware(RequestContextMiddleware)

    # Add CORS middleware for development
    if settings.debug:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Add exception handlers
    app.add_exception_handler(BackOfficeException, back_office_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # Include routers with /v1 prefix
    app.include_router(health_router, prefix="/v1", tags=["health"])
    app.include_router(queue_router, prefix="/v1")
    app.include_router(jobs_router, prefix="/v1")

    if not processor_registry.is_frozen():
        register_processors(settings)

    # Freeze registries in non-development environments to prevent runtime modifications
    if settings.environment != "development":
        processor_registry.freeze()
        job_processor_registry.freeze()

    return app


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.debug,
        workers=1 if default_settings.debug else default_settings.workers,
    )
