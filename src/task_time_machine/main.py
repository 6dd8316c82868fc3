"""Task Time Machine service entry point.

Builds the FastAPI application with the Time Machine router mounted under
/api/v1 and logging configured from settings at startup.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from task_time_machine import __version__
from task_time_machine.observability import configure_logging, get_logger
from task_time_machine.settings import Settings, get_settings
from task_time_machine.time_machine.routes import router

logger = get_logger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Settings to use; defaults to ``get_settings()``.

    Returns:
        The configured FastAPI app.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Configure logging on startup and log shutdown.

        Args:
            app: The FastAPI application instance.

        Yields:
            None
        """
        configure_logging(settings.log_level, json_output=settings.log_json)
        app.state.settings = settings
        logger.info(
            "Time Machine service startup complete",
            extra={"service": settings.service_name, "timezone": settings.timezone},
        )

        yield

        logger.info("Time Machine service shutdown complete")

    app = FastAPI(title=settings.service_name, version=__version__, lifespan=lifespan)
    app.dependency_overrides[get_settings] = lambda: settings
    app.include_router(router, prefix="/api/v1")

    @app.get("/health", tags=["Health"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.service_name}

    return app


app: FastAPI = create_app()
