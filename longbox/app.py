"""Application entry point for Longbox."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from longbox.core.config import Settings, get_settings
from longbox.core.dependencies import get_session
from longbox.core.logging import setup_logging
from longbox.core.metrics import setup_metrics
from longbox.core.middleware import TracingMiddleware
from longbox.core.routes import create_app_router
from longbox.core.session import LongboxSession

logger = structlog.get_logger("longbox.app")

APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager."""
    session: LongboxSession = app.state.session
    settings = session.settings
    logger.info(
        "Starting Longbox",
        version=APP_VERSION,
        env=settings.env,
        host=settings.host_bind_address,
        port=settings.host_port,
    )
    await session.startup()

    yield

    logger.info("Shutting down Longbox")
    await session.shutdown()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        settings: Settings to use (the cached global settings when None)
    """
    settings = settings or get_settings()
    logs_dir = None if settings.is_testing else settings.logs_dir
    setup_logging(debug=settings.is_debug, logs_dir=logs_dir)

    app = FastAPI(
        title="Longbox",
        description="Identification and organization engine for digital comic collections",
        version=APP_VERSION,
        lifespan=lifespan,
    )
    app.state.session = LongboxSession.from_settings(settings)

    # Tracing first so every request log carries a trace_id
    app.add_middleware(TracingMiddleware)
    setup_metrics(app, APP_VERSION)

    app.include_router(create_app_router(get_session))
    return app


def main() -> None:
    """Main entry point."""
    from longbox.core.config import reload_settings

    current_settings = reload_settings()
    app = create_app(current_settings)

    import uvicorn

    logger.info(
        "Starting uvicorn server",
        host=current_settings.host_bind_address,
        port=current_settings.host_port,
    )
    uvicorn.run(
        app,
        host=current_settings.host_bind_address,
        port=current_settings.host_port,
        log_config=None,  # structlog handles logging
        reload=False,
    )


if __name__ == "__main__":
    main()
