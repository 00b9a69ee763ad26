"""Application routes."""

from __future__ import annotations

from collections.abc import Callable

import structlog
from fastapi import APIRouter

from longbox.core.session import LongboxSession
from longbox.routes import general
from longbox.routes.activity import create_activity_router
from longbox.routes.knowledge import create_knowledge_router
from longbox.routes.queue import create_queue_router

logger = structlog.get_logger("longbox.routes")


def create_app_router(get_session: Callable[..., LongboxSession]) -> APIRouter:
    """Create and configure main application router.

    Args:
        get_session: Dependency returning the active LongboxSession

    Returns:
        Configured APIRouter instance
    """
    router = APIRouter()
    router.include_router(general.router, tags=["general"])
    router.include_router(create_queue_router(get_session), tags=["queue"])
    router.include_router(create_knowledge_router(get_session), tags=["knowledge"])
    router.include_router(create_activity_router(get_session), tags=["activity"])
    logger.debug("Included API routers")
    return router
