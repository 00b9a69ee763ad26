"""FastAPI dependencies for session-scoped state."""

from __future__ import annotations

import structlog
from fastapi import HTTPException, Request, status

from longbox.core.models import QueuedFile
from longbox.core.session import LongboxSession

logger = structlog.get_logger("longbox.dependencies")


def get_session(request: Request) -> LongboxSession:
    """Session built by create_app and stored on the application state."""
    return request.app.state.session


def get_queued_file(session: LongboxSession, file_id: str) -> QueuedFile:
    """Look up a queued file or fail with 404.

    Raises:
        HTTPException: The file is not in the queue
    """
    queued = session.queue.get(file_id)
    if queued is None:
        logger.debug("Queued file not found", file_id=file_id)
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Queued file {file_id} not found",
        )
    return queued
