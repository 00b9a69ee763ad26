"""General API routes."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from longbox.core.tracing import get_trace_id

router = APIRouter(prefix="/api")
logger = structlog.get_logger("longbox.routes.general")


@router.get("/health")
async def health(request: Request) -> JSONResponse:
    """Health check endpoint, including which reference sources are usable."""
    trace_id = get_trace_id()
    session = request.app.state.session
    logger.debug("Health check", trace_id=trace_id)
    return JSONResponse(
        {
            "status": "healthy",
            "version": request.app.version,
            "sources": session.engine.enrichment.available_sources,
            "processing": session.engine.is_processing,
            "trace_id": trace_id,
        }
    )
