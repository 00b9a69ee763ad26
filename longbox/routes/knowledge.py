"""Knowledge base routes: list, edit and autocomplete."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Literal

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from longbox.core.knowledge import ComicKnowledge, KnowledgeBaseMatcher
from longbox.core.session import LongboxSession

logger = structlog.get_logger("longbox.routes.knowledge")


def create_knowledge_router(get_session: Callable[..., LongboxSession]) -> APIRouter:
    """Create the knowledge base router.

    Edits are staged and committed right away unless files are being
    processed, in which case they apply when the run finishes.
    """
    router = APIRouter(prefix="/api/knowledge")

    @router.get("")
    async def list_knowledge(session: LongboxSession = Depends(get_session)) -> dict[str, Any]:
        snapshot = session.knowledge.snapshot
        return {
            "entries": [entry.model_dump(mode="json") for entry in snapshot.entries],
            "total": len(snapshot),
            "version": snapshot.version,
            "pending_changes": session.knowledge.pending_changes,
        }

    @router.put("")
    async def upsert_knowledge(
        entry: ComicKnowledge,
        session: LongboxSession = Depends(get_session),
    ) -> dict[str, Any]:
        session.knowledge.stage_upsert(entry)
        applied = session.engine.commit_knowledge()
        logger.info("Knowledge base entry saved", series=entry.series, applied=applied)
        return {"entry": entry.model_dump(mode="json"), "applied": applied}

    @router.delete("/{series}")
    async def delete_knowledge(
        series: str,
        session: LongboxSession = Depends(get_session),
    ) -> dict[str, Any]:
        if session.knowledge.snapshot.get(series) is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Series '{series}' is not in the knowledge base",
            )
        session.knowledge.stage_remove(series)
        applied = session.engine.commit_knowledge()
        return {"series": series, "status": "removed", "applied": applied}

    @router.get("/suggest")
    async def suggest(
        q: str = Query(default="", description="Prefix typed so far"),
        kind: Literal["series", "publisher"] = Query(default="series"),
        publisher: str | None = Query(default=None, description="Restrict series to a publisher"),
        limit: int | None = Query(default=None, ge=1, le=50),
        session: LongboxSession = Depends(get_session),
    ) -> dict[str, Any]:
        """Autocomplete series or publisher names for learning mode."""
        matcher = KnowledgeBaseMatcher(session.knowledge.snapshot, session.matching_config)
        if kind == "publisher":
            suggestions = matcher.suggest_publishers(q, limit)
        else:
            suggestions = matcher.suggest_series(q, publisher, limit)
        return {"query": q, "kind": kind, "suggestions": suggestions}

    return router
