"""Recent activity routes."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from longbox.core.activity import RecentAction
from longbox.core.errors import UndoError
from longbox.core.session import LongboxSession

logger = structlog.get_logger("longbox.routes.activity")


def _action_payload(action: RecentAction) -> dict[str, Any]:
    return {
        "id": action.id,
        "kind": action.kind.value,
        "message": action.message,
        "timestamp": action.timestamp.isoformat(),
        "undoable": action.undoable,
    }


def create_activity_router(get_session: Callable[..., LongboxSession]) -> APIRouter:
    router = APIRouter(prefix="/api/activity")

    @router.get("")
    async def list_activity(session: LongboxSession = Depends(get_session)) -> dict[str, Any]:
        """Recent actions, newest first."""
        return {"actions": [_action_payload(action) for action in session.action_log.entries()]}

    @router.post("/{action_id}/undo")
    async def undo_action(
        action_id: str,
        session: LongboxSession = Depends(get_session),
    ) -> dict[str, Any]:
        if session.action_log.get(action_id) is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Action {action_id} not found",
            )
        try:
            restored = await session.engine.undo(action_id)
        except UndoError as e:
            logger.warning("Undo failed", action_id=action_id, error=str(e))
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
        return {"action_id": action_id, "file": restored.model_dump(mode="json")}

    return router
