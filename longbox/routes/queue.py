"""File queue routes: queueing, processing, learning mode and organizing."""

from __future__ import annotations

import dataclasses
from collections.abc import Callable
from pathlib import Path
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from longbox.core.dependencies import get_queued_file
from longbox.core.engine import IdentificationResult
from longbox.core.errors import NotOrganizableError
from longbox.core.knowledge import KnowledgeBaseMatcher
from longbox.core.parser import parse_filename
from longbox.core.session import LongboxSession
from longbox.core.utils import COMIC_EXTENSIONS

logger = structlog.get_logger("longbox.routes.queue")


class AddFilesRequest(BaseModel):
    paths: list[str] = Field(default_factory=list, description="Comic files to queue")
    folder: str | None = Field(default=None, description="Folder scanned recursively")


class ProcessRequest(BaseModel):
    file_ids: list[str] | None = Field(
        default=None, description="Files to identify (all pending files when omitted)"
    )
    concurrency_limit: int | None = Field(default=None, ge=1, le=32)
    wait: bool = Field(default=False, description="Wait for the run and return its results")


class ResolveRequest(BaseModel):
    series: str = Field(min_length=1)
    publisher: str | None = None
    remember: bool = Field(default=True, description="Add the mapping to the knowledge base")


class OrganizeRequest(BaseModel):
    keep_original: bool | None = Field(
        default=None, description="Copy (True) or move (False); settings default when omitted"
    )


def _result_payload(result: IdentificationResult) -> dict[str, Any]:
    payload = dataclasses.asdict(result)
    payload["status"] = result.status.value
    payload["confidence"] = result.confidence.value if result.confidence else None
    payload["match_kind"] = result.match_kind.value
    payload["creators"] = [creator.model_dump() for creator in result.creators]
    return payload


def create_queue_router(get_session: Callable[..., LongboxSession]) -> APIRouter:
    """Create the file queue router.

    Args:
        get_session: Dependency returning the active LongboxSession

    Returns:
        Configured APIRouter instance
    """
    router = APIRouter(prefix="/api/queue")

    @router.get("")
    async def list_queue(session: LongboxSession = Depends(get_session)) -> dict[str, Any]:
        files = session.queue.list()
        return {
            "files": [queued.model_dump(mode="json") for queued in files],
            "total": len(files),
            "pending": len(session.queue.pending()),
        }

    @router.post("", status_code=status.HTTP_201_CREATED)
    async def add_files(
        request: AddFilesRequest,
        session: LongboxSession = Depends(get_session),
    ) -> dict[str, Any]:
        """Queue files and/or every comic file under a folder.

        Paths that do not exist or are not comic files are reported as rejected.
        """
        if not request.paths and not request.folder:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Provide paths or a folder to queue",
            )

        accepted: list[Path] = []
        rejected: list[str] = []
        for raw in request.paths:
            path = Path(raw)
            if path.is_file() and path.suffix.lower() in COMIC_EXTENSIONS:
                accepted.append(path)
            else:
                rejected.append(raw)

        added = session.queue.add_paths(accepted)
        if request.folder:
            try:
                added.extend(await session.queue.add_folder(request.folder))
            except NotADirectoryError as e:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

        logger.info("Files queued", added=len(added), rejected=len(rejected))
        return {
            "added": [queued.model_dump(mode="json") for queued in added],
            "rejected": rejected,
        }

    @router.delete("/{file_id}")
    async def remove_file(
        file_id: str,
        session: LongboxSession = Depends(get_session),
    ) -> dict[str, Any]:
        get_queued_file(session, file_id)
        session.engine.remove(file_id)
        return {"file_id": file_id, "status": "removed"}

    @router.post("/process")
    async def process_files(
        request: ProcessRequest,
        session: LongboxSession = Depends(get_session),
    ) -> dict[str, Any]:
        """Identify queued files concurrently.

        Without ``wait`` the run continues in the background and its results
        are applied to the queued files as they complete.
        """
        if request.file_ids is None:
            files = session.queue.pending()
        else:
            files = [get_queued_file(session, file_id) for file_id in request.file_ids]

        run = session.engine.process(files, request.concurrency_limit)
        if not request.wait:
            return {"status": "started", "files": len(files)}

        results = await run.wait()
        stats = session.engine.processing_stats(results)
        return {
            "status": "cancelled" if run.cancelled else "completed",
            "files": len(files),
            "results": [_result_payload(result) for result in results],
            "stats": dataclasses.asdict(stats),
        }

    @router.post("/cancel")
    async def cancel_processing(session: LongboxSession = Depends(get_session)) -> dict[str, Any]:
        return {"cancelled": session.engine.cancel()}

    @router.post("/{file_id}/resolve")
    async def resolve_file(
        file_id: str,
        request: ResolveRequest,
        session: LongboxSession = Depends(get_session),
    ) -> dict[str, Any]:
        """Identify a file again with a user-supplied series (learning mode)."""
        queued = get_queued_file(session, file_id)
        if request.remember:
            result = await session.engine.learn(queued, request.series, request.publisher)
        else:
            result = await session.engine.identify(
                queued, forced_series=request.series, forced_publisher=request.publisher
            )
        return {"file": queued.model_dump(mode="json"), "result": _result_payload(result)}

    @router.get("/{file_id}/candidates")
    async def file_candidates(
        file_id: str,
        limit: int | None = Query(default=None, ge=1, le=50),
        session: LongboxSession = Depends(get_session),
    ) -> dict[str, Any]:
        """Knowledge base series ranked against the file name, for resolving by hand."""
        queued = get_queued_file(session, file_id)
        parsed = parse_filename(queued.path or queued.name)
        matcher = KnowledgeBaseMatcher(session.knowledge.snapshot, session.matching_config)
        return {
            "file_id": file_id,
            "parsed_series": parsed.series,
            "candidates": [
                {
                    "series": match.entry.series,
                    "publisher": match.entry.publisher,
                    "volume": match.volume.volume if match.volume else None,
                    "kind": match.kind.value,
                    "similarity": round(match.similarity, 3),
                }
                for match in matcher.candidates(parsed, limit)
                if match.entry is not None
            ],
        }

    @router.get("/{file_id}/plan")
    async def plan_file(
        file_id: str,
        session: LongboxSession = Depends(get_session),
    ) -> dict[str, Any]:
        queued = get_queued_file(session, file_id)
        try:
            rendered = session.engine.plan(queued)
        except NotOrganizableError as e:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
        return {
            "file_id": file_id,
            "relative_path": rendered.relative_path,
            "template_gaps": list(rendered.template_gaps),
            "library_root": str(session.organizer.library_root),
        }

    @router.post("/{file_id}/organize")
    async def organize_file(
        file_id: str,
        request: OrganizeRequest | None = None,
        session: LongboxSession = Depends(get_session),
    ) -> dict[str, Any]:
        queued = get_queued_file(session, file_id)
        keep_original = request.keep_original if request else None
        try:
            outcome = await session.engine.organize(queued, keep_original=keep_original)
        except NotOrganizableError as e:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

        if not outcome.result.success:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=outcome.result.error or "Organize failed",
            )
        return {
            "file_id": file_id,
            "mode": outcome.result.mode,
            "final_path": outcome.result.final_path,
            "action_id": outcome.action.id if outcome.action else None,
            "comic": outcome.comic.model_dump(mode="json") if outcome.comic else None,
        }

    @router.post("/{file_id}/skip")
    async def skip_file(
        file_id: str,
        session: LongboxSession = Depends(get_session),
    ) -> dict[str, Any]:
        queued = get_queued_file(session, file_id)
        action = await session.engine.skip(queued)
        return {"file_id": file_id, "action_id": action.id, "status": "skipped"}

    return router
