"""File queue: owns the QueuedFile records waiting to be identified and organized."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog

from longbox.core.models import FileStatus, QueuedFile
from longbox.core.utils import COMIC_EXTENSIONS

logger = structlog.get_logger("longbox.queue")


def _collect_comic_files(folder: Path) -> list[Path]:
    """Collect all comic files from a folder recursively.

    Args:
        folder: Folder path to scan

    Returns:
        Comic file paths, sorted for a stable queue order
    """
    files: list[Path] = []
    try:
        for path in folder.rglob("*"):
            if path.is_file() and path.suffix.lower() in COMIC_EXTENSIONS:
                files.append(path)
    except OSError as e:
        logger.warning("Error scanning folder", folder=str(folder), error=str(e))
    return sorted(files)


class FileQueue:
    """Ordered set of queued files keyed by id.

    The queue generates ids; a path is queued at most once.
    """

    def __init__(self) -> None:
        self._files: dict[str, QueuedFile] = {}

    def add_path(self, path: Path | str) -> QueuedFile:
        """Queue one file; returns the existing record when the path is already queued."""
        file_path = Path(path)
        existing = self.find_by_path(file_path)
        if existing is not None:
            return existing

        queued = QueuedFile(name=file_path.name, path=str(file_path))
        self._files[queued.id] = queued
        logger.debug("File queued", file_id=queued.id, path=queued.path)
        return queued

    def add_paths(self, paths: Iterable[Path | str]) -> list[QueuedFile]:
        return [self.add_path(path) for path in paths]

    async def add_folder(self, folder: Path | str) -> list[QueuedFile]:
        """Queue every comic file found under a folder.

        Raises:
            NotADirectoryError: The folder does not exist
        """
        root = Path(folder)
        if not root.is_dir():
            raise NotADirectoryError(f"Not a folder: {root}")
        paths = await asyncio.to_thread(_collect_comic_files, root)
        added = self.add_paths(paths)
        logger.info("Folder queued", folder=str(root), files=len(added))
        return added

    def find_by_path(self, path: Path | str) -> QueuedFile | None:
        target = str(Path(path))
        return next((item for item in self._files.values() if item.path == target), None)

    def get(self, file_id: str) -> QueuedFile | None:
        return self._files.get(file_id)

    def remove(self, file_id: str) -> QueuedFile | None:
        removed = self._files.pop(file_id, None)
        if removed is not None:
            logger.debug("File removed from queue", file_id=file_id)
        return removed

    def list(self) -> list[QueuedFile]:
        return list(self._files.values())

    def pending(self) -> list[QueuedFile]:
        return [item for item in self._files.values() if item.status is FileStatus.PENDING]

    def restore(self, snapshot: dict[str, Any]) -> QueuedFile:
        """Put a file back from a serialized snapshot (undo of skip or organize)."""
        queued = QueuedFile.model_validate(snapshot)
        self._files[queued.id] = queued
        logger.debug("File restored to queue", file_id=queued.id, path=queued.path)
        return queued

    def clear(self) -> None:
        self._files.clear()

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, file_id: object) -> bool:
        return file_id in self._files
