"""Organizer: copies or moves files into the library, collision-safe and all-or-nothing."""

from __future__ import annotations

import asyncio
import errno
import os
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Protocol

import structlog

from longbox.core.activity import UndoPayload
from longbox.core.errors import OrganizeFailure
from longbox.core.metrics import organize_operations_total

logger = structlog.get_logger("longbox.processing.organizer")

MODE_COPY = "copy"
MODE_MOVE = "move"
MODE_REVERT = "revert"

# Upper bound on "Name (N).ext" candidates tried for one destination
MAX_COLLISION_SUFFIX = 9999


class Filesystem(Protocol):
    """Blocking filesystem primitives; the organizer runs them in worker threads."""

    def exists(self, path: Path) -> bool: ...

    def make_dirs(self, path: Path) -> None: ...

    def reserve(self, path: Path) -> bool: ...

    def copy(self, source: Path, destination: Path) -> None: ...

    def move(self, source: Path, destination: Path) -> None: ...

    def remove(self, path: Path) -> None: ...


class LocalFilesystem:
    """Filesystem backed by the local disk."""

    def exists(self, path: Path) -> bool:
        return path.exists()

    def make_dirs(self, path: Path) -> None:
        path.mkdir(parents=True, exist_ok=True)

    def reserve(self, path: Path) -> bool:
        """Atomically create an empty placeholder; False when the name is taken."""
        try:
            with open(path, "xb"):
                pass
        except FileExistsError:
            return False
        return True

    def copy(self, source: Path, destination: Path) -> None:
        shutil.copy2(source, destination)

    def move(self, source: Path, destination: Path) -> None:
        """Rename in place; raises OSError(EXDEV) across filesystems."""
        os.replace(source, destination)

    def remove(self, path: Path) -> None:
        path.unlink(missing_ok=True)


@dataclass(frozen=True)
class OrganizeResult:
    """Outcome of one organizer operation.

    ``final_path`` may differ from ``requested_path`` after collision
    handling; callers must use it, not the requested one.
    """

    success: bool
    source_path: str
    requested_path: str
    final_path: str | None = None
    error: str | None = None
    mode: str = MODE_COPY


def _collision_candidate(target: Path, counter: int) -> Path:
    return target.with_name(f"{target.stem} ({counter}){target.suffix}")


class Organizer:
    """Performs copy/move operations relative to a library root.

    Never raises across its boundary: every failure is returned as an
    OrganizeResult with ``success=False`` and leaves no partial file behind.
    """

    def __init__(self, library_root: Path, filesystem: Filesystem | None = None) -> None:
        self.library_root = Path(library_root)
        self.filesystem: Filesystem = filesystem or LocalFilesystem()
        self._reserve_lock = asyncio.Lock()

    def resolve_destination(self, relative_destination: str) -> Path:
        """Resolve a relative destination under the library root.

        Raises:
            OrganizeFailure: The path is absolute or escapes the library root
        """
        relative = PurePosixPath(relative_destination.replace("\\", "/"))
        if relative.is_absolute() or ".." in relative.parts or not relative.parts:
            raise OrganizeFailure(f"Invalid destination path: {relative_destination!r}")
        return self.library_root.joinpath(*relative.parts)

    async def _reserve(self, target: Path) -> Path:
        """Create the destination folder and claim a free file name."""
        fs = self.filesystem
        async with self._reserve_lock:
            await asyncio.to_thread(fs.make_dirs, target.parent)
            candidate = target
            counter = 0
            while not await asyncio.to_thread(fs.reserve, candidate):
                counter += 1
                if counter > MAX_COLLISION_SUFFIX:
                    raise OrganizeFailure(f"No free file name for {target.name}")
                candidate = _collision_candidate(target, counter)
            return candidate

    async def organize(
        self,
        source: Path | str,
        relative_destination: str,
        keep_original: bool,
    ) -> OrganizeResult:
        """Copy (keep_original) or move a file to its destination.

        Args:
            source: File to organize
            relative_destination: Destination relative to the library root
            keep_original: Copy when True, move when False

        Returns:
            OrganizeResult carrying the final path actually used
        """
        source_path = Path(source)
        mode = MODE_COPY if keep_original else MODE_MOVE
        fs = self.filesystem
        log = logger.bind(source=str(source_path), destination=relative_destination, mode=mode)

        try:
            target = self.resolve_destination(relative_destination)
        except OrganizeFailure as e:
            return self._failed(source_path, relative_destination, mode, e.cause)

        if not await asyncio.to_thread(fs.exists, source_path):
            reason = f"Source file not found: {source_path}"
            return self._failed(source_path, str(target), mode, reason)

        if source_path.resolve() == target.resolve():
            log.info("File already at destination")
            organize_operations_total.labels(mode=mode, outcome="success").inc()
            return OrganizeResult(True, str(source_path), str(target), str(target), mode=mode)

        try:
            final = await self._reserve(target)
        except OrganizeFailure as e:
            return self._failed(source_path, str(target), mode, e.cause)
        except OSError as e:
            return self._failed(source_path, str(target), mode, f"Cannot create destination: {e}")

        try:
            await self._transfer(source_path, final, keep_original)
        except OSError as e:
            await asyncio.to_thread(fs.remove, final)
            log.error("Organize failed", error=str(e))
            return self._failed(source_path, str(target), mode, f"{type(e).__name__}: {e}")

        organize_operations_total.labels(mode=mode, outcome="success").inc()
        log.info("File organized", final_path=str(final), collision=final != target)
        return OrganizeResult(True, str(source_path), str(target), str(final), mode=mode)

    async def _transfer(self, source: Path, final: Path, keep_original: bool) -> None:
        """Write ``source`` to the reserved ``final`` path.

        Moves are a plain rename when possible; copies (and cross-device
        moves) go through a temporary sibling renamed into place, and a move
        only deletes the source once the copy is in place.
        """
        fs = self.filesystem
        if not keep_original:
            try:
                await asyncio.to_thread(fs.move, source, final)
                return
            except OSError as e:
                if e.errno != errno.EXDEV:
                    raise
                logger.debug("Cross-device move, falling back to copy", source=str(source))

        temp = final.with_name(f".{final.name}.{uuid.uuid4().hex[:8]}.part")
        try:
            await asyncio.to_thread(fs.copy, source, temp)
            await asyncio.to_thread(fs.move, temp, final)
        finally:
            await asyncio.to_thread(fs.remove, temp)

        if not keep_original:
            try:
                await asyncio.to_thread(fs.remove, source)
            except OSError:
                # The move did not happen: drop the copy so the source stays the only file
                await asyncio.to_thread(fs.remove, final)
                raise

    async def revert(self, payload: UndoPayload) -> OrganizeResult:
        """Undo an organize: move the file back, or delete the copy.

        Best effort; refuses to overwrite a file that reappeared at the
        original location.
        """
        fs = self.filesystem
        source = Path(payload.source_path or "")
        final = Path(payload.final_path or "")
        if not payload.source_path or not payload.final_path:
            return self._failed(source, str(final), MODE_REVERT, "Nothing to revert")

        try:
            if not await asyncio.to_thread(fs.exists, final):
                raise OrganizeFailure(f"Organized file no longer exists: {final}")

            if payload.mode == MODE_MOVE:
                if await asyncio.to_thread(fs.exists, source):
                    raise OrganizeFailure(f"Original location is occupied: {source}")
                await asyncio.to_thread(fs.make_dirs, source.parent)
                try:
                    await asyncio.to_thread(fs.move, final, source)
                except OSError as e:
                    if e.errno != errno.EXDEV:
                        raise
                    await asyncio.to_thread(fs.copy, final, source)
                    await asyncio.to_thread(fs.remove, final)
            else:
                await asyncio.to_thread(fs.remove, final)
        except OrganizeFailure as e:
            return self._failed(source, str(final), MODE_REVERT, e.cause)
        except OSError as e:
            return self._failed(source, str(final), MODE_REVERT, f"{type(e).__name__}: {e}")

        organize_operations_total.labels(mode=MODE_REVERT, outcome="success").inc()
        logger.info(
            "Organize reverted", source=str(source), final_path=str(final), mode=payload.mode
        )
        return OrganizeResult(True, str(final), str(source), str(source), mode=MODE_REVERT)

    def _failed(self, source: Path, requested: str, mode: str, cause: str) -> OrganizeResult:
        organize_operations_total.labels(mode=mode, outcome="failure").inc()
        logger.warning("Organizer operation failed", source=str(source), mode=mode, error=cause)
        return OrganizeResult(False, str(source), requested, None, error=cause, mode=mode)
