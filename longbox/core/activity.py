"""Action log: bounded, session-scoped history of engine actions with undo payloads."""

from __future__ import annotations

import asyncio
import datetime
import uuid
from collections import deque
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

import structlog

logger = structlog.get_logger("longbox.activity")

DEFAULT_ACTION_LIMIT = 20


class ActionKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


class UndoKind(str, Enum):
    ORGANIZE = "organize"
    SKIP = "skip"


@dataclass(frozen=True)
class UndoPayload:
    """Instructions for reversing one action.

    Attributes:
        kind: organize (file was copied/moved) or skip (file left the queue)
        file_id: Queued file the action applied to
        queued_file: Snapshot of the queued file, used to put it back
        source_path: Where the file was before organizing
        final_path: Where the organizer put it
        mode: "copy" or "move"
    """

    kind: UndoKind
    file_id: str
    queued_file: dict[str, Any] = field(default_factory=dict)
    source_path: str | None = None
    final_path: str | None = None
    mode: str | None = None


@dataclass(frozen=True)
class RecentAction:
    id: str
    kind: ActionKind
    message: str
    timestamp: datetime.datetime
    undo: UndoPayload | None = None

    @property
    def undoable(self) -> bool:
        return self.undo is not None


class ActionLog:
    """Keeps the ``limit`` most recent actions, newest first.

    Eviction is strict FIFO by insertion order. Appends are serialized
    through a lock so concurrent organizer completions never interleave.
    Not persisted: undo only covers the current session.
    """

    def __init__(self, limit: int = DEFAULT_ACTION_LIMIT) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self._entries: deque[RecentAction] = deque(maxlen=limit)
        self._lock = asyncio.Lock()

    async def record(
        self,
        kind: ActionKind | str,
        message: str,
        undo: UndoPayload | None = None,
    ) -> RecentAction:
        action = RecentAction(
            id=uuid.uuid4().hex,
            kind=ActionKind(kind),
            message=message,
            timestamp=datetime.datetime.now(datetime.UTC),
            undo=undo,
        )
        async with self._lock:
            self._entries.appendleft(action)
        logger.info("Action recorded", action_id=action.id, kind=action.kind.value, message=message)
        return action

    def entries(self) -> list[RecentAction]:
        """Actions, newest first."""
        return list(self._entries)

    def get(self, action_id: str) -> RecentAction | None:
        return next((action for action in self._entries if action.id == action_id), None)

    async def mark_undone(self, action_id: str) -> RecentAction | None:
        """Drop the undo payload of an action so it cannot be undone twice."""
        async with self._lock:
            for index, action in enumerate(self._entries):
                if action.id == action_id:
                    updated = replace(action, undo=None)
                    self._entries[index] = updated
                    return updated
        return None

    def __len__(self) -> int:
        return len(self._entries)
