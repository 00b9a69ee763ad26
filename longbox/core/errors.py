"""Error types for the identification and organization engine.

Unresolved series, partial matches and template gaps are outcomes recorded on
the queued file, not exceptions. The exceptions below are raised inside a
component and converted into per-file results before they reach a caller.
"""

from __future__ import annotations


class LongboxError(Exception):
    """Base exception for Longbox."""


class LookupFailure(LongboxError):
    """A reference database or remote API lookup failed or timed out."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"{source} lookup failed: {reason}")
        self.source = source
        self.reason = reason


class OrganizeFailure(LongboxError):
    """A filesystem operation performed by the organizer failed."""

    def __init__(self, cause: str) -> None:
        super().__init__(cause)
        self.cause = cause


class NotOrganizableError(LongboxError):
    """A queued file is not in a state that allows organizing it."""


class UndoError(LongboxError):
    """An action cannot be undone (unknown, already undone, or not undoable)."""
