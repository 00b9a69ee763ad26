"""Request and per-file log context, kept in structlog contextvars."""

from __future__ import annotations

import uuid
from collections.abc import Generator
from contextlib import contextmanager

import structlog.contextvars as contextvars


def generate_trace_id() -> str:
    """32 hex characters."""
    return uuid.uuid4().hex


def get_trace_id() -> str | None:
    return contextvars.get_contextvars().get("trace_id")


@contextmanager
def trace_context(trace_id: str | None = None) -> Generator[str]:
    """Bind a trace id (a new one when None) for the duration of the block.

    Any trace id bound outside the block is back in place afterwards.
    """
    trace_id = trace_id or generate_trace_id()
    with contextvars.bound_contextvars(trace_id=trace_id):
        yield trace_id


@contextmanager
def file_context(file_id: str, file_name: str | None = None) -> Generator[None]:
    """Tag every log line emitted in the block with the file being processed.

    asyncio tasks copy the context when created, so concurrent pipelines keep
    their own file_id.
    """
    values = {"file_id": file_id}
    if file_name:
        values["file_name"] = file_name
    with contextvars.bound_contextvars(**values):
        yield
