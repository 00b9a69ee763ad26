"""Core data models for Longbox.

Queue and catalog records are pydantic models so they serialize straight into
API responses; FormatValue is an internal dataclass used by the path formatter.
"""

from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field


class ConfidenceLevel(str, Enum):
    """Engine-assigned certainty of a resolved record, ordered Low < Medium < High."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, ConfidenceLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, ConfidenceLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, ConfidenceLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, ConfidenceLevel):
            return NotImplemented
        return self.rank >= other.rank


_CONFIDENCE_RANK = {
    ConfidenceLevel.LOW: 0,
    ConfidenceLevel.MEDIUM: 1,
    ConfidenceLevel.HIGH: 2,
}


class FileStatus(str, Enum):
    """Lifecycle status of a queued file."""

    PENDING = "Pending"
    SUCCESS = "Success"
    WARNING = "Warning"
    ERROR = "Error"


class Creator(BaseModel):
    """A credited creator (writer, artist, ...)."""

    name: str
    role: str


class QueuedFile(BaseModel):
    """One file pending identification/organization.

    Created Pending with all metadata null; the engine fills the resolved
    fields in place. Owned by the FileQueue.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    path: str
    series: str | None = None
    issue: str | None = None
    year: int | None = None
    publisher: str | None = None
    volume: str | None = None
    confidence: ConfidenceLevel | None = None
    status: FileStatus = FileStatus.PENDING
    page_count: int | None = None

    summary: str | None = None
    source: str | None = None  # knowledge, reference, remote, user, filename
    error: str | None = None
    cancelled: bool = False


class Comic(BaseModel):
    """Catalog entry produced after a successful organization.

    The engine builds it; persisting it belongs to the library store.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    series: str
    issue: str | None = None
    year: int | None = None
    publisher: str | None = None
    volume: str | None = None
    summary: str | None = None
    title: str | None = None
    publication_date: str | None = None
    cover_url: str | None = None
    creators: list[Creator] = Field(default_factory=list)
    date_added: datetime.datetime = Field(
        default_factory=lambda: datetime.datetime.now(datetime.UTC)
    )
    file_path: str
    rating: int | None = Field(default=None, ge=0, le=6)


@dataclass
class FormatValue:
    """Value container for path templates with support for numeric padding."""

    default: str
    numeric: float | None = None
    raw: str | None = None

    def __format__(self, format_spec: str) -> str:
        """Format the value according to the spec (e.g. '000' for zero-padding)."""
        spec = format_spec.strip()
        if not spec:
            return self.default

        if spec.isdigit():
            width = len(spec)
            if self.numeric is not None:
                if float(self.numeric).is_integer():
                    return f"{int(round(self.numeric)):0{width}d}"
                text = f"{self.numeric:.2f}".rstrip("0").rstrip(".")
                integer_part, _, decimal_part = text.partition(".")
                padded = integer_part.zfill(width)
                return f"{padded}.{decimal_part}" if decimal_part else padded
            candidate = (self.raw or "").replace(".", "")
            if candidate.isdigit():
                return candidate.zfill(width)
            return self.default

        try:
            if self.numeric is not None:
                return format(self.numeric, spec)
            return format(self.default, spec)
        except (ValueError, TypeError):
            return self.default

    def __str__(self) -> str:
        return self.default
