"""Destination naming and file organization."""

from longbox.core.processing.models import NamingSettings
from longbox.core.processing.naming import PathFormatter, RenderedPath, format_path
from longbox.core.processing.organizer import (
    Filesystem,
    LocalFilesystem,
    Organizer,
    OrganizeResult,
)

__all__ = [
    "Filesystem",
    "LocalFilesystem",
    "NamingSettings",
    "OrganizeResult",
    "Organizer",
    "PathFormatter",
    "RenderedPath",
    "format_path",
]
