"""Pydantic models for organization settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from longbox.core.config import Settings


class NamingSettings(BaseModel):
    """Destination naming and copy/move behaviour used by the engine."""

    folder_name_format: str = Field(
        default="{publisher}/{series} ({volume})",
        description="Template for the destination folder ('/' separates sub-folders)",
    )
    file_name_format: str = Field(
        default="{series} #{issue} ({year})",
        description="Template for the destination file name (extension is kept)",
    )
    keep_original_files: bool = Field(
        default=True,
        description="Copy into the library (True) or move (False)",
    )

    @classmethod
    def from_settings(cls, settings: Settings) -> NamingSettings:
        return cls(
            folder_name_format=settings.folder_name_format,
            file_name_format=settings.file_name_format,
            keep_original_files=settings.keep_original_files,
        )
