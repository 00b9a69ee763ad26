"""Path formatter: renders relative destination paths from naming templates."""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any

import structlog

from longbox.core.models import FormatValue

logger = structlog.get_logger("longbox.processing.naming")


FIELD_TOKEN_PATTERN = re.compile(r"\{([^{}]+)\}")

# Placeholders a template may use
KNOWN_FIELDS = ("series", "issue", "year", "publisher", "volume")

# Characters that are illegal in file or folder names on at least one platform
ILLEGAL_CHARACTERS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')

FRACTION_GLYPHS = {"½": ".5", "¼": ".25", "¾": ".75"}


def sanitize_component(value: str) -> str:
    """Remove illegal characters and collapse whitespace in one path component."""
    cleaned = ILLEGAL_CHARACTERS.sub("", value)
    return re.sub(r"\s+", " ", cleaned).strip()


def _record_values(record: Mapping[str, Any] | Any) -> dict[str, Any]:
    if isinstance(record, Mapping):
        return {name: record.get(name) for name in KNOWN_FIELDS}
    return {name: getattr(record, name, None) for name in KNOWN_FIELDS}


def _padding_number(issue: str) -> float | None:
    """Value used for padding; None for variants like "1A" so they keep their text."""
    text = issue
    for glyph, decimal in FRACTION_GLYPHS.items():
        text = text.replace(glyph, decimal)
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _format_value(name: str, value: Any) -> FormatValue:
    text = str(value).strip()
    if name == "issue":
        return FormatValue(text, numeric=_padding_number(text), raw=text)
    if name == "year" and isinstance(value, int):
        return FormatValue(text, numeric=float(value), raw=text)
    return FormatValue(text)


def _render(template: str, record: Mapping[str, Any] | Any) -> tuple[str, list[str]]:
    values = _record_values(record)
    gaps: list[str] = []

    def substitute(match: re.Match[str]) -> str:
        token = match.group(0)
        field_name, _, format_spec = match.group(1).partition(":")
        name = field_name.strip().lower()
        value = values.get(name) if name in KNOWN_FIELDS else None
        if value is None or str(value).strip() == "":
            gaps.append(token)
            return token

        rendered = sanitize_component(format(_format_value(name, value), format_spec))
        if not rendered:
            gaps.append(token)
            return token
        return rendered

    return FIELD_TOKEN_PATTERN.sub(substitute, template), gaps


def format_path(template: str, record: Mapping[str, Any] | Any) -> str:
    """Substitute known placeholders in a template.

    Values are sanitized (``< > : " / \\ | ? *`` removed, whitespace
    collapsed). Placeholders whose field is null, and unknown placeholders,
    are left verbatim. A padding spec such as ``{issue:000}`` is honoured.

    Args:
        template: Template such as "{publisher}/{series} #{issue} ({year})"
        record: Mapping or object with series/issue/year/publisher/volume

    Returns:
        The rendered template (not resolved against any root)
    """
    rendered, _ = _render(template, record)
    return rendered


@dataclass(frozen=True)
class RenderedPath:
    """Relative destination path and the placeholders that stayed unresolved."""

    relative_path: str
    template_gaps: tuple[str, ...] = ()

    @property
    def has_gaps(self) -> bool:
        return bool(self.template_gaps)


def _clean_segments(path: str) -> list[str]:
    segments = []
    for segment in path.replace("\\", "/").split("/"):
        segment = segment.strip().strip(".").strip()
        if segment and segment not in (".", ".."):
            segments.append(segment)
    return segments


class PathFormatter:
    """Renders destination paths from folder and file templates."""

    def render_destination(
        self,
        folder_template: str,
        file_template: str,
        record: Mapping[str, Any] | Any,
        ext: str,
    ) -> RenderedPath:
        """Render "<folder>/<file><ext>" relative to the library root.

        Args:
            folder_template: Folder template ('/' separates sub-folders)
            file_template: File name template without extension
            record: Resolved metadata (Mapping or object)
            ext: Extension of the source file (".cbz" or "cbz")

        Returns:
            RenderedPath; gaps are reported, never raised
        """
        folder, folder_gaps = _render(folder_template, record)
        filename, file_gaps = _render(file_template, record)

        segments = _clean_segments(folder)
        file_segments = _clean_segments(filename)
        if not file_segments:
            file_segments = ["Unknown"]
        segments.extend(file_segments)

        suffix = ext if not ext or ext.startswith(".") else f".{ext}"
        segments[-1] = f"{segments[-1]}{suffix.lower()}"

        gaps = tuple(dict.fromkeys(folder_gaps + file_gaps))
        if gaps:
            logger.debug("Template placeholders left unresolved", gaps=list(gaps))
        return RenderedPath(str(PurePosixPath(*segments)), gaps)
