"""Shared utility functions for Longbox."""

from __future__ import annotations

import datetime
import html
import re
from typing import Any

# File extensions recognised as comic files
COMIC_EXTENSIONS = {".cbz", ".cbr", ".cb7", ".cbt", ".zip", ".rar", ".7z", ".pdf"}

# Earliest plausible year for a comic publication
MIN_PLAUSIBLE_YEAR = 1930


def max_plausible_year() -> int:
    """Latest plausible publication year (next year, for pre-dated covers)."""
    return datetime.date.today().year + 1


def is_plausible_year(year: int | None) -> bool:
    """Check that a year falls in the plausible publication range."""
    if year is None:
        return False
    return MIN_PLAUSIBLE_YEAR <= year <= max_plausible_year()


def normalize_issue_number(value: str | None) -> float | None:
    """Normalize an issue number string to a float.

    Handles fractional issue numbers (½, ¼, ¾) and various formats.

    Args:
        value: Issue number string (e.g., "001", "1.5", "½", "12A")

    Returns:
        Normalized issue number as float, or None if invalid
    """
    if not value:
        return None
    text = value.strip().lower()
    if not text:
        return None
    replacements = {
        "½": ".5",
        "¼": ".25",
        "¾": ".75",
    }
    for token, replacement in replacements.items():
        text = text.replace(token, replacement)
    text = text.replace(",", ".").replace("_", ".").replace("#", " ")
    text = re.sub(r"(?<=\d)[a-z]+", "", text)
    text = re.sub(r"[^0-9.\-]", " ", text)
    text = text.strip()
    if not text:
        return None
    for candidate in text.split():
        if candidate.count(".") > 1:
            continue
        if candidate in {"-", "--", "-.", "."}:
            continue
        try:
            return float(candidate)
        except ValueError:
            continue
    return None


def issue_numbers_match(left: str | None, right: str | None) -> bool:
    """Compare two issue strings numerically ("001" == "1"), falling back to text."""
    if not left or not right:
        return False
    left_value = normalize_issue_number(left)
    right_value = normalize_issue_number(right)
    if left_value is not None and right_value is not None:
        return abs(left_value - right_value) < 0.01
    return left.strip().lower() == right.strip().lower()


def normalize_series_name(value: str | None) -> str:
    """Normalize a series name for comparison.

    Case-folds, turns "&" into "and", strips punctuation and collapses
    whitespace. Hyphenated words are split ("Spider-Man" -> "spider man") so
    "Spiderman" and "Spider-Man" compare closely.

    Args:
        value: Name to normalize

    Returns:
        Normalized name (lowercase words separated by single spaces)
    """
    if not value:
        return ""
    normalized = value.casefold()
    normalized = normalized.replace("&", " and ")
    normalized = normalized.replace("'", "").replace("’", "")
    normalized = re.sub(r"[^\w\s]", " ", normalized)
    normalized = normalized.replace("_", " ")
    return re.sub(r"\s+", " ", normalized).strip()


def compact_label(value: str | None) -> str:
    """Normalized name without spaces ("Spider-Man" -> "spiderman")."""
    return normalize_series_name(value).replace(" ", "")


def _extract_numeric_id(value: Any) -> int | None:
    """Extract a numeric ID from a value (usually from ComicVine API response).

    Args:
        value: Value that may contain an ID (e.g., "4050-123456", 123456)

    Returns:
        Numeric ID as int, or None if not found
    """
    if value is None:
        return None
    text = str(value).strip()
    match = re.search(r"(\d+)$", text)
    if not match:
        return None
    return int(match.group(1))


def _extract_year(value: str | None) -> int | None:
    """Extract a plausible 4-digit year from a date-like string ("2012-03-14")."""
    if not value:
        return None
    match = re.search(r"(19|20)\d{2}", value)
    if not match:
        return None
    year = int(match.group(0))
    return year if is_plausible_year(year) else None


def strip_html(value: str | None) -> str | None:
    """Reduce an HTML description (ComicVine) to plain text."""
    if not value:
        return None
    text = re.sub(r"<br\s*/?>|</p>", "\n", value, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", "", text)
    text = html.unescape(text)
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n\s*\n+", "\n\n", text)
    return text.strip() or None
