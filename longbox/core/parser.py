"""Token parser: extracts series, issue, year, volume and publisher hints from file names."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePosixPath, PureWindowsPath

from longbox.core.utils import COMIC_EXTENSIONS, is_plausible_year, normalize_series_name

# Normalized publisher tag -> canonical publisher name
KNOWN_PUBLISHERS: dict[str, str] = {
    "marvel": "Marvel Comics",
    "marvel comics": "Marvel Comics",
    "dc": "DC Comics",
    "dc comics": "DC Comics",
    "image": "Image Comics",
    "image comics": "Image Comics",
    "dark horse": "Dark Horse Comics",
    "dark horse comics": "Dark Horse Comics",
    "idw": "IDW Publishing",
    "idw publishing": "IDW Publishing",
    "boom": "BOOM! Studios",
    "boom studios": "BOOM! Studios",
    "dynamite": "Dynamite Entertainment",
    "dynamite entertainment": "Dynamite Entertainment",
    "valiant": "Valiant Entertainment",
    "oni": "Oni Press",
    "oni press": "Oni Press",
    "vertigo": "Vertigo",
    "archie": "Archie Comics",
    "archie comics": "Archie Comics",
    "titan": "Titan Comics",
    "titan comics": "Titan Comics",
    "aftershock": "AfterShock Comics",
    "vault": "Vault Comics",
}

# Character or team name -> publisher, used when no explicit publisher tag exists
CHARACTER_PUBLISHERS: dict[str, str] = {
    "superman": "DC Comics",
    "batman": "DC Comics",
    "wonder woman": "DC Comics",
    "flash": "DC Comics",
    "green lantern": "DC Comics",
    "aquaman": "DC Comics",
    "green arrow": "DC Comics",
    "nightwing": "DC Comics",
    "batgirl": "DC Comics",
    "supergirl": "DC Comics",
    "harley quinn": "DC Comics",
    "catwoman": "DC Comics",
    "teen titans": "DC Comics",
    "justice league": "DC Comics",
    "suicide squad": "DC Comics",
    "spider man": "Marvel Comics",
    "spiderman": "Marvel Comics",
    "iron man": "Marvel Comics",
    "captain america": "Marvel Comics",
    "thor": "Marvel Comics",
    "hulk": "Marvel Comics",
    "daredevil": "Marvel Comics",
    "punisher": "Marvel Comics",
    "deadpool": "Marvel Comics",
    "wolverine": "Marvel Comics",
    "x men": "Marvel Comics",
    "fantastic four": "Marvel Comics",
    "avengers": "Marvel Comics",
    "black panther": "Marvel Comics",
    "venom": "Marvel Comics",
}

# Parenthesized/bracketed group, e.g. "(2012)", "[Image]", "(Zone-Empire)"
GROUP_PATTERN = re.compile(r"[\(\[]([^\(\)\[\]]*)[\)\]]")

YEAR_GROUP_PATTERN = re.compile(r"^(?:[A-Za-z]+\.?\s+)?(\d{4})$")
VOLUME_GROUP_PATTERN = re.compile(r"^(?:v|vol\.?|volume)\s*(\d{1,4})$", re.IGNORECASE)
VOLUME_PATTERN = re.compile(r"(?:^|\s)(?:v|vol\.?|volume)\s*(\d{1,4})(?=\s|$|[#,-])", re.IGNORECASE)

# Explicit issue markers come first; the bare-number fallbacks are not explicit
EXPLICIT_ISSUE_PATTERNS = (
    re.compile(r"#\s*(\d+(?:\.\d+)?[A-Za-z]?|½)(?![\w.])"),
    re.compile(r"\bissue\s*#?\s*(\d+(?:\.\d+)?)\b", re.IGNORECASE),
)
FALLBACK_ISSUE_PATTERNS = (
    re.compile(r"(?:^|\s)(0\d{2,3})(?=\s|$)"),
    re.compile(r"\s(\d{1,3}(?:\.\d{1,2})?)$"),
)

TRAILING_SEPARATORS = " -–—:,._"


@dataclass(frozen=True)
class ParsedFilename:
    """Partial metadata guess extracted from a file name.

    Attributes:
        series: Candidate series substring
        issue: Issue number exactly as written in the name ("001", "12.5", "1A")
        year: Year found in parentheses, within the plausible range
        volume: Volume marker ("v2", "Vol. 3", "(Volume 2016)")
        publisher: Publisher hint (from a tag, or guessed from a character name)
        publisher_source: "tag" or "character" when a publisher hint exists
        explicit_issue: An explicit "#NN" / "Issue NN" marker was found
        explicit_year: A year in parentheses was found
    """

    original: str
    series: str | None = None
    issue: str | None = None
    year: int | None = None
    volume: str | None = None
    publisher: str | None = None
    publisher_source: str | None = None
    explicit_issue: bool = False
    explicit_year: bool = False


def _basename(value: str) -> str:
    """Final path component for POSIX or Windows style paths."""
    name = PureWindowsPath(value).name if "\\" in value else PurePosixPath(value).name
    return name or value


def _strip_extension(name: str) -> str:
    stem, dot, suffix = name.rpartition(".")
    if not dot or not stem:
        return name
    if f".{suffix.lower()}" in COMIC_EXTENSIONS:
        return stem
    return name


def _classify_group(content: str) -> tuple[str, str | int | None]:
    """Classify the content of a (...) or [...] group."""
    text = content.strip()
    year_match = YEAR_GROUP_PATTERN.match(text)
    if year_match:
        year = int(year_match.group(1))
        if is_plausible_year(year):
            return "year", year
    volume_match = VOLUME_GROUP_PATTERN.match(text)
    if volume_match:
        return "volume", volume_match.group(1)
    publisher = KNOWN_PUBLISHERS.get(normalize_series_name(text))
    if publisher:
        return "publisher", publisher
    return "tag", None


def _publisher_from_characters(series: str) -> str | None:
    padded = f" {normalize_series_name(series)} "
    for character, publisher in CHARACTER_PUBLISHERS.items():
        if f" {character} " in padded:
            return publisher
    return None


def _clean_series(value: str) -> str | None:
    series = re.sub(r"\s+", " ", value).strip(TRAILING_SEPARATORS + " ")
    return series or None


def parse_filename(value: str) -> ParsedFilename:
    """Parse a comic file name into a partial metadata guess.

    Absent patterns yield None for that field only. The same input always
    yields the same result.

    Args:
        value: File name (a full path is accepted; only its last component is used)

    Returns:
        ParsedFilename with whatever could be extracted
    """
    original = value or ""
    text = _strip_extension(_basename(original)).replace("_", " ")

    year: int | None = None
    volume: str | None = None
    publisher: str | None = None

    # Every group is removed from the series; some of them carry metadata
    for match in GROUP_PATTERN.finditer(text):
        kind, extracted = _classify_group(match.group(1))
        if kind == "year" and year is None:
            year = extracted  # type: ignore[assignment]
        elif kind == "volume" and volume is None:
            volume = extracted  # type: ignore[assignment]
        elif kind == "publisher" and publisher is None:
            publisher = extracted  # type: ignore[assignment]
    text = GROUP_PATTERN.sub(" ", text)
    text = re.sub(r"\s+", " ", text).strip()

    volume_match = VOLUME_PATTERN.search(text)
    if volume_match:
        if volume is None:
            volume = volume_match.group(1)
        text = (text[: volume_match.start()] + " " + text[volume_match.end() :]).strip()

    issue: str | None = None
    explicit_issue = False
    series_text = text
    for pattern in EXPLICIT_ISSUE_PATTERNS:
        issue_match = pattern.search(text)
        if issue_match:
            issue = issue_match.group(1)
            explicit_issue = True
            before = text[: issue_match.start()]
            # "Batman #1 - Court of Owls": the series is what precedes the marker
            series_text = before if before.strip(TRAILING_SEPARATORS + " ") else text[
                issue_match.end() :
            ]
            break

    if issue is None:
        for pattern in FALLBACK_ISSUE_PATTERNS:
            issue_match = pattern.search(text)
            if issue_match:
                issue = issue_match.group(1)
                before = text[: issue_match.start()]
                series_text = (
                    before
                    if before.strip(TRAILING_SEPARATORS + " ")
                    else text[issue_match.end() :]
                )
                break

    series = _clean_series(series_text)

    publisher_source: str | None = "tag" if publisher else None
    if publisher is None and series:
        publisher = _publisher_from_characters(series)
        if publisher:
            publisher_source = "character"

    return ParsedFilename(
        original=original,
        series=series,
        issue=issue,
        year=year,
        volume=volume,
        publisher=publisher,
        publisher_source=publisher_source,
        explicit_issue=explicit_issue,
        explicit_year=year is not None,
    )
