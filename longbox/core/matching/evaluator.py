"""Match evaluator - orchestrates all criteria for ComicVine candidates."""

from __future__ import annotations

from typing import Any

import structlog

from longbox.core.utils import compact_label

from .config import DEFAULT_CONFIG, MatchingConfig
from .criteria import (
    match_issue_number,
    match_publisher,
    match_series_name,
    match_year,
)

logger = structlog.get_logger("longbox.matching")


class MatchResult:
    """Result of a match evaluation.

    Attributes:
        score: Raw score (sum of all criteria scores)
        details: List of strings explaining each match criterion
        rejected: Whether this candidate should be rejected
    """

    def __init__(self, score: float, details: list[str], rejected: bool = False):
        self.score = score
        self.details = details
        self.rejected = rejected

    def __repr__(self) -> str:
        status = "REJECTED" if self.rejected else "ACCEPTED"
        return f"MatchResult(score={self.score}, status={status}, details={len(self.details)})"


def normalize_confidence(raw_score: float, max_score: float) -> float:
    """Normalize a raw score to a confidence between 0.0 and 1.0."""
    if raw_score <= 0 or max_score <= 0:
        return 0.0
    return min(raw_score / max_score, 1.0)


def _publisher_name(item: dict[str, Any]) -> str | None:
    pub_data = item.get("publisher")
    if isinstance(pub_data, dict):
        return pub_data.get("name")
    if pub_data:
        return str(pub_data)
    return None


def evaluate_volume_candidate(
    volume_item: dict[str, Any],
    search_params: dict[str, Any],
    config: MatchingConfig = DEFAULT_CONFIG,
) -> MatchResult:
    """Evaluate a ComicVine volume against search parameters.

    Args:
        volume_item: Volume data from ComicVine ("name", "start_year", "publisher")
        search_params: Dict with keys:
            - series_name: str (required)
            - year: int | None
            - publisher: str | None
        config: Matching configuration

    Returns:
        MatchResult with score and details
    """
    details: list[str] = []

    name_score, name_reason = match_series_name(
        volume_item.get("name") or "",
        search_params["series_name"],
        config,
    )
    details.append(name_reason)
    if name_score == 0.0:
        series_key = compact_label(search_params["series_name"])
        if len(series_key) > config.minimum_series_name_length_for_rejection:
            return MatchResult(-1.0, details, rejected=True)

    year_score, year_reason = match_year(
        volume_item.get("start_year"),
        search_params.get("year"),
        config,
    )
    details.append(year_reason)

    pub_score, pub_reason = match_publisher(
        _publisher_name(volume_item),
        search_params.get("publisher"),
        config,
    )
    if pub_score > 0:
        details.append(pub_reason)

    return MatchResult(name_score + year_score + pub_score, details, rejected=False)


def evaluate_issue_candidate(
    issue_item: dict[str, Any],
    search_params: dict[str, Any],
    config: MatchingConfig = DEFAULT_CONFIG,
) -> MatchResult:
    """Evaluate a ComicVine issue of an already chosen volume.

    Args:
        issue_item: Issue data from ComicVine (must have "issue_number")
        search_params: Dict with key issue_number (the string as parsed)
        config: Matching configuration

    Returns:
        MatchResult; rejected when the issue number does not match
    """
    issue_score, issue_reason = match_issue_number(
        issue_item.get("issue_number"),
        search_params.get("issue_number"),
        config,
    )
    if issue_score < 0:
        logger.debug(
            "Rejecting issue candidate",
            candidate=issue_item.get("issue_number"),
            reason=issue_reason,
        )
        return MatchResult(-1.0, [issue_reason], rejected=True)
    return MatchResult(issue_score, [issue_reason], rejected=False)
