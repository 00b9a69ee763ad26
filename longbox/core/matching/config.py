"""Matching configuration - similarity thresholds and scoring weights."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any

import structlog

logger = structlog.get_logger("longbox.matching.config")


@dataclass(frozen=True)
class MatchingConfig:
    """Configuration for knowledge base and ComicVine matching.

    This class centralizes all thresholds and weights, so matching behaviour
    can be tuned from the "matching" section of settings.json without code
    changes.
    """

    # Knowledge base similarity (0.0-1.0)
    minimum_similarity: float = 0.6
    containment_score: float = 0.9  # one normalized name contains the other
    token_overlap_bonus: float = 0.2  # added to the Jaccard index when words are shared
    candidate_limit: int = 8
    suggestion_limit: int = 8

    # ComicVine scoring weights
    issue_number_exact_match: float = 5.0
    series_name_exact_match: float = 3.0
    series_name_prefix_match: float = 1.5
    series_name_substring_match: float = 1.0
    year_match: float = 0.5
    publisher_match: float = 1.0

    # ComicVine thresholds
    minimum_volume_confidence: float = 0.5
    max_volume_score: float = 4.5  # 3.0 (name) + 0.5 (year) + 1.0 (publisher)

    # Validation
    minimum_series_name_length_for_rejection: int = 5  # Don't reject if series name is too short

    # Search limits
    volume_search_limit: int = 10


# Default config instance
DEFAULT_CONFIG = MatchingConfig()


def load_matching_config(settings: dict[str, Any] | None) -> MatchingConfig:
    """Build a MatchingConfig from the "matching" section of settings.json.

    Unknown keys are ignored; invalid values fall back to the defaults.

    Args:
        settings: Parsed settings.json content (may be None or empty)

    Returns:
        MatchingConfig instance
    """
    section = (settings or {}).get("matching")
    if not section:
        return DEFAULT_CONFIG
    if not isinstance(section, dict):
        logger.warning("Ignoring non-object matching section", value_type=type(section).__name__)
        return DEFAULT_CONFIG

    known = {field.name for field in fields(MatchingConfig)}
    overrides: dict[str, Any] = {}
    for key, value in section.items():
        if key not in known:
            logger.warning("Ignoring unknown matching setting", key=key)
            continue
        default = getattr(DEFAULT_CONFIG, key)
        try:
            overrides[key] = type(default)(value)
        except (TypeError, ValueError):
            logger.warning("Invalid matching setting, using default", key=key, value=value)

    if not 0.0 < overrides.get("minimum_similarity", DEFAULT_CONFIG.minimum_similarity) <= 1.0:
        logger.warning("minimum_similarity must be in (0, 1], using default")
        overrides.pop("minimum_similarity", None)

    return MatchingConfig(**overrides)
