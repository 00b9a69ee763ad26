"""Matching primitives shared by the knowledge base matcher and ComicVine lookups.

Thresholds and weights live in MatchingConfig so they can be tuned from
settings.json; each criterion returns a (score, reason) pair.
"""

from .config import DEFAULT_CONFIG, MatchingConfig, load_matching_config
from .criteria import (
    edit_similarity,
    match_issue_number,
    match_publisher,
    match_series_name,
    match_year,
    normalized_similarity,
    publishers_agree,
    series_similarity,
    token_overlap_similarity,
)
from .evaluator import (
    MatchResult,
    evaluate_issue_candidate,
    evaluate_volume_candidate,
    normalize_confidence,
)

__all__ = [
    "MatchingConfig",
    "DEFAULT_CONFIG",
    "load_matching_config",
    "edit_similarity",
    "token_overlap_similarity",
    "series_similarity",
    "normalized_similarity",
    "match_issue_number",
    "match_series_name",
    "match_year",
    "match_publisher",
    "publishers_agree",
    "MatchResult",
    "evaluate_issue_candidate",
    "evaluate_volume_candidate",
    "normalize_confidence",
]
