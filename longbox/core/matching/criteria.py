"""Individual match criteria evaluators.

Each function evaluates a single aspect of a match (series name, issue number,
year, publisher) and returns a score and reason, so each criterion can be
tested on its own and the weights tuned through MatchingConfig.
"""

from __future__ import annotations

from difflib import SequenceMatcher

from longbox.core.utils import compact_label, normalize_issue_number, normalize_series_name

from .config import DEFAULT_CONFIG, MatchingConfig


def token_overlap_similarity(
    left: str,
    right: str,
    config: MatchingConfig = DEFAULT_CONFIG,
) -> tuple[float, str]:
    """Word-level similarity between two normalized names.

    Identical names score 1.0, whole-word containment scores
    ``containment_score``; otherwise the Jaccard index of the word sets plus
    ``token_overlap_bonus`` when at least one word is shared.

    Args:
        left: Normalized name
        right: Normalized name
        config: Matching configuration

    Returns:
        Tuple of (similarity, reason)
    """
    if not left or not right:
        return 0.0, "Empty name"
    if left == right:
        return 1.0, f"Identical: '{left}'"

    if f" {left} " in f" {right} " or f" {right} " in f" {left} ":
        return config.containment_score, f"Containment: '{left}' / '{right}'"

    left_words = set(left.split())
    right_words = set(right.split())
    shared = left_words & right_words
    union = left_words | right_words
    jaccard = len(shared) / len(union)
    bonus = config.token_overlap_bonus if shared else 0.0
    score = min(1.0, jaccard + bonus)
    return score, f"Token overlap: {len(shared)}/{len(union)} words (+{bonus})"


def edit_similarity(left: str, right: str) -> tuple[float, str]:
    """Character-level similarity (difflib ratio) of two normalized names.

    Spaces are ignored, so "spiderman" and "spider man" compare equal.
    """
    left_key = left.replace(" ", "")
    right_key = right.replace(" ", "")
    if not left_key or not right_key:
        return 0.0, "Empty name"
    ratio = SequenceMatcher(None, left_key, right_key).ratio()
    return ratio, f"Edit ratio: {ratio:.2f}"


def series_similarity(
    candidate: str,
    target: str,
    config: MatchingConfig = DEFAULT_CONFIG,
) -> tuple[float, str]:
    """Best of token overlap and edit ratio for two raw series names.

    Args:
        candidate: Series name from the file name
        target: Canonical name or alias to compare against
        config: Matching configuration

    Returns:
        Tuple of (similarity between 0.0 and 1.0, reason)
    """
    return normalized_similarity(
        normalize_series_name(candidate), normalize_series_name(target), config
    )


def normalized_similarity(
    left: str,
    right: str,
    config: MatchingConfig = DEFAULT_CONFIG,
) -> tuple[float, str]:
    """series_similarity for names that are already normalized."""
    overlap = token_overlap_similarity(left, right, config)
    edit = edit_similarity(left, right)
    return max(overlap, edit, key=lambda item: item[0])


def match_series_name(
    candidate_volume_name: str,
    search_series_name: str,
    config: MatchingConfig = DEFAULT_CONFIG,
) -> tuple[float, str]:
    """Evaluate a ComicVine volume name against the searched series name.

    Returns:
        Tuple of (score, reason)
    """
    series_key = compact_label(search_series_name)
    volume_key = compact_label(candidate_volume_name)

    if not (volume_key and series_key):
        return 0.0, f"Empty key: series='{series_key}', volume='{volume_key}'"

    if volume_key == series_key:
        return (
            config.series_name_exact_match,
            f"Exact match: '{series_key}' (+{config.series_name_exact_match})",
        )

    prefix_len = max(3, len(series_key) // 2)
    if volume_key.startswith(series_key[:prefix_len]):
        return (
            config.series_name_prefix_match,
            f"Prefix match: '{volume_key}' starts with '{series_key[:prefix_len]}' "
            f"(+{config.series_name_prefix_match})",
        )

    if series_key in volume_key or volume_key in series_key:
        return (
            config.series_name_substring_match,
            f"Substring match: '{series_key}' / '{volume_key}' "
            f"(+{config.series_name_substring_match})",
        )

    return 0.0, f"No match: '{series_key}' vs '{volume_key}'"


def match_issue_number(
    candidate_issue_number: str | None,
    search_issue_number: str | None,
    config: MatchingConfig = DEFAULT_CONFIG,
) -> tuple[float, str]:
    """Evaluate issue number match.

    Returns:
        (-1.0, reason) if the candidate should be rejected,
        (0.0, reason) if there is nothing to compare,
        (positive score, reason) on a match
    """
    search_normalized = normalize_issue_number(search_issue_number)
    if search_normalized is None:
        return 0.0, "No issue number in search"

    candidate_normalized = normalize_issue_number(candidate_issue_number)
    if candidate_normalized is None:
        return -1.0, "No issue number in candidate"

    if abs(candidate_normalized - search_normalized) >= 0.01:
        return -1.0, f"Issue number mismatch: {candidate_normalized} vs {search_normalized}"

    return (
        config.issue_number_exact_match,
        f"Issue number match: {candidate_normalized} (+{config.issue_number_exact_match})",
    )


def match_year(
    candidate_year: int | str | None,
    search_year: int | None,
    config: MatchingConfig = DEFAULT_CONFIG,
) -> tuple[float, str]:
    """Evaluate year match.

    Returns:
        Tuple of (score, reason)
    """
    if search_year is None:
        return 0.0, "No year in search"

    if not candidate_year:
        return 0.0, "No year in candidate"

    try:
        year = int(candidate_year)
    except (ValueError, TypeError):
        return 0.0, f"Invalid year in candidate: {candidate_year}"

    if year == search_year:
        return config.year_match, f"Year match: {search_year} (+{config.year_match})"
    return 0.0, f"No match: {year} vs {search_year}"


def match_publisher(
    candidate_publisher: str | None,
    search_publisher: str | None,
    config: MatchingConfig = DEFAULT_CONFIG,
) -> tuple[float, str]:
    """Evaluate publisher match.

    "DC" and "DC Comics" are treated as the same publisher.

    Returns:
        Tuple of (score, reason)
    """
    if search_publisher is None:
        return 0.0, "No publisher in search"

    if not candidate_publisher:
        return 0.0, "No publisher in candidate"

    if publishers_agree(candidate_publisher, search_publisher):
        return (
            config.publisher_match,
            f"Publisher match: '{candidate_publisher}' (+{config.publisher_match})",
        )

    return 0.0, f"No match: '{search_publisher}' vs '{candidate_publisher}'"


_PUBLISHER_SUFFIXES = (" comics", " publishing", " entertainment", " studios", " press")


def _publisher_key(value: str) -> str:
    key = normalize_series_name(value)
    for suffix in _PUBLISHER_SUFFIXES:
        if key.endswith(suffix):
            key = key[: -len(suffix)]
    return key.replace(" ", "")


def publishers_agree(left: str | None, right: str | None) -> bool:
    """Whether two publisher names refer to the same publisher."""
    if not left or not right:
        return False
    return _publisher_key(left) == _publisher_key(right)
