"""Tests for the knowledge base matcher."""

from __future__ import annotations

import pytest

from longbox.core.knowledge import (
    ComicKnowledge,
    KnowledgeBaseMatcher,
    KnowledgeBaseSnapshot,
    MatchKind,
)
from longbox.core.matching import MatchingConfig
from longbox.core.parser import parse_filename


@pytest.fixture
def matcher(knowledge_entries: list[ComicKnowledge]) -> KnowledgeBaseMatcher:
    return KnowledgeBaseMatcher(KnowledgeBaseSnapshot.build(knowledge_entries))


def test_exact_match_picks_volume_by_year(matcher: KnowledgeBaseMatcher) -> None:
    match = matcher.match(parse_filename("Batman #12 (2012).cbz"))

    assert match.kind is MatchKind.EXACT
    assert match.entry is not None
    assert match.entry.series == "Batman"
    assert match.similarity == 1.0
    # 2012 falls in the run that started in 2011
    assert match.volume is not None
    assert match.volume.volume == "2"


def test_explicit_volume_wins_over_year(matcher: KnowledgeBaseMatcher) -> None:
    match = matcher.match(parse_filename("Batman v1 #12 (2012).cbz"))

    assert match.volume is not None
    assert match.volume.volume == "1"


def test_alias_match(matcher: KnowledgeBaseMatcher) -> None:
    match = matcher.match(parse_filename("ASM #300 (1988).cbz"))

    assert match.kind is MatchKind.ALIAS
    assert match.is_exact
    assert match.entry is not None
    assert match.entry.series == "The Amazing Spider-Man"
    assert match.volume is not None
    assert match.volume.volume == "1"


def test_fuzzy_match_by_containment(matcher: KnowledgeBaseMatcher) -> None:
    match = matcher.match(parse_filename("Saga Deluxe #1 (2012).cbz"))

    assert match.kind is MatchKind.FUZZY
    assert match.resolved
    assert not match.is_exact
    assert match.entry is not None
    assert match.entry.series == "Saga"
    assert match.similarity == pytest.approx(0.9)


def test_spelling_variant_is_fuzzy_even_at_full_similarity(
    matcher: KnowledgeBaseMatcher,
) -> None:
    match = matcher.match(parse_filename("Amazing Spiderman #5 (1999).cbz"))

    assert match.kind is MatchKind.FUZZY
    assert match.similarity == 1.0
    assert match.entry is not None
    assert match.entry.series == "The Amazing Spider-Man"


def test_unresolved_below_threshold(matcher: KnowledgeBaseMatcher) -> None:
    match = matcher.match(parse_filename("Monstress #5 (2016).cbz"))

    assert match.kind is MatchKind.UNRESOLVED
    assert match.entry is None
    assert not match.resolved
    assert match.similarity < 0.6


def test_unresolved_without_series(matcher: KnowledgeBaseMatcher) -> None:
    match = matcher.match(parse_filename("#1 (2012).cbz"))

    assert match.kind is MatchKind.UNRESOLVED
    assert match.details == ("No series to match",)


def test_threshold_is_configurable(knowledge_entries: list[ComicKnowledge]) -> None:
    strict = KnowledgeBaseMatcher(
        KnowledgeBaseSnapshot.build(knowledge_entries),
        MatchingConfig(minimum_similarity=0.95),
    )

    assert strict.match(parse_filename("Saga Deluxe #1.cbz")).kind is MatchKind.UNRESOLVED


def test_empty_knowledge_base() -> None:
    matcher = KnowledgeBaseMatcher(KnowledgeBaseSnapshot.build([]))

    match = matcher.match(parse_filename("Saga #1.cbz"))

    assert match.kind is MatchKind.UNRESOLVED
    assert match.details == ("Knowledge base is empty",)


@pytest.fixture
def hammer_matcher() -> KnowledgeBaseMatcher:
    return KnowledgeBaseMatcher(
        KnowledgeBaseSnapshot.build(
            [
                ComicKnowledge(series="Black Hammer", publisher="Dark Horse Comics"),
                ComicKnowledge(series="Hammer Red", publisher="Image Comics"),
            ]
        )
    )


def test_tie_break_prefers_publisher_hint(hammer_matcher: KnowledgeBaseMatcher) -> None:
    match = hammer_matcher.match_series("Hammer", publisher_hint="Dark Horse")

    assert match.entry is not None
    assert match.entry.series == "Black Hammer"
    assert any("Publisher agrees" in detail for detail in match.details)


def test_tie_break_prefers_shorter_name(hammer_matcher: KnowledgeBaseMatcher) -> None:
    match = hammer_matcher.match_series("Hammer")

    assert match.entry is not None
    assert match.entry.series == "Hammer Red"


def test_candidates_are_ranked_and_limited(matcher: KnowledgeBaseMatcher) -> None:
    parsed = parse_filename("Bat #1.cbz")

    candidates = matcher.candidates(parsed)
    assert candidates
    assert candidates[0].entry is not None
    assert candidates[0].entry.series == "Batman"
    similarities = [candidate.similarity for candidate in candidates]
    assert similarities == sorted(similarities, reverse=True)

    assert len(matcher.candidates(parsed, limit=1)) == 1


def test_suggest_series(matcher: KnowledgeBaseMatcher) -> None:
    assert matcher.suggest_series("the") == ["Batman", "The Amazing Spider-Man"]
    # Substring matches come after prefix matches
    assert matcher.suggest_series("spider") == ["The Amazing Spider-Man"]
    assert matcher.suggest_series("", publisher="DC") == ["Batman"]
    assert matcher.suggest_series("zzz") == []


def test_suggest_publishers(matcher: KnowledgeBaseMatcher) -> None:
    suggestions = matcher.suggest_publishers("ima")

    assert suggestions == ["Image Comics"]
    assert len(matcher.suggest_publishers("", limit=2)) == 2


def test_match_is_deterministic(knowledge_entries: list[ComicKnowledge]) -> None:
    parsed = parse_filename("Batmn #3 (2016).cbz")
    first = KnowledgeBaseMatcher(KnowledgeBaseSnapshot.build(knowledge_entries)).match(parsed)
    second = KnowledgeBaseMatcher(KnowledgeBaseSnapshot.build(knowledge_entries)).match(parsed)

    assert first == second
