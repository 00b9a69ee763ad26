"""Tests for the confidence scorer."""

from __future__ import annotations

import itertools

import pytest

from longbox.core.knowledge import MatchKind
from longbox.core.models import ConfidenceLevel, FileStatus
from longbox.core.scoring import IdentificationEvidence, score_identification


def _evidence(**overrides) -> IdentificationEvidence:
    values = {
        "series": "Saga",
        "match_kind": MatchKind.EXACT,
        "explicit_issue": True,
        "issue": "1",
        "year": 2012,
        "publisher": "Image Comics",
    }
    values.update(overrides)
    return IdentificationEvidence(**values)


def test_exact_match_with_issue_and_year_is_high() -> None:
    outcome = score_identification(_evidence())

    assert outcome.confidence is ConfidenceLevel.HIGH
    assert outcome.status is FileStatus.SUCCESS


def test_alias_match_is_high() -> None:
    outcome = score_identification(_evidence(match_kind=MatchKind.ALIAS))

    assert outcome.confidence is ConfidenceLevel.HIGH


def test_exact_match_without_explicit_issue_is_medium() -> None:
    outcome = score_identification(_evidence(explicit_issue=False))

    assert outcome.confidence is ConfidenceLevel.MEDIUM
    assert outcome.status is FileStatus.SUCCESS
    assert "No explicit issue number" in outcome.reasons


def test_exact_match_with_implausible_year_is_medium() -> None:
    outcome = score_identification(_evidence(year=1850))

    assert outcome.confidence is ConfidenceLevel.MEDIUM


def test_fuzzy_match_is_medium() -> None:
    outcome = score_identification(_evidence(match_kind=MatchKind.FUZZY))

    assert outcome.confidence is ConfidenceLevel.MEDIUM
    assert outcome.status is FileStatus.SUCCESS


def test_contradicted_fuzzy_match_is_low() -> None:
    outcome = score_identification(
        _evidence(match_kind=MatchKind.FUZZY, enrichment_disagreed=True)
    )

    assert outcome.confidence is ConfidenceLevel.LOW
    assert outcome.status is FileStatus.WARNING


def test_unresolved_series_is_low_warning() -> None:
    outcome = score_identification(_evidence(match_kind=MatchKind.UNRESOLVED))

    assert outcome.confidence is ConfidenceLevel.LOW
    assert outcome.status is FileStatus.WARNING


def test_missing_fields_downgrade_status_to_warning() -> None:
    outcome = score_identification(_evidence(publisher=None))

    assert outcome.confidence is ConfidenceLevel.HIGH
    assert outcome.status is FileStatus.WARNING
    assert "Missing publisher" in outcome.reasons


def test_no_series_is_error() -> None:
    outcome = score_identification(_evidence(series=None))

    assert outcome.confidence is None
    assert outcome.status is FileStatus.ERROR


@pytest.mark.parametrize(
    ("kind", "explicit", "year", "publisher"),
    list(
        itertools.product(
            list(MatchKind), [True, False], [2012, None], ["Image Comics", None]
        )
    ),
)
def test_every_combination_yields_one_outcome(
    kind: MatchKind, explicit: bool, year: int | None, publisher: str | None
) -> None:
    outcome = score_identification(
        _evidence(match_kind=kind, explicit_issue=explicit, year=year, publisher=publisher)
    )

    assert outcome.confidence in set(ConfidenceLevel)
    assert outcome.status in (FileStatus.SUCCESS, FileStatus.WARNING)
    if outcome.confidence is ConfidenceLevel.LOW:
        assert outcome.status is FileStatus.WARNING


def test_confidence_levels_are_ordered() -> None:
    assert ConfidenceLevel.LOW < ConfidenceLevel.MEDIUM < ConfidenceLevel.HIGH
    assert max([ConfidenceLevel.MEDIUM, ConfidenceLevel.HIGH, ConfidenceLevel.LOW]) is (
        ConfidenceLevel.HIGH
    )
