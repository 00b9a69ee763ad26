"""Confidence scorer: maps identification evidence to a confidence level and status."""

from __future__ import annotations

from dataclasses import dataclass

from longbox.core.knowledge import MatchKind
from longbox.core.models import ConfidenceLevel, FileStatus
from longbox.core.utils import is_plausible_year


@dataclass(frozen=True)
class IdentificationEvidence:
    """Everything the scorer looks at for one file.

    Attributes:
        series: Final series (None when nothing could supply one)
        match_kind: How the knowledge base matched the series
        explicit_issue: The parser found an explicit "#NN" marker
        issue: Final issue number
        year: Final year
        publisher: Final publisher
        enrichment_disagreed: A reference source contradicted a known value
    """

    series: str | None
    match_kind: MatchKind
    explicit_issue: bool = False
    issue: str | None = None
    year: int | None = None
    publisher: str | None = None
    enrichment_disagreed: bool = False


@dataclass(frozen=True)
class ScoreOutcome:
    confidence: ConfidenceLevel | None
    status: FileStatus
    reasons: tuple[str, ...] = ()


def _confidence(evidence: IdentificationEvidence, reasons: list[str]) -> ConfidenceLevel:
    if evidence.match_kind in (MatchKind.EXACT, MatchKind.ALIAS):
        plausible_year = is_plausible_year(evidence.year)
        if evidence.explicit_issue and plausible_year:
            reasons.append(f"{evidence.match_kind.value} series match with explicit issue and year")
            return ConfidenceLevel.HIGH
        if not evidence.explicit_issue:
            reasons.append("No explicit issue number")
        if not plausible_year:
            reasons.append("No plausible year")
        return ConfidenceLevel.MEDIUM

    if evidence.match_kind is MatchKind.FUZZY:
        if evidence.enrichment_disagreed:
            reasons.append("Fuzzy series match contradicted by reference data")
            return ConfidenceLevel.LOW
        reasons.append("Fuzzy series match")
        return ConfidenceLevel.MEDIUM

    reasons.append("Series not in knowledge base")
    return ConfidenceLevel.LOW


def score_identification(evidence: IdentificationEvidence) -> ScoreOutcome:
    """Score one identification.

    Every combination of inputs yields exactly one outcome:

    - no series: confidence None, status Error
    - High: exact/alias match, explicit issue and plausible year
    - Medium: fuzzy match, or exact/alias match lacking issue or year
    - Low: series supplied only by enrichment or the file name, or a fuzzy
      match that enrichment contradicted

    Status is Warning when confidence is Low or any of issue/year/publisher is
    missing, Success otherwise.
    """
    if not evidence.series:
        return ScoreOutcome(None, FileStatus.ERROR, ("No series could be identified",))

    reasons: list[str] = []
    confidence = _confidence(evidence, reasons)

    missing = [
        name
        for name, value in (
            ("issue", evidence.issue),
            ("year", evidence.year),
            ("publisher", evidence.publisher),
        )
        if value in (None, "")
    ]
    if missing:
        reasons.append(f"Missing {', '.join(missing)}")

    if confidence is ConfidenceLevel.LOW or missing:
        status = FileStatus.WARNING
    else:
        status = FileStatus.SUCCESS
    return ScoreOutcome(confidence, status, tuple(reasons))
