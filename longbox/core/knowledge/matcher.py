"""Knowledge base matcher: resolves parsed series names to canonical knowledge entries."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import structlog

from longbox.core.matching import (
    DEFAULT_CONFIG,
    MatchingConfig,
    normalized_similarity,
    publishers_agree,
)
from longbox.core.parser import KNOWN_PUBLISHERS, ParsedFilename
from longbox.core.utils import normalize_series_name

from .models import ComicKnowledge, KnowledgeVolume
from .snapshot import IndexedEntry, KnowledgeBaseSnapshot

logger = structlog.get_logger("longbox.knowledge.matcher")


class MatchKind(str, Enum):
    """How a parsed series was resolved against the knowledge base."""

    EXACT = "exact"
    ALIAS = "alias"
    FUZZY = "fuzzy"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class KnowledgeMatch:
    """Outcome of matching one parsed file name.

    Attributes:
        kind: exact, alias, fuzzy or unresolved
        entry: Matched knowledge entry (None when unresolved)
        similarity: 1.0 for exact/alias matches, the fuzzy score otherwise
        volume: Known volume closest to the parsed year
        details: Human readable explanation of the decision
    """

    kind: MatchKind
    entry: ComicKnowledge | None = None
    similarity: float = 0.0
    volume: KnowledgeVolume | None = None
    details: tuple[str, ...] = ()

    @property
    def resolved(self) -> bool:
        return self.kind is not MatchKind.UNRESOLVED and self.entry is not None

    @property
    def is_exact(self) -> bool:
        return self.kind in (MatchKind.EXACT, MatchKind.ALIAS)


@dataclass(frozen=True)
class _Scored:
    item: IndexedEntry
    similarity: float
    reason: str
    publisher_agrees: bool

    def rank_key(self) -> tuple[float, bool, int, str]:
        # Best similarity, then publisher agreement, then shortest name, then alphabetical
        series = self.item.entry.series
        return (-self.similarity, not self.publisher_agrees, len(series), series.casefold())


class KnowledgeBaseMatcher:
    """Matches parsed file names against a knowledge base snapshot.

    Pure with respect to its inputs: the same parsed name and snapshot always
    produce the same match.
    """

    def __init__(
        self,
        snapshot: KnowledgeBaseSnapshot,
        config: MatchingConfig = DEFAULT_CONFIG,
    ) -> None:
        self.snapshot = snapshot
        self.config = config

    def match(self, parsed: ParsedFilename) -> KnowledgeMatch:
        """Resolve the parsed series to a knowledge entry.

        Exact canonical/alias matches win; otherwise the best fuzzy match at or
        above ``minimum_similarity``. Anything weaker is unresolved.

        Args:
            parsed: Token parser output

        Returns:
            KnowledgeMatch
        """
        return self.match_series(
            parsed.series,
            publisher_hint=parsed.publisher,
            year=parsed.year,
            volume=parsed.volume,
        )

    def match_series(
        self,
        series: str | None,
        publisher_hint: str | None = None,
        year: int | None = None,
        volume: str | None = None,
    ) -> KnowledgeMatch:
        """Resolve a bare series name (used for user-forced series as well)."""
        normalized = normalize_series_name(series)
        if not normalized:
            return KnowledgeMatch(MatchKind.UNRESOLVED, details=("No series to match",))

        hit = self.snapshot.lookup(normalized)
        if hit is not None:
            entry, via_alias = hit
            kind = MatchKind.ALIAS if via_alias else MatchKind.EXACT
            return KnowledgeMatch(
                kind=kind,
                entry=entry,
                similarity=1.0,
                volume=self._pick_volume(entry, year, volume),
                details=(f"{kind.value.capitalize()} match: '{normalized}' -> '{entry.series}'",),
            )

        ranked = self._rank(normalized, publisher_hint)
        if not ranked or ranked[0].similarity < self.config.minimum_similarity:
            best = ranked[0] if ranked else None
            detail = (
                f"Best candidate '{best.item.entry.series}' scored {best.similarity:.2f} "
                f"(< {self.config.minimum_similarity})"
                if best
                else "Knowledge base is empty"
            )
            logger.debug("Series unresolved", series=series, detail=detail)
            return KnowledgeMatch(
                MatchKind.UNRESOLVED,
                similarity=best.similarity if best else 0.0,
                details=(detail,),
            )

        best = ranked[0]
        details = [best.reason]
        if best.publisher_agrees:
            details.append(f"Publisher agrees with hint '{publisher_hint}'")
        return KnowledgeMatch(
            kind=MatchKind.FUZZY,
            entry=best.item.entry,
            similarity=best.similarity,
            volume=self._pick_volume(best.item.entry, year, volume),
            details=tuple(details),
        )

    def candidates(self, parsed: ParsedFilename, limit: int | None = None) -> list[KnowledgeMatch]:
        """Ranked knowledge entries for manual resolution, best first.

        Unlike match(), candidates below the similarity threshold are included
        as long as they share anything with the parsed series.
        """
        limit = limit or self.config.candidate_limit
        results: list[KnowledgeMatch] = []
        for scored in self._rank(normalize_series_name(parsed.series), parsed.publisher):
            if scored.similarity <= 0.0:
                continue
            entry = scored.item.entry
            kind = MatchKind.EXACT if scored.similarity >= 1.0 else MatchKind.FUZZY
            results.append(
                KnowledgeMatch(
                    kind=kind,
                    entry=entry,
                    similarity=scored.similarity,
                    volume=self._pick_volume(entry, parsed.year, parsed.volume),
                    details=(scored.reason,),
                )
            )
            if len(results) >= limit:
                break
        return results

    def suggest_series(
        self,
        prefix: str,
        publisher: str | None = None,
        limit: int | None = None,
    ) -> list[str]:
        """Series names for autocompletion: prefix matches first, then substring matches."""
        limit = limit or self.config.suggestion_limit
        needle = normalize_series_name(prefix)

        starts: list[str] = []
        contains: list[str] = []
        for item in self.snapshot.indexed():
            entry = item.entry
            if publisher and not publishers_agree(entry.publisher, publisher):
                continue
            names = [item.normalized_series, *item.normalized_aliases]
            if not needle or any(name.startswith(needle) for name in names):
                starts.append(entry.series)
            elif any(needle in name for name in names):
                contains.append(entry.series)

        ordered = sorted(starts, key=str.casefold) + sorted(contains, key=str.casefold)
        return ordered[:limit]

    def suggest_publishers(self, prefix: str, limit: int | None = None) -> list[str]:
        """Publisher names (knowledge base and well-known publishers) starting with prefix."""
        limit = limit or self.config.suggestion_limit
        needle = normalize_series_name(prefix)

        publishers: dict[str, str] = {}
        for entry in self.snapshot.entries:
            if entry.publisher:
                publishers.setdefault(entry.publisher.casefold(), entry.publisher)
        for canonical in KNOWN_PUBLISHERS.values():
            publishers.setdefault(canonical.casefold(), canonical)

        matches = [
            name
            for name in publishers.values()
            if not needle or normalize_series_name(name).startswith(needle)
        ]
        return sorted(matches, key=str.casefold)[:limit]

    def _rank(self, normalized: str, publisher_hint: str | None) -> list[_Scored]:
        scored: list[_Scored] = []
        for item in self.snapshot.indexed():
            best_score = 0.0
            best_reason = "No similarity"
            for normalized_name, name in item.names:
                score, reason = normalized_similarity(normalized, normalized_name, self.config)
                if score > best_score:
                    best_score, best_reason = score, f"'{name}': {reason}"
            scored.append(
                _Scored(
                    item=item,
                    similarity=round(best_score, 4),
                    reason=best_reason,
                    publisher_agrees=publishers_agree(item.entry.publisher, publisher_hint),
                )
            )
        scored.sort(key=_Scored.rank_key)
        return scored

    @staticmethod
    def _pick_volume(
        entry: ComicKnowledge,
        year: int | None,
        volume: str | None,
    ) -> KnowledgeVolume | None:
        return entry.find_volume(volume) or entry.closest_volume(year)
