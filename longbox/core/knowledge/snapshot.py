"""Immutable knowledge base snapshot with a prebuilt normalization cache."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from longbox.core.utils import normalize_series_name

from .models import ComicKnowledge


@dataclass(frozen=True)
class IndexedEntry:
    """A knowledge entry with its normalized canonical name and aliases."""

    entry: ComicKnowledge
    normalized_series: str
    normalized_aliases: tuple[str, ...]

    @property
    def names(self) -> tuple[tuple[str, str], ...]:
        """(normalized name, original name) pairs, canonical name first."""
        pairs = [(self.normalized_series, self.entry.series)]
        pairs.extend(zip(self.normalized_aliases, self.entry.aliases, strict=True))
        return tuple(pairs)


class KnowledgeBaseSnapshot:
    """Read-only view of the knowledge base used for one processing run.

    Names are normalized once when the snapshot is built; matching a file
    never re-normalizes the knowledge base.
    """

    def __init__(
        self,
        indexed: tuple[IndexedEntry, ...],
        exact: Mapping[str, tuple[IndexedEntry, bool]],
        version: int,
    ) -> None:
        self._indexed = indexed
        self._exact = exact
        self.version = version

    @classmethod
    def build(cls, entries: Iterable[ComicKnowledge], version: int = 0) -> KnowledgeBaseSnapshot:
        """Build a snapshot from knowledge entries.

        Canonical names take precedence over aliases when both normalize to
        the same key; earlier entries take precedence over later ones.
        """
        indexed = tuple(
            IndexedEntry(
                entry=entry,
                normalized_series=normalize_series_name(entry.series),
                normalized_aliases=tuple(normalize_series_name(alias) for alias in entry.aliases),
            )
            for entry in entries
        )

        exact: dict[str, tuple[IndexedEntry, bool]] = {}
        for item in indexed:
            if item.normalized_series:
                exact.setdefault(item.normalized_series, (item, False))
        for item in indexed:
            for alias in item.normalized_aliases:
                if alias:
                    exact.setdefault(alias, (item, True))

        return cls(indexed, MappingProxyType(exact), version)

    def lookup(self, normalized_name: str) -> tuple[ComicKnowledge, bool] | None:
        """Exact lookup by normalized name.

        Returns:
            (entry, matched_alias) or None
        """
        hit = self._exact.get(normalized_name)
        if hit is None:
            return None
        item, via_alias = hit
        return item.entry, via_alias

    def get(self, series: str) -> ComicKnowledge | None:
        """Entry whose canonical name normalizes like ``series``."""
        hit = self._exact.get(normalize_series_name(series))
        if hit is None or hit[1]:
            return None
        return hit[0].entry

    @property
    def entries(self) -> tuple[ComicKnowledge, ...]:
        return tuple(item.entry for item in self._indexed)

    def indexed(self) -> Iterator[IndexedEntry]:
        return iter(self._indexed)

    def __len__(self) -> int:
        return len(self._indexed)

    def __repr__(self) -> str:
        return f"KnowledgeBaseSnapshot(entries={len(self)}, version={self.version})"
