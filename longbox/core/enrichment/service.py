"""Reference enrichment: fills metadata gaps from the local GCD dump and ComicVine."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import Any, TypeVar

import structlog

from longbox.core.errors import LookupFailure
from longbox.core.knowledge import KnowledgeMatch
from longbox.core.matching import (
    DEFAULT_CONFIG,
    MatchingConfig,
    publishers_agree,
    series_similarity,
)
from longbox.core.metrics import lookup_failures_total
from longbox.core.models import Creator
from longbox.core.parser import ParsedFilename
from longbox.core.utils import _extract_year

from .gcd import GcdDatabaseService
from .remote import ComicVineLookup

logger = structlog.get_logger("longbox.enrichment")

T = TypeVar("T")

# Fields whose absence triggers enrichment
CORE_FIELDS = ("series", "publisher", "year", "volume")

SOURCE_KNOWLEDGE = "knowledge"
SOURCE_FILENAME = "filename"
SOURCE_USER = "user"
SOURCE_GCD = "gcd"
SOURCE_COMICVINE = "comicvine"
LOOKUP_SOURCES = (SOURCE_GCD, SOURCE_COMICVINE)


@dataclass
class EnrichmentResult:
    """Merged metadata after enrichment.

    Attributes:
        field_sources: Field name -> source that supplied it
            (knowledge, filename, user, gcd, comicvine)
        agreements: "<source>.<field>" -> whether the source agreed with a
            value that was already set
        consulted: Sources that returned a usable match
        failures: Human readable lookup failures (timeouts included)
        skipped: Enrichment was not needed (or had nothing to query)
    """

    series: str | None = None
    issue: str | None = None
    year: int | None = None
    publisher: str | None = None
    volume: str | None = None
    summary: str | None = None
    title: str | None = None
    publication_date: str | None = None
    cover_url: str | None = None
    creators: list[Creator] = field(default_factory=list)
    field_sources: dict[str, str] = field(default_factory=dict)
    agreements: dict[str, bool] = field(default_factory=dict)
    consulted: list[str] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)
    skipped: bool = False

    @property
    def missing_core_fields(self) -> list[str]:
        return [name for name in CORE_FIELDS if getattr(self, name) is None]

    @property
    def supplied_fields(self) -> list[str]:
        """Fields filled in by a reference lookup."""
        return [name for name, source in self.field_sources.items() if source in LOOKUP_SOURCES]

    @property
    def disagreements(self) -> list[str]:
        return [key for key, agrees in self.agreements.items() if not agrees]

    @property
    def series_source(self) -> str | None:
        return self.field_sources.get("series")

    def fill(self, name: str, value: Any, source: str) -> bool:
        """Set a field only when it is still empty."""
        if value in (None, "", []):
            return False
        if getattr(self, name) not in (None, "", []):
            return False
        setattr(self, name, value)
        self.field_sources[name] = source
        return True


def base_record(
    parsed: ParsedFilename,
    match: KnowledgeMatch,
    publisher_override: str | None = None,
) -> EnrichmentResult:
    """Record as known before enrichment: knowledge match first, then the file name."""
    record = EnrichmentResult()
    if publisher_override:
        record.fill("publisher", publisher_override, SOURCE_USER)
    if match.resolved and match.entry is not None:
        record.fill("series", match.entry.series, SOURCE_KNOWLEDGE)
        record.fill("publisher", match.entry.publisher, SOURCE_KNOWLEDGE)
        if match.volume is not None:
            record.fill("volume", match.volume.volume, SOURCE_KNOWLEDGE)
    record.fill("issue", parsed.issue, SOURCE_FILENAME)
    record.fill("year", parsed.year, SOURCE_FILENAME)
    record.fill("volume", parsed.volume, SOURCE_FILENAME)
    record.fill("publisher", parsed.publisher, SOURCE_FILENAME)
    return record


class ReferenceEnrichment:
    """Consults the local reference database, then the remote API.

    Each lookup runs under ``timeout_seconds``; failures and timeouts are
    logged, counted and skipped, never raised.
    """

    def __init__(
        self,
        local: GcdDatabaseService | None = None,
        remote: ComicVineLookup | None = None,
        timeout_seconds: float = 10.0,
        config: MatchingConfig = DEFAULT_CONFIG,
    ) -> None:
        self.local = local
        self.remote = remote
        self.timeout_seconds = timeout_seconds
        self.config = config

    @property
    def available_sources(self) -> list[str]:
        sources = []
        if self.local is not None and self.local.is_connected:
            sources.append(SOURCE_GCD)
        if self.remote is not None and self.remote.enabled:
            sources.append(SOURCE_COMICVINE)
        return sources

    async def enrich(
        self,
        parsed: ParsedFilename,
        match: KnowledgeMatch,
        publisher_override: str | None = None,
        series_override: str | None = None,
    ) -> EnrichmentResult:
        """Merge reference data into the fields the matcher left empty.

        Args:
            parsed: Token parser output
            match: Knowledge base match (resolved or not)
            publisher_override: User-forced publisher
            series_override: User-forced series, used as query when unresolved

        Returns:
            EnrichmentResult with the merged record
        """
        record = base_record(parsed, match, publisher_override)
        query = record.series or series_override or parsed.series

        if match.resolved and not record.missing_core_fields:
            record.skipped = True
            return record
        if not query:
            record.skipped = True
            return record

        await self._consult_local(record, query, parsed)
        if record.missing_core_fields:
            await self._consult_remote(record, query, parsed)

        logger.debug(
            "Enrichment finished",
            query=query,
            consulted=record.consulted,
            supplied=record.supplied_fields,
            disagreements=record.disagreements,
            failures=len(record.failures),
        )
        return record

    async def _call(self, source: str, call: Awaitable[T], record: EnrichmentResult) -> T | None:
        try:
            return await asyncio.wait_for(call, timeout=self.timeout_seconds)
        except TimeoutError:
            reason = f"{source} lookup timed out after {self.timeout_seconds}s"
        except LookupFailure as e:
            reason = str(e)
        except Exception as e:
            logger.error("Unexpected lookup error", source=source, error=str(e), exc_info=True)
            reason = f"{source} lookup failed: {e}"

        logger.warning("Lookup failed, continuing without it", source=source, reason=reason)
        lookup_failures_total.labels(source=source).inc()
        record.failures.append(reason)
        return None

    def _check(self, record: EnrichmentResult, source: str, name: str, value: Any) -> None:
        """Record whether a source agrees with a value that is already set."""
        current = getattr(record, name)
        if current is None or value is None:
            return
        if name == "publisher":
            agrees = publishers_agree(current, value)
        elif name == "series":
            score, _ = series_similarity(current, value, self.config)
            agrees = score >= self.config.minimum_similarity
        else:
            agrees = str(current).strip().lower() == str(value).strip().lower()
        record.agreements[f"{source}.{name}"] = agrees

    def _merge(self, record: EnrichmentResult, source: str, values: dict[str, Any]) -> None:
        for name, value in values.items():
            if name in CORE_FIELDS:
                self._check(record, source, name, value)
            record.fill(name, value, source)

    async def _consult_local(
        self, record: EnrichmentResult, query: str, parsed: ParsedFilename
    ) -> None:
        if self.local is None or not self.local.is_connected:
            return

        results = await self._call(SOURCE_GCD, self.local.search_series(query), record)
        if results is None:
            return

        best = next(
            (
                result
                for result in results
                if series_similarity(query, result.name, self.config)[0]
                >= self.config.minimum_similarity
            ),
            None,
        )
        if best is None:
            return
        record.consulted.append(SOURCE_GCD)

        details = None
        creators = None
        if parsed.issue:
            details = await self._call(
                SOURCE_GCD, self.local.get_issue_details(best.id, parsed.issue), record
            )
            if details is not None:
                creators = await self._call(
                    SOURCE_GCD, self.local.get_issue_creators(details.id), record
                )

        self._merge(
            record,
            SOURCE_GCD,
            {
                "series": best.name,
                "publisher": best.publisher,
                "year": _extract_year(details.publication_date) if details else None,
                "volume": str(best.year_began) if best.year_began else None,
                "summary": details.synopsis if details else None,
                "title": details.title if details else None,
                "publication_date": details.publication_date if details else None,
                "creators": creators or [],
            },
        )

    async def _consult_remote(
        self, record: EnrichmentResult, query: str, parsed: ParsedFilename
    ) -> None:
        if self.remote is None or not self.remote.enabled:
            return

        remote = await self._call(
            SOURCE_COMICVINE,
            self.remote.lookup(query, parsed.issue, parsed.year, record.publisher),
            record,
        )
        if remote is None:
            return
        record.consulted.append(SOURCE_COMICVINE)

        self._merge(
            record,
            SOURCE_COMICVINE,
            {
                "series": remote.volume_name,
                "publisher": remote.publisher,
                "year": ComicVineLookup.cover_year(remote) if remote.issue_id else None,
                "volume": str(remote.start_year) if remote.start_year else None,
                "summary": remote.summary,
                "title": remote.title,
                "publication_date": remote.cover_date,
                "cover_url": remote.cover_url,
                "creators": remote.creators,
            },
        )
