"""Remote enrichment through the ComicVine API."""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from pydantic import BaseModel, Field

from longbox.core.comicvine.client import ComicVineClient
from longbox.core.errors import LookupFailure
from longbox.core.matching import (
    DEFAULT_CONFIG,
    MatchingConfig,
    evaluate_issue_candidate,
    evaluate_volume_candidate,
    normalize_confidence,
)
from longbox.core.models import Creator
from longbox.core.utils import (
    _extract_numeric_id,
    _extract_year,
    normalize_issue_number,
    strip_html,
)

logger = structlog.get_logger("longbox.enrichment.comicvine")

SOURCE = "comicvine"

VOLUME_FIELDS = "id,name,start_year,publisher,count_of_issues"
ISSUE_FIELDS = "id,name,issue_number,cover_date,description,deck,image"


class RemoteIssue(BaseModel):
    """Volume (and, when found, issue) metadata returned by ComicVine."""

    volume_id: int
    volume_name: str
    publisher: str | None = None
    start_year: int | None = None
    confidence: float = 0.0
    issue_id: int | None = None
    issue_number: str | None = None
    title: str | None = None
    cover_date: str | None = None
    summary: str | None = None
    cover_url: str | None = None
    creators: list[Creator] = Field(default_factory=list)


def _filter_issue_number(issue: str) -> str:
    """ComicVine stores issue numbers without padding ("001" -> "1")."""
    value = normalize_issue_number(issue)
    if value is None:
        return issue.strip()
    if value.is_integer():
        return str(int(value))
    return str(value)


def _image_url(item: dict[str, Any]) -> str | None:
    image = item.get("image")
    if isinstance(image, dict):
        return (
            image.get("super_url")
            or image.get("medium_url")
            or image.get("small_url")
            or image.get("thumb_url")
        )
    return None


def _publisher_name(item: dict[str, Any]) -> str | None:
    publisher = item.get("publisher")
    if isinstance(publisher, dict):
        return publisher.get("name")
    return str(publisher) if publisher else None


class ComicVineLookup:
    """Finds the ComicVine volume and issue for a parsed series/issue.

    Volumes are ranked with the shared matching criteria; the best volume must
    reach ``minimum_volume_confidence``. Disabled without an API key.
    """

    def __init__(self, client: ComicVineClient, config: MatchingConfig = DEFAULT_CONFIG) -> None:
        self.client = client
        self.config = config

    @property
    def enabled(self) -> bool:
        return self.client.enabled

    async def _fetch(self, endpoint: str, params: dict[str, Any]) -> dict[str, Any]:
        try:
            data = await self.client.fetch(endpoint, params)
        except httpx.HTTPStatusError as e:
            raise LookupFailure(SOURCE, f"HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise LookupFailure(SOURCE, f"network error: {e}") from e
        except ValueError as e:
            raise LookupFailure(SOURCE, f"invalid response: {e}") from e

        status_code = data.get("status_code")
        if status_code not in (None, 1):
            raise LookupFailure(SOURCE, data.get("error") or f"status_code {status_code}")
        return data

    async def lookup(
        self,
        series: str,
        issue: str | None = None,
        year: int | None = None,
        publisher: str | None = None,
    ) -> RemoteIssue | None:
        """Look up a series (and issue) on ComicVine.

        Returns:
            RemoteIssue, or None when no volume is a confident match

        Raises:
            LookupFailure: The API could not be reached or returned an error
        """
        if not self.enabled:
            return None

        data = await self._fetch(
            "search",
            {
                "query": series,
                "resources": "volume",
                "field_list": VOLUME_FIELDS,
                "limit": self.config.volume_search_limit,
            },
        )
        search_params = {"series_name": series, "year": year, "publisher": publisher}

        best: tuple[float, dict[str, Any]] | None = None
        for item in data.get("results") or []:
            result = evaluate_volume_candidate(item, search_params, self.config)
            if result.rejected:
                continue
            confidence = normalize_confidence(result.score, self.config.max_volume_score)
            if best is None or confidence > best[0]:
                best = (confidence, item)

        if best is None or best[0] < self.config.minimum_volume_confidence:
            logger.debug(
                "No confident ComicVine volume",
                series=series,
                best_confidence=best[0] if best else None,
            )
            return None

        confidence, volume = best
        volume_id = _extract_numeric_id(volume.get("id"))
        if volume_id is None:
            return None

        start_year = volume.get("start_year")
        remote = RemoteIssue(
            volume_id=volume_id,
            volume_name=volume.get("name") or series,
            publisher=_publisher_name(volume),
            start_year=int(start_year) if str(start_year or "").isdigit() else None,
            confidence=confidence,
        )
        if issue:
            await self._attach_issue(remote, issue)
        logger.debug(
            "ComicVine match",
            series=series,
            volume=remote.volume_name,
            confidence=round(confidence, 2),
            issue_found=remote.issue_id is not None,
        )
        return remote

    async def _attach_issue(self, remote: RemoteIssue, issue: str) -> None:
        data = await self._fetch(
            "issues",
            {
                "filter": f"volume:{remote.volume_id},issue_number:{_filter_issue_number(issue)}",
                "field_list": ISSUE_FIELDS,
                "limit": 10,
            },
        )
        for item in data.get("results") or []:
            if evaluate_issue_candidate(item, {"issue_number": issue}, self.config).rejected:
                continue
            remote.issue_id = _extract_numeric_id(item.get("id"))
            remote.issue_number = item.get("issue_number")
            remote.title = item.get("name")
            remote.cover_date = item.get("cover_date")
            remote.summary = strip_html(item.get("description")) or strip_html(item.get("deck"))
            remote.cover_url = _image_url(item)
            break

        if remote.issue_id is None:
            return

        detail = await self._fetch(
            f"issue/4000-{remote.issue_id}", {"field_list": "person_credits"}
        )
        credits = (detail.get("results") or {}).get("person_credits") or []
        for credit in credits:
            name = credit.get("name")
            if not name:
                continue
            for role in (credit.get("role") or "unknown").split(","):
                remote.creators.append(Creator(name=name, role=role.strip().lower()))

    @staticmethod
    def cover_year(remote: RemoteIssue) -> int | None:
        """Publication year from the issue cover date, falling back to the volume start year."""
        return _extract_year(remote.cover_date) or remote.start_year
