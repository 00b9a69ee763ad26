"""Tests for the ComicVine client and remote lookup, using httpx.MockTransport."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from longbox.core.comicvine.client import ComicVineClient
from longbox.core.enrichment import ComicVineLookup
from longbox.core.errors import LookupFailure
from longbox.core.models import Creator

SEARCH_RESPONSE = {
    "status_code": 1,
    "error": "OK",
    "results": [
        {
            "id": 1,
            "name": "Saga of the Swamp Thing",
            "start_year": "1982",
            "publisher": {"name": "DC Comics"},
        },
        {
            "id": 18166,
            "name": "Saga",
            "start_year": "2012",
            "publisher": {"name": "Image"},
        },
    ],
}
ISSUES_RESPONSE = {
    "status_code": 1,
    "results": [
        {
            "id": 77,
            "name": "Chapter One",
            "issue_number": "1",
            "cover_date": "2012-03-14",
            "description": "<p>Alana &amp; Marko</p>",
            "image": {"super_url": "https://images.test/saga-1.jpg"},
        }
    ],
}
DETAIL_RESPONSE = {
    "status_code": 1,
    "results": {
        "person_credits": [
            {"name": "Brian K. Vaughan", "role": "writer"},
            {"name": "Fiona Staples", "role": "artist, cover"},
        ]
    },
}


def saga_handler(requests: list[httpx.Request]) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        path = request.url.path
        if path.endswith("/search/"):
            return httpx.Response(200, json=SEARCH_RESPONSE)
        if path.endswith("/issues/"):
            return httpx.Response(200, json=ISSUES_RESPONSE)
        if path.endswith("/issue/4000-77/"):
            return httpx.Response(200, json=DETAIL_RESPONSE)
        return httpx.Response(404, json={"status_code": 101, "error": "Object Not Found"})

    return handler


def make_lookup(
    handler: Callable[[httpx.Request], httpx.Response],
    api_key: str = "test-key",
    cache_dir: Path | None = None,
    max_retries: int = 3,
) -> ComicVineLookup:
    client = ComicVineClient(
        api_key=api_key,
        base_url="https://comicvine.test/api",
        max_retries=max_retries,
        cache_dir=cache_dir,
        backoff_base=0,
        transport=httpx.MockTransport(handler),
    )
    return ComicVineLookup(client)


async def test_lookup_resolves_volume_issue_and_credits() -> None:
    requests: list[httpx.Request] = []
    lookup = make_lookup(saga_handler(requests))

    remote = await lookup.lookup("Saga", "001", 2012, "Image Comics")

    assert remote is not None
    assert remote.volume_id == 18166
    assert remote.volume_name == "Saga"
    assert remote.publisher == "Image"
    assert remote.start_year == 2012
    assert remote.confidence == pytest.approx(1.0)
    assert remote.issue_id == 77
    assert remote.title == "Chapter One"
    assert remote.summary == "Alana & Marko"
    assert remote.cover_url == "https://images.test/saga-1.jpg"
    assert remote.creators == [
        Creator(name="Brian K. Vaughan", role="writer"),
        Creator(name="Fiona Staples", role="artist"),
        Creator(name="Fiona Staples", role="cover"),
    ]
    assert ComicVineLookup.cover_year(remote) == 2012

    assert len(requests) == 3
    search, issues, _ = requests
    assert search.url.params["api_key"] == "test-key"
    assert search.url.params["format"] == "json"
    assert search.url.params["resources"] == "volume"
    assert issues.url.params["filter"] == "volume:18166,issue_number:1"


async def test_lookup_without_issue_skips_issue_requests() -> None:
    requests: list[httpx.Request] = []
    lookup = make_lookup(saga_handler(requests))

    remote = await lookup.lookup("Saga", None, 2012, "Image")

    assert remote is not None
    assert remote.issue_id is None
    assert len(requests) == 1


async def test_lookup_without_confident_volume() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "status_code": 1,
                "results": [{"id": 5, "name": "Detective Comics", "start_year": "1937"}],
            },
        )

    assert await make_lookup(handler).lookup("Monstress", "5", 2016) is None


async def test_disabled_without_api_key() -> None:
    requests: list[httpx.Request] = []
    lookup = make_lookup(saga_handler(requests), api_key="")

    assert lookup.enabled is False
    assert await lookup.lookup("Saga", "1") is None
    assert requests == []


async def test_rate_limited_request_is_retried() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if calls == 1:
            return httpx.Response(429, json={"error": "Slow down"})
        return httpx.Response(200, json=SEARCH_RESPONSE)

    remote = await make_lookup(handler).lookup("Saga")

    assert remote is not None
    assert calls == 2


async def test_api_error_status_becomes_lookup_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status_code": 100, "error": "Invalid API Key"})

    with pytest.raises(LookupFailure) as exc_info:
        await make_lookup(handler).lookup("Saga")

    assert exc_info.value.source == "comicvine"
    assert exc_info.value.reason == "Invalid API Key"


async def test_http_error_becomes_lookup_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="Internal Server Error")

    with pytest.raises(LookupFailure, match="HTTP 500"):
        await make_lookup(handler).lookup("Saga")


async def test_network_error_becomes_lookup_failure() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        raise httpx.ConnectError("Connection refused", request=request)

    with pytest.raises(LookupFailure, match="network error"):
        await make_lookup(handler, max_retries=1).lookup("Saga")

    assert calls == 2


async def test_responses_are_cached(tmp_path: Path) -> None:
    requests: list[httpx.Request] = []
    lookup = make_lookup(saga_handler(requests), cache_dir=tmp_path / "cv-cache")

    await lookup.lookup("Saga", "1", 2012)
    await lookup.lookup("Saga", "1", 2012)

    assert len(requests) == 3
    assert len(list((tmp_path / "cv-cache").glob("*.json"))) == 3
