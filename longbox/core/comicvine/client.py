"""ComicVine API client: sliding-window rate limit, retries and a disk cache."""

from __future__ import annotations

import asyncio
import hashlib
import json
import random
import time
from collections import deque
from pathlib import Path
from typing import Any

import httpx
import structlog

logger = structlog.get_logger("longbox.core.comicvine.client")

USER_AGENT = "Longbox/0.1 (comic library organizer)"
# ComicVine answers 420 as well as 429 when a key exceeds its quota
RETRY_STATUS_CODES = frozenset({420, 429})


class ResponseCache:
    """JSON responses stored one file per request under a directory."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory
        self.directory.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def key(endpoint: str, params: dict[str, Any]) -> str:
        raw = f"{endpoint}:{json.dumps(sorted(params.items()), sort_keys=True)}"
        return hashlib.sha256(raw.encode()).hexdigest()

    def load(self, key: str) -> dict[str, Any] | None:
        path = self.directory / f"{key}.json"
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable cached response", key=key[:8], error=str(e))
            return None

    def save(self, key: str, data: dict[str, Any]) -> None:
        try:
            (self.directory / f"{key}.json").write_text(json.dumps(data), encoding="utf-8")
        except OSError as e:
            logger.warning("Could not cache response", key=key[:8], error=str(e))


class SlidingWindowLimiter:
    """Allows at most ``limit`` acquisitions per ``period`` seconds."""

    def __init__(self, limit: int, period: float) -> None:
        self.limit = limit
        self.period = period
        self._stamps: deque[float] = deque()
        self._lock = asyncio.Lock()

    def _expire(self, now: float) -> None:
        while self._stamps and self._stamps[0] <= now - self.period:
            self._stamps.popleft()

    async def acquire(self) -> None:
        # Held while sleeping so waiting callers queue up in order
        async with self._lock:
            now = time.monotonic()
            self._expire(now)
            if len(self._stamps) >= self.limit:
                delay = self._stamps[0] + self.period - now
                logger.debug(
                    "ComicVine rate limit reached",
                    wait_seconds=round(delay, 2),
                    in_window=len(self._stamps),
                )
                await asyncio.sleep(max(delay, 0))
                now = time.monotonic()
                self._expire(now)
            self._stamps.append(now)


class ComicVineClient:
    """Thin async client for the ComicVine REST API.

    Requests share one rate limiter per client. Quota responses (420/429)
    and network errors are retried with exponential backoff; any other HTTP
    error is raised immediately. Successful responses are cached on disk
    when a cache directory is configured.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://comicvine.gamespot.com/api",
        rate_limit: int = 40,
        rate_limit_period: int = 60,
        max_retries: int = 3,
        cache_dir: Path | None = None,
        cache_enabled: bool = True,
        request_timeout: float = 15.0,
        backoff_base: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Create a client.

        Args:
            api_key: ComicVine API key (the client is disabled when empty)
            base_url: API root
            rate_limit: Requests allowed per rate_limit_period
            rate_limit_period: Window length in seconds
            max_retries: Retries after the first attempt
            cache_dir: Response cache directory
            cache_enabled: Set False to bypass the cache even with a directory
            request_timeout: Per-request timeout in seconds
            backoff_base: First retry delay; doubled on every further attempt
            transport: httpx transport override, used by tests
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.request_timeout = request_timeout
        self.backoff_base = backoff_base
        self._transport = transport
        self._limiter = SlidingWindowLimiter(rate_limit, rate_limit_period)
        self.cache = ResponseCache(cache_dir) if cache_enabled and cache_dir else None

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _delay(self, attempt: int, jitter: bool) -> float:
        delay = self.backoff_base * 2**attempt
        return delay + random.uniform(0, delay * 0.5) if jitter else delay

    async def _get(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        async with httpx.AsyncClient(
            timeout=self.request_timeout, transport=self._transport
        ) as http:
            response = await http.get(
                url,
                params={"format": "json", **params, "api_key": self.api_key},
                headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            )
            response.raise_for_status()
            return response.json()

    async def fetch(
        self,
        endpoint: str,
        params: dict[str, Any],
        use_cache: bool = True,
    ) -> dict[str, Any]:
        """GET an endpoint such as ``"search"`` or ``"issue/4000-77"``.

        Raises:
            httpx.HTTPStatusError: Non-retryable status, or retries exhausted
            httpx.RequestError: Network failure after the last retry
        """
        cache = self.cache if use_cache else None
        key = ResponseCache.key(endpoint, params)
        if cache is not None and (cached := cache.load(key)) is not None:
            logger.debug("ComicVine cache hit", endpoint=endpoint, key=key[:8])
            return cached

        url = f"{self.base_url}/{endpoint.strip('/')}/"
        attempt = 0
        while True:
            await self._limiter.acquire()
            logger.debug("Calling ComicVine API", endpoint=endpoint, attempt=attempt + 1)
            try:
                data = await self._get(url, params)
                break
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status not in RETRY_STATUS_CODES or attempt >= self.max_retries:
                    raise
                delay = self._delay(attempt, jitter=True)
                logger.warning(
                    "ComicVine quota hit, backing off",
                    status_code=status,
                    attempt=attempt + 1,
                    wait_seconds=round(delay, 2),
                )
            except httpx.RequestError as e:
                if attempt >= self.max_retries:
                    raise
                delay = self._delay(attempt, jitter=False)
                logger.warning(
                    "ComicVine request failed, retrying",
                    error=str(e),
                    attempt=attempt + 1,
                    wait_seconds=delay,
                )
            await asyncio.sleep(delay)
            attempt += 1

        if cache is not None:
            cache.save(key, data)
        return data
