"""Sources of the fallback chain: local overrides and remote JSON documents."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, Mapping, Optional, Protocol, runtime_checkable

import aiohttp
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from pagecore.exceptions import InvalidPayload, SourceUnavailable
from pagecore.monitoring import timed


_TRANSIENT_ERRORS = (aiohttp.ClientConnectionError, aiohttp.ServerTimeoutError, asyncio.TimeoutError)


@runtime_checkable
class Source(Protocol):
    """A producer that attempts to resolve a key.

    ``fetch`` raises a :class:`~pagecore.exceptions.SourceError` subclass when it
    cannot produce a value; any other exception is treated the same way by the
    cache.
    """

    name: str

    async def fetch(self, key: str) -> Any: ...


class LocalOverrides:
    """Synchronous in-memory values that outrank every remote source."""

    name = "local"

    def __init__(self, values: Mapping[str, Any] | None = None) -> None:
        self._values: Dict[str, Any] = dict(values or {})

    def lookup(self, key: str) -> Optional[Any]:
        return self._values.get(key)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def update(self, values: Mapping[str, Any]) -> None:
        self._values.update(values)

    def discard(self, key: str) -> None:
        self._values.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)


class JSONFetcher:
    """Shared aiohttp session for JSON GETs with retries and timeout handling."""

    def __init__(
        self,
        *,
        timeout_seconds: float = 10.0,
        max_attempts: int = 3,
        backoff_min_seconds: float = 1.0,
        backoff_max_seconds: float = 8.0,
    ) -> None:
        self._timeout = timeout_seconds
        self._max_attempts = max_attempts
        self._backoff_min = backoff_min_seconds
        self._backoff_max = backoff_max_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_settings(cls, settings) -> "JSONFetcher":
        return cls(
            timeout_seconds=settings.fetch.timeout_seconds,
            max_attempts=settings.fetch.max_attempts,
            backoff_min_seconds=settings.fetch.backoff_min_seconds,
            backoff_max_seconds=settings.fetch.backoff_max_seconds,
        )

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._timeout)
            connector = aiohttp.TCPConnector(limit=10)
            self._session = aiohttp.ClientSession(timeout=timeout, connector=connector)
        return self._session

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def _get_with_retry(self, url: str) -> Any:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=1, min=self._backoff_min, max=self._backoff_max),
            retry=retry_if_exception_type(_TRANSIENT_ERRORS),
            reraise=True,
        ):
            with attempt:
                session = self._ensure_session()
                async with session.get(url, headers={"Accept": "application/json"}) as response:
                    if response.status >= 400:
                        raise SourceUnavailable(
                            f"HTTP {response.status} for {url}", status=response.status
                        )
                    body = await response.read()
        try:
            return json.loads(body)
        except ValueError as exc:
            raise InvalidPayload(f"Malformed JSON from {url}: {exc}") from exc

    async def get_json(self, url: str) -> Any:
        try:
            return await self._get_with_retry(url)
        except (SourceUnavailable, InvalidPayload):
            raise
        except _TRANSIENT_ERRORS as exc:
            raise SourceUnavailable(f"Request to {url} failed: {exc or type(exc).__name__}") from exc
        except aiohttp.ClientError as exc:
            raise SourceUnavailable(f"Request to {url} failed: {exc}") from exc


class RemoteJSONSource:
    """Retrieves ``template.format(base=..., key=...)`` through a JSONFetcher."""

    def __init__(
        self,
        name: str,
        base_url: str,
        fetcher: JSONFetcher,
        *,
        template: str = "{base}/{key}.json",
    ) -> None:
        self.name = name
        self.base_url = base_url.rstrip("/")
        self.template = template
        self._fetcher = fetcher

    def url_for(self, key: str) -> str:
        return self.template.format(base=self.base_url, key=key)

    @timed("source.fetch")
    async def fetch(self, key: str) -> Any:
        try:
            return await self._fetcher.get_json(self.url_for(key))
        except (SourceUnavailable, InvalidPayload) as exc:
            exc.source = self.name
            raise

    def __repr__(self) -> str:
        return f"RemoteJSONSource(name={self.name!r}, base_url={self.base_url!r})"
