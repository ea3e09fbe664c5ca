"""Per-session wiring of the load cache, resource registry and HTTP fetcher."""

from __future__ import annotations

from typing import Any, Mapping, Optional

import structlog

from pagecore.cache import AsyncLoadCache
from pagecore.config import Settings, get_settings
from pagecore.keys import KeySpace, key_space_from_settings
from pagecore.registry import CleanupReport, ResourceRegistry
from pagecore.sources import JSONFetcher, LocalOverrides, RemoteJSONSource


logger = structlog.get_logger(__name__)


class PageContext:
    """Owns one cache, one registry and one fetcher for a page session.

    The standard chain is: local overrides, the primary CDN, then the secondary
    host. ``close()`` must be awaited at teardown; it releases every registered
    resource and closes the HTTP session.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        overrides: Optional[Mapping[str, Any]] = None,
        fetcher: Optional[JSONFetcher] = None,
        key_space: Optional[KeySpace] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.keys = key_space or key_space_from_settings(self.settings)
        self.overrides = LocalOverrides(overrides)
        self.fetcher = fetcher or JSONFetcher.from_settings(self.settings)
        self.registry = ResourceRegistry()
        self.cache = AsyncLoadCache(
            [
                RemoteJSONSource(
                    "primary", self.settings.primary_base_url, self.fetcher, template=self.settings.url_template
                ),
                RemoteJSONSource(
                    "secondary", self.settings.secondary_base_url, self.fetcher, template=self.settings.url_template
                ),
            ],
            self.keys,
            overrides=self.overrides,
        )
        self._closed = False

    async def load(self, key: str) -> Any:
        if self._closed:
            raise RuntimeError("context closed")
        return await self.cache.load(key)

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> CleanupReport:
        report = self.registry.cleanup()
        if not self._closed:
            self._closed = True
            await self.fetcher.close()
            logger.info("context.closed", released=report.released, failed=len(report.errors))
        return report

    async def __aenter__(self) -> "PageContext":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
