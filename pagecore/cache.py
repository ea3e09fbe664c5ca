"""Keyed async load cache with in-flight deduplication and an ordered fallback chain."""

from __future__ import annotations

import asyncio
import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Sequence

import structlog

from pagecore.exceptions import AllSourcesExhausted, InvalidPayload, SourceFailure
from pagecore.keys import KeySpace
from pagecore.sources import LocalOverrides, Source


logger = structlog.get_logger(__name__)

Validator = Callable[[Any], bool]


def non_empty_mapping(payload: Any) -> bool:
    return isinstance(payload, Mapping) and len(payload) > 0


class EntryState(str, enum.Enum):
    PENDING = "pending"
    RESOLVED = "resolved"


@dataclass
class CacheEntry:
    """A key's load state. A failed load leaves no entry behind."""

    key: str
    state: EntryState = EntryState.PENDING
    value: Any = field(default=None, repr=False)

    def resolve(self, value: Any) -> None:
        if self.state is not EntryState.PENDING:
            raise RuntimeError(f"entry {self.key!r} already settled as {self.state.value}")
        self.state = EntryState.RESOLVED
        self.value = value


class AsyncLoadCache:
    """Loads a value per key exactly once, degrading through a chain of sources.

    Concurrent ``load`` calls for the same key share one in-flight task. Only
    successful values are cached; a key whose chain failed is retried on the
    next call. When every source fails for a non-default key, the chain is run
    once more for the default key of the key space.
    """

    def __init__(
        self,
        sources: Sequence[Source],
        key_space: KeySpace,
        *,
        overrides: Optional[LocalOverrides] = None,
        validator: Optional[Validator] = None,
    ) -> None:
        self._sources = list(sources)
        self._keys = key_space
        self._overrides = overrides
        self._validator = validator or non_empty_mapping
        self._entries: Dict[str, CacheEntry] = {}
        self._inflight: Dict[str, asyncio.Task] = {}

    @property
    def key_space(self) -> KeySpace:
        return self._keys

    @property
    def sources(self) -> list[Source]:
        return list(self._sources)

    async def load(self, key: str) -> Any:
        resolved, substituted = self._keys.resolve(key)
        if substituted:
            logger.info("load.key_substituted", requested_key=key, key=resolved)

        try:
            return await self._load_key(resolved)
        except AllSourcesExhausted as exc:
            if resolved == self._keys.default:
                raise AllSourcesExhausted(
                    resolved, exc.failures, requested_key=key, substituted=substituted
                ) from exc
            primary_failures = exc.failures

        logger.warning("load.default_fallback", requested_key=key, key=self._keys.default)
        try:
            return await self._load_key(self._keys.default)
        except AllSourcesExhausted as exc:
            logger.error("load.exhausted", requested_key=key, failures=len(primary_failures) + len(exc.failures))
            raise AllSourcesExhausted(
                resolved,
                primary_failures + exc.failures,
                requested_key=key,
                substituted=substituted,
            ) from exc

    async def _load_key(self, key: str) -> Any:
        override = self._lookup_override(key)
        if override is not None:
            return override

        entry = self._entries.get(key)
        if entry is not None and entry.state is EntryState.RESOLVED:
            return entry.value

        task = self._inflight.get(key)
        if task is None:
            entry = CacheEntry(key)
            task = asyncio.get_running_loop().create_task(self._resolve(entry))
            self._inflight[key] = task
        # A cancelled caller abandons interest only; the shared task still settles.
        return await asyncio.shield(task)

    def _lookup_override(self, key: str) -> Optional[Any]:
        if self._overrides is None:
            return None
        value = self._overrides.lookup(key)
        if value is None:
            return None
        if not self._validator(value):
            logger.warning("load.override_invalid", key=key)
            return None
        logger.debug("load.override_hit", key=key)
        return value

    async def _resolve(self, entry: CacheEntry) -> Any:
        key = entry.key
        failures: list[SourceFailure] = []
        try:
            for source in self._sources:
                try:
                    value = await source.fetch(key)
                    if not self._validator(value):
                        raise InvalidPayload(f"payload for {key!r} failed validation", source=source.name)
                except Exception as exc:
                    failures.append(SourceFailure(source.name, key, exc))
                    logger.warning(
                        "load.source_failed",
                        key=key,
                        source=source.name,
                        error_type=type(exc).__name__,
                        error=str(exc),
                    )
                    continue

                self._inflight.pop(key, None)
                entry.resolve(value)
                self._entries[key] = entry
                logger.info("load.resolved", key=key, source=source.name, attempts=len(failures) + 1)
                return value
        finally:
            # Settlement of any kind, cancellation included, ends the in-flight request.
            if self._inflight.get(key) is asyncio.current_task():
                self._inflight.pop(key, None)

        raise AllSourcesExhausted(key, failures)

    def get_cached(self, key: str) -> Optional[Any]:
        entry = self._entries.get(self._keys.normalize(key))
        if entry is None or entry.state is not EntryState.RESOLVED:
            return None
        return entry.value

    def is_pending(self, key: str) -> bool:
        return self._keys.normalize(key) in self._inflight

    def invalidate(self, key: str) -> bool:
        """Drop the cached value for ``key``; a request in flight is left to finish."""
        return self._entries.pop(self._keys.normalize(key), None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> dict[str, Any]:
        return {
            "size": len(self._entries),
            "cached_keys": sorted(self._entries),
            "pending_keys": sorted(self._inflight),
            "sources": [source.name for source in self._sources],
            "default_key": self._keys.default,
        }

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get_cached(key) is not None

    def __len__(self) -> int:
        return len(self._entries)
