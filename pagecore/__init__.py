"""pagecore package exports."""

from pagecore.cache import AsyncLoadCache, CacheEntry, EntryState
from pagecore.config import get_settings
from pagecore.context import PageContext
from pagecore.exceptions import (
    AllSourcesExhausted,
    InvalidPayload,
    PageCoreError,
    SourceError,
    SourceFailure,
    SourceUnavailable,
    UnknownKey,
)
from pagecore.keys import LOCALE_KEYS, KeySpace
from pagecore.logging import configure_logging
from pagecore.registry import CleanupReport, DisposableKind, ResourceRegistry
from pagecore.scheduler import DebounceOptions, IntervalTimer, debounce, throttle
from pagecore.sources import JSONFetcher, LocalOverrides, RemoteJSONSource, Source

__all__ = [
    "AllSourcesExhausted",
    "AsyncLoadCache",
    "CacheEntry",
    "CleanupReport",
    "DebounceOptions",
    "DisposableKind",
    "EntryState",
    "IntervalTimer",
    "InvalidPayload",
    "JSONFetcher",
    "KeySpace",
    "LOCALE_KEYS",
    "LocalOverrides",
    "PageContext",
    "PageCoreError",
    "RemoteJSONSource",
    "ResourceRegistry",
    "Source",
    "SourceError",
    "SourceFailure",
    "SourceUnavailable",
    "UnknownKey",
    "configure_logging",
    "debounce",
    "get_settings",
    "throttle",
]
