"""Common exceptions for pagecore."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence


class PageCoreError(RuntimeError):
    """Base error for the coordination layer."""


class SourceError(PageCoreError):
    """Base class for a single source failing to produce a value."""

    def __init__(self, message: str, *, source: str | None = None):
        super().__init__(message)
        self.source = source


class SourceUnavailable(SourceError):
    """Transport failure, timeout or HTTP error status for one source."""

    def __init__(self, message: str, *, source: str | None = None, status: int | None = None):
        super().__init__(message, source=source)
        self.status = status


class InvalidPayload(SourceError):
    """Payload failed decoding or structural validation."""

    pass


class UnknownKey(PageCoreError, KeyError):
    """Requested key is not part of the known key set."""

    def __init__(self, key: str):
        super().__init__(f"Unknown key: {key!r}")
        self.key = key

    def __str__(self) -> str:
        return self.args[0]


@dataclass(frozen=True)
class SourceFailure:
    source: str
    key: str
    error: BaseException

    def describe(self) -> str:
        return f"{self.source}[{self.key}]: {type(self.error).__name__}: {self.error}"


class AllSourcesExhausted(PageCoreError):
    """Every source in the chain failed, including the default-key retry."""

    def __init__(
        self,
        key: str,
        failures: Sequence[SourceFailure],
        *,
        requested_key: str | None = None,
        substituted: bool = False,
    ):
        self.key = key
        self.requested_key = requested_key if requested_key is not None else key
        self.substituted = substituted
        self.failures = list(failures)
        causes = "; ".join(failure.describe() for failure in self.failures) or "no sources configured"
        super().__init__(f"All sources exhausted for {self.requested_key!r}: {causes}")

    @property
    def keys_tried(self) -> list[str]:
        seen: list[str] = []
        for failure in self.failures:
            if failure.key not in seen:
                seen.append(failure.key)
        return seen
