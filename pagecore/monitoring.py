"""Timing helpers for structured logging of async source calls."""

from __future__ import annotations

import time
from functools import wraps
from typing import Any, Awaitable, Callable, TypeVar

import structlog


FuncType = TypeVar("FuncType", bound=Callable[..., Awaitable[Any]])


def timed(event: str) -> Callable[[FuncType], FuncType]:
    """Log ``<event>.complete`` or ``<event>.error`` with the call duration.

    Intended for methods taking the key as their first argument after ``self``.
    """

    def decorator(func: FuncType) -> FuncType:
        @wraps(func)
        async def wrapper(self, key, *args, **kwargs):
            logger = structlog.get_logger(func.__module__)
            source = getattr(self, "name", type(self).__name__)
            started = time.perf_counter()
            try:
                result = await func(self, key, *args, **kwargs)
            except Exception as exc:
                logger.warning(
                    f"{event}.error",
                    source=source,
                    key=key,
                    duration_seconds=time.perf_counter() - started,
                    error=str(exc),
                )
                raise
            logger.debug(
                f"{event}.complete",
                source=source,
                key=key,
                duration_seconds=time.perf_counter() - started,
            )
            return result

        return wrapper  # type: ignore[return-value]

    return decorator
