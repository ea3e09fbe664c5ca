"""Rate-control primitives for bursty event sources.

``debounce`` waits for a quiet period before calling through, ``throttle`` caps
the call rate to one per window, and ``IntervalTimer`` repeats a callback at a
fixed period. All of them are synchronous to call; timers run on the asyncio
event loop that is running when they are first armed.

Durations are in seconds.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from dataclasses import dataclass, field
from functools import update_wrapper
from typing import Any, Callable, Dict, Optional, Tuple


@dataclass(frozen=True)
class DebounceOptions:
    """Recognized debounce options.

    leading: invoke on the call that starts a quiet period instead of the one
        that ends it. The trailing call is suppressed in that mode.
    """

    leading: bool = False


@dataclass(frozen=True)
class Invocation:
    args: Tuple[Any, ...] = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)


def _spawn_if_awaitable(result: Any, loop: asyncio.AbstractEventLoop) -> Any:
    """Run an awaitable returned from a timer callback as a task on ``loop``.

    Failures of that task are handed to the loop's exception handler, the same
    place an exception raised by a plain callback ends up.
    """
    if not inspect.isawaitable(result):
        return result
    task = asyncio.ensure_future(result, loop=loop)

    def _report(done: asyncio.Future) -> None:
        if done.cancelled():
            return
        exc = done.exception()
        if exc is not None:
            loop.call_exception_handler(
                {"message": "Unhandled exception in scheduled callback", "exception": exc, "future": done}
            )

    task.add_done_callback(_report)
    return task


class Debounced:
    """Wrapper returned by :func:`debounce`."""

    def __init__(
        self,
        fn: Callable[..., Any],
        wait: float,
        options: Optional[DebounceOptions] = None,
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        if wait < 0:
            raise ValueError("wait must be non-negative")
        self.fn = fn
        self.wait = wait
        self.options = options or DebounceOptions()
        self._loop = loop
        self._timer: Optional[asyncio.TimerHandle] = None
        self._pending: Optional[Invocation] = None
        update_wrapper(self, fn, updated=())

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        loop = self._loop or asyncio.get_running_loop()
        starting = self._timer is None
        self._clear_timer()

        result = None
        if self.options.leading and starting:
            result = self.fn(*args, **kwargs)

        self._pending = Invocation(args, kwargs)
        self._timer = loop.call_later(self.wait, self._fire, loop)
        return result

    def _fire(self, loop: asyncio.AbstractEventLoop) -> None:
        invocation, self._pending, self._timer = self._pending, None, None
        if self.options.leading or invocation is None:
            return
        _spawn_if_awaitable(self.fn(*invocation.args, **invocation.kwargs), loop)

    def _clear_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def cancel(self) -> None:
        """Drop the pending call without invoking the wrapped function."""
        self._clear_timer()
        self._pending = None

    @property
    def pending(self) -> bool:
        return self._timer is not None

    @property
    def pending_invocation(self) -> Optional[Invocation]:
        return self._pending


class Throttled:
    """Wrapper returned by :func:`throttle`."""

    def __init__(
        self,
        fn: Callable[..., Any],
        limit: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit < 0:
            raise ValueError("limit must be non-negative")
        self.fn = fn
        self.limit = limit
        self._clock = clock
        self._window_started: Optional[float] = None
        self._last_result: Any = None
        update_wrapper(self, fn, updated=())

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        now = self._clock()
        if self.window_open(now):
            return self._last_result
        self._last_result = self.fn(*args, **kwargs)
        # The window opens only once fn has returned.
        self._window_started = now
        return self._last_result

    def window_open(self, now: Optional[float] = None) -> bool:
        if self._window_started is None:
            return False
        if now is None:
            now = self._clock()
        return now - self._window_started < self.limit

    def reset(self) -> None:
        self._window_started = None

    @property
    def last_result(self) -> Any:
        return self._last_result


def debounce(
    fn: Callable[..., Any],
    wait: float,
    options: Optional[DebounceOptions] = None,
    *,
    loop: Optional[asyncio.AbstractEventLoop] = None,
) -> Debounced:
    return Debounced(fn, wait, options, loop=loop)


def throttle(
    fn: Callable[..., Any],
    limit: float,
    *,
    clock: Callable[[], float] = time.monotonic,
) -> Throttled:
    return Throttled(fn, limit, clock=clock)


class IntervalTimer:
    """Calls ``fn`` every ``period`` seconds until cancelled.

    The next tick is scheduled before ``fn`` runs, so a failing tick does not
    stop the interval.
    """

    def __init__(
        self,
        fn: Callable[[], Any],
        period: float,
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        if period <= 0:
            raise ValueError("period must be positive")
        self.fn = fn
        self.period = period
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self.ticks = 0

    def start(self) -> "IntervalTimer":
        if self._handle is None:
            loop = self._loop or asyncio.get_running_loop()
            self._loop = loop
            self._handle = loop.call_later(self.period, self._tick)
        return self

    def _tick(self) -> None:
        loop = self._loop
        self._handle = loop.call_later(self.period, self._tick)
        self.ticks += 1
        _spawn_if_awaitable(self.fn(), loop)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    @property
    def active(self) -> bool:
        return self._handle is not None
