"""Tests for debounce, throttle and IntervalTimer."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
import pytest_asyncio

from pagecore.scheduler import DebounceOptions, IntervalTimer, Invocation, debounce, throttle


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest_asyncio.fixture
async def loop_errors():
    """Capture contexts passed to the running loop's exception handler."""
    loop = asyncio.get_running_loop()
    captured: list[dict[str, Any]] = []
    previous = loop.get_exception_handler()
    loop.set_exception_handler(lambda _loop, context: captured.append(context))
    yield captured
    loop.set_exception_handler(previous)


class TestDebounce:
    @pytest.mark.asyncio
    async def test_burst_coalesces_into_one_trailing_call(self) -> None:
        loop = asyncio.get_running_loop()
        calls: list[tuple[int, float]] = []
        debounced = debounce(lambda n: calls.append((n, loop.time())), 0.05)

        for n in range(10):
            debounced(n)
            last_call_at = loop.time()
            await asyncio.sleep(0.005)

        await asyncio.sleep(0.1)

        assert len(calls) == 1
        value, fired_at = calls[0]
        assert value == 9
        assert fired_at - last_call_at >= 0.049
        assert not debounced.pending

    @pytest.mark.asyncio
    async def test_trailing_call_uses_latest_arguments_and_keywords(self) -> None:
        calls: list[Invocation] = []
        debounced = debounce(lambda *args, **kwargs: calls.append(Invocation(args, kwargs)), 0.01)

        debounced(1, mode="a")
        debounced(2, mode="b")
        assert debounced.pending_invocation == Invocation((2,), {"mode": "b"})
        await asyncio.sleep(0.05)

        assert calls == [Invocation((2,), {"mode": "b"})]
        assert debounced.pending_invocation is None

    @pytest.mark.asyncio
    async def test_leading_invokes_immediately_once_per_window(self) -> None:
        calls: list[int] = []
        debounced = debounce(calls.append, 0.05, DebounceOptions(leading=True))

        debounced(1)
        assert calls == [1]
        await asyncio.sleep(0.01)
        debounced(2)
        debounced(3)
        await asyncio.sleep(0.1)

        assert calls == [1]

        debounced(4)
        assert calls == [1, 4]
        debounced.cancel()

    @pytest.mark.asyncio
    async def test_leading_call_returns_result(self) -> None:
        debounced = debounce(lambda n: n * 2, 0.01, DebounceOptions(leading=True))

        assert debounced(21) == 42
        assert debounced(1) is None
        debounced.cancel()

    @pytest.mark.asyncio
    async def test_separate_quiet_periods_fire_separately(self) -> None:
        calls: list[str] = []
        debounced = debounce(calls.append, 0.01)

        debounced("first")
        await asyncio.sleep(0.04)
        debounced("second")
        await asyncio.sleep(0.04)

        assert calls == ["first", "second"]

    @pytest.mark.asyncio
    async def test_cancel_discards_pending_invocation(self) -> None:
        calls: list[int] = []
        debounced = debounce(calls.append, 0.01)

        debounced(1)
        assert debounced.pending
        debounced.cancel()
        await asyncio.sleep(0.03)

        assert calls == []
        assert not debounced.pending
        debounced.cancel()

    @pytest.mark.asyncio
    async def test_leading_error_propagates_and_leaves_no_pending_state(self) -> None:
        attempts: list[int] = []

        def flaky(n: int) -> None:
            attempts.append(n)
            if n == 1:
                raise ValueError("boom")

        debounced = debounce(flaky, 0.05, DebounceOptions(leading=True))

        with pytest.raises(ValueError, match="boom"):
            debounced(1)
        assert not debounced.pending

        debounced(2)
        assert attempts == [1, 2]
        debounced.cancel()

    @pytest.mark.asyncio
    async def test_trailing_error_reaches_loop_exception_handler(self, loop_errors) -> None:
        def explode(n: int) -> None:
            raise RuntimeError(f"failed {n}")

        debounced = debounce(explode, 0.01)
        debounced(7)
        await asyncio.sleep(0.04)

        assert len(loop_errors) == 1
        assert isinstance(loop_errors[0]["exception"], RuntimeError)
        assert str(loop_errors[0]["exception"]) == "failed 7"
        assert not debounced.pending

    @pytest.mark.asyncio
    async def test_coroutine_function_runs_as_task(self) -> None:
        calls: list[str] = []

        async def record(value: str) -> None:
            await asyncio.sleep(0)
            calls.append(value)

        debounced = debounce(record, 0.01)
        debounced("x")
        await asyncio.sleep(0.04)

        assert calls == ["x"]

    @pytest.mark.asyncio
    async def test_bound_method_carries_its_instance(self) -> None:
        class Panel:
            def __init__(self) -> None:
                self.refreshed: list[str] = []

            def refresh(self, reason: str) -> None:
                self.refreshed.append(reason)

        panel = Panel()
        debounced = debounce(panel.refresh, 0.01)
        debounced("scroll")
        debounced("resize")
        await asyncio.sleep(0.04)

        assert panel.refreshed == ["resize"]
        assert debounced.__name__ == "refresh"

    def test_negative_wait_rejected(self) -> None:
        with pytest.raises(ValueError):
            debounce(print, -1)


class TestThrottle:
    def test_calls_within_window_are_dropped(self) -> None:
        clock = FakeClock()
        calls: list[int] = []

        def fn(n: int) -> int:
            calls.append(n)
            return n * 10

        throttled = throttle(fn, 0.1, clock=clock)

        assert throttled(1) == 10
        clock.now = 0.01
        assert throttled(2) == 10
        clock.now = 0.02
        assert throttled(3) == 10
        assert calls == [1]

        clock.now = 0.101
        assert throttled(4) == 40
        assert calls == [1, 4]
        assert throttled.last_result == 40

    def test_window_reopens_from_latest_invocation(self) -> None:
        clock = FakeClock()
        calls: list[int] = []
        throttled = throttle(calls.append, 0.1, clock=clock)

        throttled(1)
        clock.now = 0.15
        throttled(2)
        clock.now = 0.2
        throttled(3)
        clock.now = 0.26
        throttled(4)

        assert calls == [1, 2, 4]

    def test_error_does_not_open_window(self) -> None:
        clock = FakeClock()
        attempts: list[int] = []

        def flaky(n: int) -> int:
            attempts.append(n)
            if n == 1:
                raise ValueError("boom")
            return n

        throttled = throttle(flaky, 0.1, clock=clock)

        with pytest.raises(ValueError):
            throttled(1)
        assert not throttled.window_open()
        assert throttled(2) == 2
        assert attempts == [1, 2]

    def test_reset_closes_window(self) -> None:
        clock = FakeClock()
        calls: list[int] = []
        throttled = throttle(calls.append, 0.1, clock=clock)

        throttled(1)
        throttled.reset()
        throttled(2)

        assert calls == [1, 2]

    @pytest.mark.asyncio
    async def test_real_clock(self) -> None:
        calls: list[int] = []
        throttled = throttle(calls.append, 0.05)

        throttled(1)
        throttled(2)
        await asyncio.sleep(0.06)
        throttled(3)

        assert calls == [1, 3]


class TestIntervalTimer:
    @pytest.mark.asyncio
    async def test_ticks_until_cancelled(self) -> None:
        calls: list[int] = []
        timer = IntervalTimer(lambda: calls.append(1), 0.01).start()

        await asyncio.sleep(0.055)
        timer.cancel()
        ticks = len(calls)
        await asyncio.sleep(0.03)

        assert ticks >= 3
        assert len(calls) == ticks
        assert timer.ticks == ticks
        assert not timer.active

    @pytest.mark.asyncio
    async def test_failing_tick_does_not_stop_interval(self, loop_errors) -> None:
        timer = IntervalTimer(lambda: 1 / 0, 0.01).start()

        await asyncio.sleep(0.035)
        timer.cancel()

        assert timer.ticks >= 2
        assert all(isinstance(ctx["exception"], ZeroDivisionError) for ctx in loop_errors)

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self) -> None:
        calls: list[int] = []
        timer = IntervalTimer(lambda: calls.append(1), 0.02)
        timer.start()
        timer.start()

        await asyncio.sleep(0.03)
        timer.cancel()

        assert len(calls) == 1

    def test_period_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            IntervalTimer(print, 0)
