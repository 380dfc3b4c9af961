"""
Tests for the task combinators and the admission-control limiter.
"""

from __future__ import annotations

import asyncio
import time
from unittest.mock import MagicMock

import pytest

from recipe_classifier.concurrency import concat, join
from recipe_classifier.limiter import Limiter


async def value_after(value: object, delay: float, log: list[object] | None = None) -> object:
    await asyncio.sleep(delay)
    if log is not None:
        log.append(value)
    return value


async def fail_after(delay: float) -> None:
    await asyncio.sleep(delay)
    raise ValueError("boom")


# ---------------------------------------------------------------------------
# join / concat
# ---------------------------------------------------------------------------

class TestJoin:
    def test_results_in_input_order(self) -> None:
        result = asyncio.run(join([value_after("a", 0.03), value_after("b", 0.0), value_after("c", 0.01)]))
        assert result == ["a", "b", "c"]

    def test_runs_concurrently(self) -> None:
        start = time.monotonic()
        asyncio.run(join(value_after(i, 0.05) for i in range(5)))
        assert time.monotonic() - start < 0.2

    def test_empty(self) -> None:
        assert asyncio.run(join([])) == []

    def test_failure_cancels_pending_siblings(self) -> None:
        finished: list[object] = []

        async def scenario() -> None:
            await join([value_after("slow", 1.0, finished), fail_after(0.01)])

        with pytest.raises(ValueError, match="boom"):
            asyncio.run(scenario())
        assert finished == []

    def test_cancelling_the_caller_cancels_children(self) -> None:
        finished: list[object] = []

        async def scenario() -> None:
            task = asyncio.ensure_future(join([value_after("x", 1.0, finished)]))
            await asyncio.sleep(0.01)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            await asyncio.sleep(0)

        asyncio.run(scenario())
        assert finished == []


class TestConcat:
    def test_sequential_in_order(self) -> None:
        log: list[object] = []
        result = asyncio.run(concat(value_after("a", 0.02, log), value_after("b", 0.0, log)))
        assert result == ["a", "b"]
        assert log == ["a", "b"]

    def test_failure_skips_the_rest(self) -> None:
        log: list[object] = []
        with pytest.raises(ValueError):
            asyncio.run(concat(fail_after(0), value_after("never", 0, log)))
        assert log == []


# ---------------------------------------------------------------------------
# Limiter
# ---------------------------------------------------------------------------

class TestLimiter:
    def test_invalid_settings(self) -> None:
        with pytest.raises(ValueError):
            Limiter("test", max_rate=0)
        with pytest.raises(ValueError):
            Limiter("test", rate_window_ms=0)

    def test_caps_concurrency(self) -> None:
        limiter = Limiter("test", rate_window_ms=1000, max_rate=100, max_concurrency=2)
        peak = 0

        async def work() -> None:
            nonlocal peak
            async with limiter:
                peak = max(peak, limiter.active)
                await asyncio.sleep(0.02)

        asyncio.run(join(work() for _ in range(6)))
        assert peak == 2
        assert limiter.active == 0

    def test_rate_window_delays_excess_starts(self) -> None:
        limiter = Limiter("test", rate_window_ms=100, max_rate=2, max_concurrency=10)
        starts: list[float] = []

        async def work() -> None:
            async with limiter:
                starts.append(time.monotonic())

        asyncio.run(join(work() for _ in range(4)))
        starts.sort()
        assert starts[2] - starts[0] >= 0.09

    def test_releases_slot_on_error(self) -> None:
        limiter = Limiter("test", max_concurrency=1)

        async def scenario() -> None:
            with pytest.raises(ValueError):
                async with limiter:
                    raise ValueError("boom")
            async with limiter:
                pass

        asyncio.run(asyncio.wait_for(scenario(), timeout=1))
        assert limiter.active == 0

    def test_evaluate_runs_get_info(self) -> None:
        computed = MagicMock()
        computed.getInfo.return_value = ["red", "nir"]
        assert asyncio.run(Limiter("test").evaluate(computed)) == ["red", "nir"]
        computed.getInfo.assert_called_once_with()

    def test_usable_across_event_loops(self) -> None:
        limiter = Limiter("test", max_concurrency=1)

        async def once() -> str:
            async with limiter:
                return "ok"

        assert asyncio.run(once()) == "ok"
        assert asyncio.run(once()) == "ok"
