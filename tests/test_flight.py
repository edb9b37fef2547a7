"""Tests for single-flight coalescing."""

import asyncio

import pytest

from assetfs.flight import SingleFlight


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_concurrent_calls_share_work(self):
        flight = SingleFlight()
        started = 0
        release = asyncio.Event()

        async def work():
            nonlocal started
            started += 1
            await release.wait()
            return "done"

        calls = [asyncio.ensure_future(flight.do("k", work)) for _ in range(5)]
        await asyncio.sleep(0)
        assert flight.in_flight("k")
        release.set()
        assert await asyncio.gather(*calls) == ["done"] * 5
        assert started == 1

    @pytest.mark.asyncio
    async def test_distinct_keys_run_separately(self):
        flight = SingleFlight()
        seen = []

        async def work(key):
            seen.append(key)
            return key

        results = await asyncio.gather(
            flight.do(("assets", 1, None), lambda: work("a")),
            flight.do(("assets", 1, "dev"), lambda: work("b")),
        )
        assert results == ["a", "b"]
        assert seen == ["a", "b"]

    @pytest.mark.asyncio
    async def test_forgets_after_completion(self):
        flight = SingleFlight()
        runs = 0

        async def work():
            nonlocal runs
            runs += 1

        await flight.do("k", work)
        await asyncio.sleep(0)
        assert not flight.in_flight("k")
        await flight.do("k", work)
        assert runs == 2

    @pytest.mark.asyncio
    async def test_failure_shared_then_retried(self):
        flight = SingleFlight()
        attempts = 0
        release = asyncio.Event()

        async def flaky():
            nonlocal attempts
            attempts += 1
            await release.wait()
            if attempts == 1:
                raise RuntimeError("boom")
            return "ok"

        calls = [asyncio.ensure_future(flight.do("k", flaky)) for _ in range(3)]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*calls, return_exceptions=True)
        assert all(isinstance(r, RuntimeError) for r in results)

        await asyncio.sleep(0)
        assert await flight.do("k", flaky) == "ok"
        assert attempts == 2

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_work(self):
        flight = SingleFlight()
        release = asyncio.Event()

        async def work():
            await release.wait()
            return 42

        first = asyncio.ensure_future(flight.do("k", work))
        second = asyncio.ensure_future(flight.do("k", work))
        await asyncio.sleep(0)
        first.cancel()
        release.set()
        assert await second == 42
