"""Unit tests for FetchResult."""

import asyncio

import pytest

from jumbo_oracle.src.FetchResult import FetchResult, gather_results


async def _value(value, delay: float = 0):
    if delay:
        await asyncio.sleep(delay)
    return value


async def _fail(message: str):
    raise RuntimeError(message)


class TestFetchResult:
    """Test result wrapping."""

    def test_ok(self) -> None:
        result = FetchResult(value=[1])
        assert result.ok
        assert result.value_or([]) == [1]

    def test_failed(self) -> None:
        result = FetchResult(error=RuntimeError("x"))
        assert not result.ok
        assert result.value_or([]) == []

    def test_none_is_a_value(self) -> None:
        """A successful branch may legitimately return None."""
        assert FetchResult(value=None).value_or("default") is None


class TestGatherResults:
    """Test the concurrent join."""

    async def test_order_preserved(self) -> None:
        results = await gather_results([_value("slow", 0.02), _value("fast")])

        assert [r.value for r in results] == ["slow", "fast"]

    async def test_failure_isolated(self) -> None:
        results = await gather_results([_value(1), _fail("boom"), _value(3)])

        assert [r.ok for r in results] == [True, False, True]
        assert str(results[1].error) == "boom"

    async def test_timeout_per_branch(self) -> None:
        results = await gather_results([_value(1, delay=1), _value(2)], timeout=0.01)

        assert isinstance(results[0].error, asyncio.TimeoutError)
        assert results[1].value == 2

    async def test_empty(self) -> None:
        assert await gather_results([]) == []

    async def test_accepts_generator(self) -> None:
        results = await gather_results(_value(i) for i in range(3))

        assert [r.value for r in results] == [0, 1, 2]

    async def test_cancellation_propagates(self) -> None:
        async def cancelled():
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await gather_results([cancelled()])
