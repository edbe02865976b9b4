"""Unit tests for SwapFeedClient and TokenPriceFeed."""

import json
from decimal import Decimal

import httpx
import pytest

from jumbo_oracle.src.HttpSource import SourceError
from jumbo_oracle.src.Records import ExternalTokenPrice
from jumbo_oracle.src.SwapFeedClient import SWAP_PAGE_LIMIT, SwapFeedClient
from jumbo_oracle.src.TokenPriceFeed import TokenPriceFeed

GRAPH_API = "https://graph.test/graphql"


def _raw_swap(swap_id: str, amount: str = "100", ts: str = "1704085000") -> dict:
    return {
        "id": swap_id,
        "tokenIn": "a.near",
        "tokenInAmount": amount,
        "poolId": "42",
        "tokenOut": "b.near",
        "tokenOutAmount": "7",
        "receiptId": "abc",
        "blockTimestamp": ts,
    }


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestSwapFeedClient:
    """Test swap queries."""

    async def test_query_variables(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(json.loads(request.content))
            return httpx.Response(200, json={"data": {"swaps": [_raw_swap("abc 42")]}})

        feed = SwapFeedClient(GRAPH_API, client=_client(handler))
        swaps = await feed.get_swaps(1704081600, 1704085200)

        assert seen["variables"] == {
            "gte": "1704081600",
            "lte": "1704085200",
            "first": SWAP_PAGE_LIMIT,
        }
        assert "swaps" in seen["query"]
        assert len(swaps) == 1
        assert swaps[0].pool_id == "42"
        assert swaps[0].token_in_amount == Decimal(100)
        assert swaps[0].block_timestamp == 1704085000

    async def test_unparsable_swap_skipped(self) -> None:
        raw = [_raw_swap("a 1", amount="lots"), _raw_swap("b 1"), {"id": "c 1"}]
        feed = SwapFeedClient(
            GRAPH_API,
            client=_client(lambda r: httpx.Response(200, json={"data": {"swaps": raw}})),
        )

        swaps = await feed.get_swaps(0, 1)

        assert [s.id for s in swaps] == ["b 1"]

    async def test_graphql_errors_raise(self) -> None:
        body = {"errors": [{"message": "syntax error"}]}
        feed = SwapFeedClient(GRAPH_API, client=_client(lambda r: httpx.Response(200, json=body)))

        with pytest.raises(SourceError, match="syntax error"):
            await feed.get_swaps(0, 1)

    async def test_empty_data(self) -> None:
        feed = SwapFeedClient(
            GRAPH_API, client=_client(lambda r: httpx.Response(200, json={"data": None}))
        )

        assert await feed.get_swaps(0, 1) == []


class TestTokenPriceFeed:
    """Test the external price list."""

    async def test_prices(self) -> None:
        body = {
            "wrap.near": {"decimal": 24, "symbol": "wNEAR", "price": "5.01"},
            "broken.near": {"symbol": "B"},
        }
        feed = TokenPriceFeed(
            "https://prices.test", client=_client(lambda r: httpx.Response(200, json=body))
        )

        prices = await feed.get_token_prices()

        assert prices == {"wrap.near": ExternalTokenPrice(decimals=24, symbol="wNEAR", price="5.01")}

    async def test_unusable_prices_dropped(self) -> None:
        """Null, non-numeric and negative prices never reach the result."""
        body = {
            "null.near": {"decimal": 6, "symbol": "N", "price": None},
            "text.near": {"decimal": 6, "symbol": "T", "price": "n/a"},
            "neg.near": {"decimal": 6, "symbol": "M", "price": "-1"},
            "nan.near": {"decimal": 6, "symbol": "Q", "price": "NaN"},
            "zero.near": {"decimal": 6, "symbol": "Z", "price": "0"},
            "num.near": {"decimal": 18, "symbol": "F", "price": 2.5},
        }
        feed = TokenPriceFeed(
            "https://prices.test", client=_client(lambda r: httpx.Response(200, json=body))
        )

        prices = await feed.get_token_prices()

        assert sorted(prices) == ["num.near", "zero.near"]
        assert prices["zero.near"].price == "0"
        assert prices["num.near"].price == "2.5"

    async def test_failure_is_empty(self) -> None:
        feed = TokenPriceFeed(
            "https://prices.test", client=_client(lambda r: httpx.Response(500, text="oops"))
        )

        assert await feed.get_token_prices() == {}

    async def test_unexpected_payload_is_empty(self) -> None:
        feed = TokenPriceFeed(
            "https://prices.test", client=_client(lambda r: httpx.Response(200, json=[1, 2]))
        )

        assert await feed.get_token_prices() == {}

    async def test_not_configured(self) -> None:
        assert await TokenPriceFeed(None).get_token_prices() == {}
