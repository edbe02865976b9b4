"""Shared fakes for pipeline tests."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable

import pytest

from jumbo_oracle.src.OracleConfig import OracleConfig
from jumbo_oracle.src.Records import ContractPool, Pool, Swap, Token

NEAR = "wrap.near"
JUMBO = "token.jumbo_exchange.near"


class InMemoryPriceStore:
    """Dict-backed PriceStore recording every batch written."""

    def __init__(self, tokens: Iterable[Token] = (), pools: Iterable[Pool] = ()) -> None:
        self.tokens: dict[str, Token] = {t.id: t for t in tokens}
        self.pools: dict[str, Pool] = {p.id: p for p in pools}
        self.batches: list[tuple[list[Token], list[Pool]]] = []
        self.fail_batch = False

    async def find_token(self, token_id: str) -> Token | None:
        return self.tokens.get(token_id)

    async def find_all_tokens(self) -> list[Token]:
        return list(self.tokens.values())

    async def upsert_tokens(self, tokens: Iterable[Token]) -> None:
        for token in tokens:
            self.tokens[token.id] = token

    async def find_all_pools(self) -> list[Pool]:
        return list(self.pools.values())

    async def upsert_pools(self, pools: Iterable[Pool]) -> None:
        for pool in pools:
            self.pools[pool.id] = pool

    async def upsert_batch(self, tokens: Iterable[Token], pools: Iterable[Pool]) -> None:
        if self.fail_batch:
            raise RuntimeError("storage unavailable")
        tokens, pools = list(tokens), list(pools)
        self.batches.append((tokens, pools))
        await self.upsert_tokens(tokens)
        await self.upsert_pools(pools)


class FakeMetadataSource:
    """Serves token metadata from a dict and counts calls per address."""

    def __init__(self, metadata: dict[str, dict[str, Any]]) -> None:
        self.metadata = metadata
        self.calls: list[str] = []

    async def get_fungible_token_metadata(self, address: str) -> dict[str, Any]:
        self.calls.append(address)
        if address not in self.metadata:
            raise KeyError(address)
        return self.metadata[address]


class FakePoolSource:
    """Serves pools from a list; pages listed in ``failing_pages`` raise."""

    def __init__(self, pools: list[ContractPool], failing_pages: Iterable[int] = ()) -> None:
        self.pools = pools
        self.failing_from = set(failing_pages)
        self.requests: list[tuple[int, int]] = []

    async def get_pool_count(self) -> int:
        return len(self.pools)

    async def get_pools(self, from_index: int, limit: int) -> list[ContractPool]:
        self.requests.append((from_index, limit))
        if from_index in self.failing_from:
            raise ConnectionError(f"page at {from_index} unavailable")
        return self.pools[from_index:from_index + limit]


class FakeSwapSource:
    """Returns swaps whose timestamp falls within each requested range."""

    def __init__(self, swaps: Iterable[Swap] = (), failing_ranges: Iterable[int] = ()) -> None:
        self.swaps = list(swaps)
        self.failing_from = set(failing_ranges)
        self.requests: list[tuple[int, int]] = []

    async def get_swaps(self, ts_from: int, ts_to: int) -> list[Swap]:
        self.requests.append((ts_from, ts_to))
        if ts_from in self.failing_from:
            raise ConnectionError("swap feed unavailable")
        return [s for s in self.swaps if ts_from <= s.block_timestamp <= ts_to]


def make_pool(pool_id: int, tokens: tuple[str, ...], amounts: tuple[str, ...]) -> ContractPool:
    return ContractPool(
        id=pool_id,
        token_account_ids=tokens,
        amounts=tuple(Decimal(a) for a in amounts),
    )


def make_swap(
    swap_id: str,
    token_in: str,
    token_out: str,
    amount_in: str,
    timestamp: int = 0,
) -> Swap:
    return Swap(
        id=swap_id,
        token_in=token_in,
        token_out=token_out,
        token_in_amount=Decimal(amount_in),
        token_out_amount=Decimal(1),
        block_timestamp=timestamp,
    )


@pytest.fixture
def store() -> InMemoryPriceStore:
    return InMemoryPriceStore()


@pytest.fixture
def metadata() -> FakeMetadataSource:
    return FakeMetadataSource(
        {
            NEAR: {"decimals": 24, "symbol": "wNEAR"},
            JUMBO: {"decimals": 18, "symbol": "JUMBO"},
            "x.near": {"decimals": 6, "symbol": "X"},
            "y.near": {"decimals": 6, "symbol": "Y"},
        }
    )


@pytest.fixture
def config() -> OracleConfig:
    return OracleConfig(
        node_url="https://rpc.test",
        contract_id="v1.jumbo_exchange.near",
        graph_api="https://graph.test/graphql",
        near_address=NEAR,
        jumbo_address=JUMBO,
        jumbo_pool_id=0,
        helper_url="https://helper.test",
        deny_list=frozenset({"scam.near"}),
        low_liquidity_floor=Decimal(1000),
    )
